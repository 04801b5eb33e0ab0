"""Per-client connection state and subscription replay on reconnect."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class LinkState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class ClientSession:
    """Connection state for one logical client identity."""

    client_id: str
    state: LinkState = LinkState.DISCONNECTED
    last_symbols: tuple[str, ...] = ()
    subscribed: bool = False
    connects: int = 0
    disconnected_at: float | None = None


class InvalidTransition(RuntimeError):
    pass


class SessionTracker:
    """Owns "what to resubscribe to" for every logical client.

    Transitions:
        DISCONNECTED --connect--> CONNECTING --established--> CONNECTED
        CONNECTING / CONNECTED --disconnect--> DISCONNECTED

    ``established`` returns the client's last subscription when the client is
    reconnecting, so the transport layer can replay it through the
    dispatcher. The SubscriptionRegistry itself forgets a connection on
    disconnect; only this tracker remembers across transport drops.

    Disconnected sessions are purged after ``retention`` seconds.
    """

    def __init__(self, retention: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: dict[str, ClientSession] = {}
        self._retention = retention
        self._clock = clock

    def connect(self, client_id: str) -> ClientSession:
        self._purge_expired()
        session = self._sessions.get(client_id)
        if session is None:
            session = ClientSession(client_id=client_id)
            self._sessions[client_id] = session
        if session.state is not LinkState.DISCONNECTED:
            raise InvalidTransition(f"client {client_id} is already {session.state.value}")
        session.state = LinkState.CONNECTING
        session.disconnected_at = None
        return session

    def established(self, client_id: str) -> tuple[str, ...]:
        """Mark the transport as up. Returns the symbols to replay (may be empty)."""
        session = self._require(client_id, LinkState.CONNECTING)
        session.state = LinkState.CONNECTED
        session.connects += 1
        session.subscribed = False
        if session.connects > 1 and session.last_symbols:
            logger.info("Client %s reconnected; replaying %d symbols", client_id, len(session.last_symbols))
            return session.last_symbols
        return ()

    def record_subscription(self, client_id: str, symbols: Iterable[str]) -> None:
        session = self._require(client_id, LinkState.CONNECTED)
        session.last_symbols = tuple(symbols)
        session.subscribed = bool(session.last_symbols)

    def disconnect(self, client_id: str) -> None:
        session = self._sessions.get(client_id)
        if session is None or session.state is LinkState.DISCONNECTED:
            return
        session.state = LinkState.DISCONNECTED
        session.subscribed = False
        session.disconnected_at = self._clock()

    def get(self, client_id: str) -> ClientSession | None:
        return self._sessions.get(client_id)

    def is_connected(self, client_id: str) -> bool:
        session = self._sessions.get(client_id)
        return session is not None and session.state is LinkState.CONNECTED

    def _require(self, client_id: str, expected: LinkState) -> ClientSession:
        session = self._sessions.get(client_id)
        if session is None or session.state is not expected:
            current = session.state.value if session else "unknown"
            raise InvalidTransition(f"client {client_id} is {current}, expected {expected.value}")
        return session

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [
            cid
            for cid, s in self._sessions.items()
            if s.state is LinkState.DISCONNECTED
            and s.disconnected_at is not None
            and now - s.disconnected_at >= self._retention
        ]
        for cid in expired:
            del self._sessions[cid]

    def __len__(self) -> int:
        return len(self._sessions)
