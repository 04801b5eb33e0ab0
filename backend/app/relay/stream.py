"""WebSocket endpoint for subscriptions and live price pushes."""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

from . import events
from .connection import Connection
from .dispatcher import BroadcastDispatcher
from .scheduler import unique_symbols
from .session import InvalidTransition, SessionTracker

logger = logging.getLogger(__name__)

# Close code sent when a client_id is already attached to a live socket
DUPLICATE_CLIENT_CLOSE_CODE = 4409


class WebSocketConnection(Connection):
    """Connection backed by a Starlette WebSocket."""

    def __init__(self, connection_id: str, websocket: WebSocket) -> None:
        super().__init__(connection_id)
        self._websocket = websocket

    async def send(self, event: dict) -> None:
        await self._websocket.send_json(event)

    @property
    def is_alive(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )


def create_stream_router(dispatcher: BroadcastDispatcher, sessions: SessionTracker) -> APIRouter:
    """Create the WebSocket router bound to a dispatcher and session tracker.

    Clients connect to ``/ws?client_id=<id>``. Reusing the same client_id
    after a drop replays the last subscription; omitting it gets a fresh
    identity with nothing to replay.
    """
    router = APIRouter(tags=["streaming"])

    def start_subscription(client_id: str, symbols: Iterable[str], replayed: bool = False) -> None:
        accepted = unique_symbols(symbols)
        sessions.record_subscription(client_id, accepted)
        dispatcher.send_to(client_id, events.subscribed(accepted, replayed=replayed))
        dispatcher.submit(dispatcher.subscribe(client_id, accepted))

    def handle_message(client_id: str, raw: str) -> None:
        try:
            message = events.parse_client_message(json.loads(raw))
            if message.event == events.SUBSCRIBE_STOCKS:
                start_subscription(client_id, message.symbols())
            else:
                dispatcher.submit(dispatcher.request_stock(client_id, message.symbol()))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            logger.debug("Rejected message from %s: %s", client_id, e)
            dispatcher.send_to(client_id, events.error(str(e)))

    @router.websocket("/ws")
    async def relay_socket(websocket: WebSocket) -> None:
        """Bidirectional channel: subscribeStocks/requestStock in, priceUpdate out."""
        client_id = (websocket.query_params.get("client_id") or "").strip() or uuid.uuid4().hex
        await websocket.accept()

        try:
            sessions.connect(client_id)
        except InvalidTransition as e:
            logger.warning("Refusing duplicate connection: %s", e)
            await websocket.close(code=DUPLICATE_CLIENT_CLOSE_CODE, reason="client_id already connected")
            return

        dispatcher.attach(WebSocketConnection(client_id, websocket))
        try:
            replay = sessions.established(client_id)
            if replay:
                start_subscription(client_id, replay, replayed=True)
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
                text = frame.get("text")
                if text is None:
                    logger.debug("Rejected binary frame from %s", client_id)
                    dispatcher.send_to(client_id, events.error("binary frames are not supported"))
                    continue
                handle_message(client_id, text)
        except WebSocketDisconnect as e:
            logger.info("WebSocket closed for %s (code %s)", client_id, e.code)
        finally:
            sessions.disconnect(client_id)
            await dispatcher.detach(client_id)

    return router
