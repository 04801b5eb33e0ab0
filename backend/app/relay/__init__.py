"""Market quote relay.

Public API:
    Quote                 - Immutable quote snapshot dataclass
    QuoteCache            - Thread-safe symbol -> latest quote store
    QuoteProvider         - Abstract interface for upstream data providers
    UpstreamFetcher       - Cache-aware, coalescing, fallback-aware fetcher
    BatchScheduler        - Paced, chunked fetch runs
    SubscriptionRegistry  - Connection -> symbols, plus the interest set
    BroadcastDispatcher   - Fan-out of fetched quotes to connected clients
    SessionTracker        - Reconnect state machine with subscription replay
    RelayConfig           - Environment-driven configuration
    create_quote_provider - Factory that selects simulator or Groww
    create_stream_router  - FastAPI router factory for the WebSocket endpoint
    create_api_router     - FastAPI router factory for the HTTP endpoints
"""

from .api import create_api_router
from .cache import QuoteCache
from .config import RelayConfig
from .dispatcher import BroadcastDispatcher
from .errors import (
    MalformedResponse,
    SymbolNotFound,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamUnavailable,
)
from .factory import create_quote_provider
from .fetcher import UpstreamFetcher
from .interface import QuoteProvider
from .models import Quote
from .registry import SubscriptionRegistry
from .scheduler import BatchScheduler
from .session import SessionTracker
from .stream import create_stream_router

__all__ = [
    "Quote",
    "QuoteCache",
    "QuoteProvider",
    "UpstreamFetcher",
    "BatchScheduler",
    "SubscriptionRegistry",
    "BroadcastDispatcher",
    "SessionTracker",
    "RelayConfig",
    "UpstreamError",
    "UpstreamUnavailable",
    "UpstreamRateLimited",
    "MalformedResponse",
    "SymbolNotFound",
    "create_quote_provider",
    "create_stream_router",
    "create_api_router",
]
