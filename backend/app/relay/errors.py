"""Upstream fetch errors.

Every error carries the symbol it concerns so a batch can report failures
per symbol without aborting its siblings.
"""

from __future__ import annotations


class UpstreamError(Exception):
    """A quote could not be obtained for ``symbol``."""

    def __init__(self, symbol: str, cause: BaseException | str | None = None) -> None:
        self.symbol = symbol
        self.cause = cause
        detail = f": {cause}" if cause is not None and str(cause) else ""
        super().__init__(f"{self.reason} for {symbol}{detail}")

    reason = "upstream error"


class UpstreamUnavailable(UpstreamError):
    """Network failure, timeout or non-2xx response."""

    reason = "upstream unavailable"


class UpstreamRateLimited(UpstreamError):
    """Upstream answered 429 or the local call budget is exhausted."""

    reason = "rate limited"


class MalformedResponse(UpstreamError):
    """Provider payload did not match the expected schema."""

    reason = "malformed response"


class SymbolNotFound(UpstreamError):
    """Symbol is absent from the instrument reference data."""

    reason = "unknown symbol"
