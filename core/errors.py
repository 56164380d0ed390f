"""Market data errors -- one hierarchy for sanitizing, fetching and batching.

Sanitizer and fetcher errors propagate to the orchestrator unchanged.
Only the per-symbol fallback and the batch-level aggregation recover.
"""

from __future__ import annotations

from typing import Any


class MarketDataError(Exception):
    """Base class for every failure on the market data path."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class EmptySeries(MarketDataError):
    """The upstream series contained zero points."""


class NoValidPoints(MarketDataError):
    """Every point was dropped while sanitizing a single-value series."""


class NoValidCloses(MarketDataError):
    """No index in an OHLC series carries a finite close."""


class UpstreamError(MarketDataError):
    """The provider answered with a non-success status, or not at all."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super_details = dict(details or {})
        if status is not None:
            super_details["status"] = status
        super().__init__(message, super_details)
        self.status = status


class MalformedResponse(MarketDataError):
    """The expected series container is missing from the payload."""


class AllSourcesFailed(MarketDataError):
    """A batch fetch produced no successful symbol at all."""

    def __init__(self, failures: dict[str, Exception]) -> None:
        super().__init__(
            f"Failed to fetch market data for all {len(failures)} symbol(s)",
            {"failures": {symbol: str(exc) for symbol, exc in failures.items()}},
        )
        self.failures = failures
