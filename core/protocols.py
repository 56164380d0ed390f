"""Core protocols -- the seam between the orchestrator and the providers.

The orchestrator depends only on MarketDataSource; each provider module
under plugins/market_data implements it structurally (typing.Protocol),
so no base class is needed.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.models.market import OHLCRecord


@runtime_checkable
class MarketDataSource(Protocol):
    """Fetches one normalized daily bar for one ticker.

    Implementations own a single upstream response shape. They do not
    retry; fallback between sources is the orchestrator's job.
    """

    @property
    def name(self) -> str:
        """Provider name, e.g. 'yahoo_finance', 'alpha_vantage'."""
        ...

    async def fetch(self, symbol: str, ticker: str, name: str) -> OHLCRecord:
        """Fetch the latest bar for ``ticker`` and label it as ``symbol``.

        Raises a core.errors.MarketDataError subclass on failure.
        """
        ...

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        ...
