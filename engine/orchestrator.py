"""Market data orchestrator -- cached, fallback-aware fetching for the symbol set.

For each symbol:
1. Serve the cached record if it is younger than the TTL
2. Otherwise fetch from the symbol's primary source
3. On failure, try the symbol's fallback ticker (if one is defined)
4. Store any success in the cache, resetting its TTL

A batch fetch runs every symbol concurrently, waits for all of them to
settle, and fails only when nothing succeeded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from core.bias import compute_bias
from core.cache import RecordCache
from core.errors import AllSourcesFailed
from core.models.market import OHLCRecord, Symbol
from core.models.signals import MarketReading
from core.registry import SourceRegistry

logger = logging.getLogger(__name__)

# Used for keys missing from the symbol table
_DEFAULT_PROVIDER = "yahoo_finance"


class MarketDataOrchestrator:
    """Drives the sources for a fixed symbol table.

    Usage:
        orchestrator = MarketDataOrchestrator(registry, symbols, cache)
        record = await orchestrator.fetch_one("GOLD")
        readings = await orchestrator.fetch_all()
    """

    def __init__(
        self,
        registry: SourceRegistry,
        symbols: Iterable[Symbol],
        cache: RecordCache | None = None,
    ) -> None:
        self._registry = registry
        self._symbols: dict[str, Symbol] = {s.key: s for s in symbols}
        self._cache = cache if cache is not None else RecordCache()

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols.keys())

    @property
    def cache(self) -> RecordCache:
        return self._cache

    def symbol_info(self, key: str) -> Symbol:
        """Configured entry for ``key``; unknown keys map to themselves on Yahoo."""
        info = self._symbols.get(key)
        if info is None:
            info = Symbol(key=key, ticker=key, name=key, provider=_DEFAULT_PROVIDER)
        return info

    async def fetch_one(self, symbol: str) -> OHLCRecord:
        """Latest record for ``symbol``, from cache or upstream.

        Raises the primary source's error when no fallback is defined for
        the symbol, or when the fallback fails as well.
        """
        cached = self._cache.get(symbol)
        if cached is not None:
            logger.debug("Cache hit for %s", symbol)
            return cached

        info = self.symbol_info(symbol)
        source = self._registry.get(info.provider)

        try:
            record = await source.fetch(info.key, info.ticker, info.name)
        except Exception as primary_error:
            logger.warning(
                "Primary %s fetch failed for %s (%s): %s",
                info.provider, symbol, info.ticker, primary_error,
            )
            if info.fallback is None:
                raise
            record = await self._fetch_fallback(info, primary_error)

        self._cache.put(symbol, record)
        return record

    async def _fetch_fallback(self, info: Symbol, primary_error: Exception) -> OHLCRecord:
        fallback = info.fallback
        try:
            source = self._registry.get(fallback.provider)
            record = await source.fetch(info.key, fallback.ticker, info.name)
        except Exception as fallback_error:
            logger.error(
                "Fallback %s (%s) also failed for %s: %s",
                fallback.provider, fallback.ticker, info.key, fallback_error,
            )
            raise primary_error from fallback_error

        logger.info("Using fallback %s for %s", fallback.ticker, info.key)
        return record.model_copy(update={
            "source": fallback.source_tag,
            "is_fallback": True,
        })

    async def fetch_all(self, symbols: Iterable[str] | None = None) -> list[MarketReading]:
        """Fetch every symbol concurrently and keep the successes.

        Results follow the configured symbol order. Raises AllSourcesFailed
        only if no symbol succeeded.
        """
        keys = list(symbols) if symbols is not None else self.symbols
        settled = await asyncio.gather(
            *(self.fetch_one(key) for key in keys),
            return_exceptions=True,
        )

        readings: list[MarketReading] = []
        failures: dict[str, Exception] = {}
        for key, outcome in zip(keys, settled):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome  # cancellation and friends are not fetch failures
                logger.warning("Error fetching market data for %s: %s", key, outcome)
                failures[key] = outcome
                continue
            readings.append(MarketReading(record=outcome, bias=compute_bias(outcome)))

        if not readings:
            raise AllSourcesFailed(failures)

        if failures:
            logger.info(
                "Fetched %d/%d symbols (failed: %s)",
                len(readings), len(keys), ", ".join(failures),
            )
        return readings
