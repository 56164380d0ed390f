"""Source registry -- stores and retrieves MarketDataSource implementations.

At startup, the system instantiates one source per configured provider and
registers it here. The orchestrator routes each symbol to its provider by name.
"""

from __future__ import annotations

import logging

from core.protocols import MarketDataSource

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Central registry for market data sources.

    Usage:
        registry = SourceRegistry()
        registry.register(yahoo_provider)
        registry.register(alpha_provider)

        yahoo = registry.get("yahoo_finance")
    """

    def __init__(self) -> None:
        self._sources: dict[str, MarketDataSource] = {}

    def register(self, instance: MarketDataSource) -> None:
        """Register a source under its ``name``."""
        if not isinstance(instance, MarketDataSource):
            raise TypeError(
                f"{type(instance).__name__} does not implement MarketDataSource"
            )

        name = instance.name
        if name in self._sources:
            logger.warning("Overwriting existing market data source '%s'", name)

        self._sources[name] = instance
        logger.info("Registered market data source: %s", name)

    def get(self, name: str) -> MarketDataSource:
        """Get a source by provider name.

        Raises KeyError if not found.
        """
        if name not in self._sources:
            raise KeyError(
                f"No market data source named '{name}'. "
                f"Available: {list(self._sources.keys())}"
            )
        return self._sources[name]

    def get_all(self) -> list[MarketDataSource]:
        return list(self._sources.values())

    def has(self, name: str) -> bool:
        return name in self._sources

    def names(self) -> list[str]:
        return list(self._sources.keys())

    async def close_all(self) -> None:
        """Close every registered source, logging (not raising) failures."""
        for source in self._sources.values():
            try:
                await source.close()
            except Exception as e:
                logger.error("Error closing market data source %s: %s", source.name, e)
