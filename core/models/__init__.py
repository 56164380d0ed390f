"""Pydantic data models shared across all components."""

from core.models.market import (
    CacheEntry,
    FallbackSource,
    FullOHLCSeries,
    OHLCRecord,
    PricePoint,
    SingleValueSeries,
    Symbol,
)
from core.models.signals import Bias, MarketReading, ScheduleState

__all__ = [
    "CacheEntry",
    "FallbackSource",
    "FullOHLCSeries",
    "OHLCRecord",
    "PricePoint",
    "SingleValueSeries",
    "Symbol",
    "Bias",
    "MarketReading",
    "ScheduleState",
]
