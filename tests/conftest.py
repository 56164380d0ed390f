"""Pytest configuration for the overnight-bias test suite."""

from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest

from core.config import MarketDataConfig
from core.registry import SourceRegistry
from fakes import FakeSource

LONDON = ZoneInfo("Europe/London")


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def symbols():
    """The default five-symbol table (GOLD carries the spot fallback)."""
    return MarketDataConfig().symbol_table()


@pytest.fixture
def yahoo() -> FakeSource:
    return FakeSource("yahoo_finance")


@pytest.fixture
def registry(yahoo: FakeSource) -> SourceRegistry:
    reg = SourceRegistry()
    reg.register(yahoo)
    reg.register(FakeSource("alpha_vantage"))
    return reg
