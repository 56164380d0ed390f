"""Tests for cached, fallback-aware fetching and batch settlement."""

from __future__ import annotations

import asyncio

import pytest

from core.cache import RecordCache
from core.errors import AllSourcesFailed, UpstreamError
from core.models.market import Symbol
from core.registry import SourceRegistry
from engine.orchestrator import MarketDataOrchestrator
from fakes import FakeSource

EXPECTED_ORDER = ["NASDAQ", "SP500", "DOW", "CRUDE", "GOLD"]


def build(registry, symbols, clock, ttl_ms=60_000):
    cache = RecordCache(ttl_ms=ttl_ms, clock=clock)
    return MarketDataOrchestrator(registry, symbols, cache)


class TestFetchOne:

    @pytest.mark.asyncio
    async def test_cache_hit_skips_source(self, registry, yahoo, symbols, clock):
        orchestrator = build(registry, symbols, clock)

        first = await orchestrator.fetch_one("NASDAQ")
        clock.advance(30_000)
        second = await orchestrator.fetch_one("NASDAQ")

        assert second is first
        assert yahoo.calls == [("NASDAQ", "^NDX")]

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, registry, yahoo, symbols, clock):
        orchestrator = build(registry, symbols, clock, ttl_ms=1_000)

        first = await orchestrator.fetch_one("DOW")
        clock.advance(1_000)
        second = await orchestrator.fetch_one("DOW")

        assert second is not first
        assert len(yahoo.calls) == 2

    @pytest.mark.asyncio
    async def test_gold_falls_back_to_spot(self, symbols, clock):
        yahoo = FakeSource(errors={"GC=F": UpstreamError("HTTP 404", status=404)})
        registry = SourceRegistry()
        registry.register(yahoo)
        orchestrator = build(registry, symbols, clock)

        record = await orchestrator.fetch_one("GOLD")

        assert record.source == "yahoo-spot"
        assert record.is_fallback is True
        assert record.ticker == "XAUUSD=X"
        assert yahoo.calls == [("GOLD", "GC=F"), ("GOLD", "XAUUSD=X")]
        assert orchestrator.cache.get("GOLD") is record

    @pytest.mark.asyncio
    async def test_primary_error_without_fallback_propagates(self, symbols, clock):
        error = UpstreamError("HTTP 500", status=500)
        registry = SourceRegistry()
        registry.register(FakeSource(errors={"^DJI": error}))
        orchestrator = build(registry, symbols, clock)

        with pytest.raises(UpstreamError) as exc_info:
            await orchestrator.fetch_one("DOW")

        assert exc_info.value is error
        assert "DOW" not in orchestrator.cache

    @pytest.mark.asyncio
    async def test_both_gold_sources_fail_raises_primary(self, symbols, clock):
        primary = UpstreamError("HTTP 404", status=404)
        fallback = UpstreamError("HTTP 503", status=503)
        registry = SourceRegistry()
        registry.register(FakeSource(errors={"GC=F": primary, "XAUUSD=X": fallback}))
        orchestrator = build(registry, symbols, clock)

        with pytest.raises(UpstreamError) as exc_info:
            await orchestrator.fetch_one("GOLD")

        assert exc_info.value is primary
        assert exc_info.value.__cause__ is fallback

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_used_as_yahoo_ticker(self, registry, yahoo, symbols, clock):
        orchestrator = build(registry, symbols, clock)

        record = await orchestrator.fetch_one("AAPL")

        assert record.ticker == "AAPL"
        assert yahoo.calls == [("AAPL", "AAPL")]

    @pytest.mark.asyncio
    async def test_routes_to_configured_provider(self, registry, yahoo, clock):
        alpha = registry.get("alpha_vantage")
        symbols = [Symbol(key="SPY", ticker="SPY", name="SPDR S&P 500", provider="alpha_vantage")]
        orchestrator = build(registry, symbols, clock)

        await orchestrator.fetch_one("SPY")

        assert alpha.calls == [("SPY", "SPY")]
        assert yahoo.calls == []


class TestFetchAll:

    @pytest.mark.asyncio
    async def test_all_symbols_in_configured_order(self, registry, symbols, clock):
        orchestrator = build(registry, symbols, clock)

        readings = await orchestrator.fetch_all()

        assert [r.record.symbol for r in readings] == EXPECTED_ORDER
        assert all(r.bias.type in ("bullish", "bearish", "neutral") for r in readings)

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self, symbols, clock):
        registry = SourceRegistry()
        registry.register(FakeSource(errors={
            "^GSPC": UpstreamError("HTTP 500", status=500),
            "CL=F": UpstreamError("timeout"),
        }))
        orchestrator = build(registry, symbols, clock)

        readings = await orchestrator.fetch_all()

        assert [r.record.symbol for r in readings] == ["NASDAQ", "DOW", "GOLD"]

    @pytest.mark.asyncio
    async def test_total_failure_raises(self, symbols, clock):
        error = UpstreamError("down")
        registry = SourceRegistry()
        registry.register(FakeSource(errors={
            t: error for t in ("^NDX", "^GSPC", "^DJI", "CL=F", "GC=F", "XAUUSD=X")
        }))
        orchestrator = build(registry, symbols, clock)

        with pytest.raises(AllSourcesFailed) as exc_info:
            await orchestrator.fetch_all()

        assert sorted(exc_info.value.failures) == sorted(EXPECTED_ORDER)

    @pytest.mark.asyncio
    async def test_symbols_are_fetched_concurrently(self, symbols, clock):
        gate = asyncio.Event()
        yahoo = FakeSource(gate=gate)
        registry = SourceRegistry()
        registry.register(yahoo)
        orchestrator = build(registry, symbols, clock)

        task = asyncio.create_task(orchestrator.fetch_all())
        for _ in range(10):
            await asyncio.sleep(0)
        # Every request is in flight before any of them completes
        assert len(yahoo.calls) == 5

        gate.set()
        readings = await asyncio.wait_for(task, timeout=1)
        assert len(readings) == 5

    @pytest.mark.asyncio
    async def test_subset_of_symbols(self, registry, yahoo, symbols, clock):
        orchestrator = build(registry, symbols, clock)

        readings = await orchestrator.fetch_all(["GOLD", "NASDAQ"])

        assert [r.record.symbol for r in readings] == ["GOLD", "NASDAQ"]
        assert len(yahoo.calls) == 2


@pytest.mark.asyncio
async def test_unregistered_fallback_provider_keeps_primary_error(clock):
    primary = UpstreamError("HTTP 404", status=404)
    registry = SourceRegistry()
    registry.register(FakeSource(errors={"GC=F": primary}))
    symbols = [Symbol(
        key="GOLD", ticker="GC=F", name="Gold",
        fallback={"ticker": "GOLD", "provider": "alpha_vantage", "source_tag": "alpha"},
    )]
    orchestrator = build(registry, symbols, clock)

    with pytest.raises(UpstreamError) as exc_info:
        await orchestrator.fetch_one("GOLD")

    assert exc_info.value is primary
    assert isinstance(exc_info.value.__cause__, KeyError)
