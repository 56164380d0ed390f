"""Lightweight aiohttp server -- the consumer-facing HTTP API.

Serves the market board, single-symbol lookups, the schedule gate,
manual refreshes, and the passthrough proxy routes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import httpx
from aiohttp import web

from core.bias import compute_bias
from core.errors import AllSourcesFailed, MarketDataError
from core.models.signals import MarketReading
from core.schedule import schedule_state
from engine.board import reading_payload, schedule_payload
from engine.proxy import ProxyConfigError, ProxyResponse

if TYPE_CHECKING:
    from core.config import AppConfig
    from engine.board import MarketBoard
    from engine.orchestrator import MarketDataOrchestrator
    from engine.proxy import PassthroughProxy
    from scheduler.runner import RefreshScheduler

logger = logging.getLogger(__name__)


def create_app(
    config: AppConfig,
    orchestrator: MarketDataOrchestrator,
    board: MarketBoard,
    scheduler: RefreshScheduler | None = None,
    proxy: PassthroughProxy | None = None,
) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application()

    # Store references for route handlers
    app["config"] = config
    app["orchestrator"] = orchestrator
    app["board"] = board
    app["scheduler"] = scheduler
    app["proxy"] = proxy

    app.router.add_get("/health", handle_health)
    app.router.add_get("/market", handle_get_market)
    app.router.add_get("/market/{symbol}", handle_get_symbol)
    app.router.add_get("/schedule", handle_get_schedule)
    app.router.add_post("/refresh", handle_refresh)

    if proxy is not None:
        app.router.add_get("/yapi/{tail:.*}", handle_proxy_yahoo)
        app.router.add_get("/avapi", handle_proxy_alpha_vantage)

    return app


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def handle_health(request: web.Request) -> web.Response:
    """GET /health -- health check."""
    orchestrator: MarketDataOrchestrator = request.app["orchestrator"]
    scheduler: RefreshScheduler | None = request.app["scheduler"]

    next_run = scheduler.next_run_at if scheduler else None
    return web.json_response({
        "status": "ok",
        "symbols": orchestrator.symbols,
        "next_refresh_at": next_run.isoformat() if next_run else None,
    })


async def handle_get_market(request: web.Request) -> web.Response:
    """GET /market -- latest board readings, biases gated by the schedule."""
    board: MarketBoard = request.app["board"]
    return web.json_response(board.view())


async def handle_get_symbol(request: web.Request) -> web.Response:
    """GET /market/{symbol} -- one record (cached up to the TTL) plus its bias."""
    orchestrator: MarketDataOrchestrator = request.app["orchestrator"]
    config: AppConfig = request.app["config"]
    symbol = request.match_info["symbol"].upper()

    try:
        record = await orchestrator.fetch_one(symbol)
    except MarketDataError as exc:
        return web.json_response(exc.to_dict(), status=502)

    state = schedule_state(tz=config.schedule.timezone)
    reading = MarketReading(record=record, bias=compute_bias(record))
    body = reading_payload(reading, show_bias=state.visible)
    body["schedule"] = schedule_payload(state)
    return web.json_response(body)


async def handle_get_schedule(request: web.Request) -> web.Response:
    """GET /schedule -- prediction window state.

    Optional ``at`` query parameter (ISO 8601) evaluates another instant.
    """
    config: AppConfig = request.app["config"]
    at = request.query.get("at")

    now = None
    if at:
        try:
            now = datetime.fromisoformat(at.replace("Z", "+00:00"))
        except ValueError:
            return web.json_response({"error": f"Invalid 'at' timestamp: {at}"}, status=400)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

    state = schedule_state(now, config.schedule.timezone)
    return web.json_response(schedule_payload(state))


async def handle_refresh(request: web.Request) -> web.Response:
    """POST /refresh -- run a fetch cycle now and return the board."""
    board: MarketBoard = request.app["board"]

    try:
        await board.refresh("manual")
    except AllSourcesFailed:
        return web.json_response(board.view(), status=502)

    return web.json_response(board.view())


# ---------------------------------------------------------------------------
# Passthrough proxy
# ---------------------------------------------------------------------------

def _proxy_response(result: ProxyResponse) -> web.Response:
    headers = dict(result.headers)
    headers["Content-Type"] = result.content_type
    return web.Response(status=result.status, body=result.body, headers=headers)


def _proxy_error(provider: str, exc: Exception) -> web.Response:
    return web.json_response(
        {"error": f"Proxy error ({provider})", "details": str(exc)},
        status=500,
    )


async def handle_proxy_yahoo(request: web.Request) -> web.Response:
    """GET /yapi/{path} -- forward to Yahoo Finance."""
    proxy: PassthroughProxy = request.app["proxy"]
    try:
        result = await proxy.forward_yahoo(request.match_info["tail"], request.query.items())
    except httpx.HTTPError as exc:
        logger.warning("Yahoo proxy request failed: %s", exc)
        return _proxy_error("yahoo", exc)
    return _proxy_response(result)


async def handle_proxy_alpha_vantage(request: web.Request) -> web.Response:
    """GET /avapi?... -- forward to Alpha Vantage with the server-held key."""
    proxy: PassthroughProxy = request.app["proxy"]
    try:
        result = await proxy.forward_alpha_vantage(request.query.items())
    except ProxyConfigError as exc:
        return web.json_response({"error": str(exc)}, status=500)
    except httpx.HTTPError as exc:
        logger.warning("Alpha Vantage proxy request failed: %s", exc)
        return _proxy_error("alphavantage", exc)
    return _proxy_response(result)
