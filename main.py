"""Overnight Bias entrypoint -- wires all components together and starts the server.

Usage:
    python main.py
    python main.py --config /path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass

from aiohttp import web

from core.cache import RecordCache
from core.config import AppConfig, load_config
from core.registry import SourceRegistry
from engine.board import MarketBoard
from engine.orchestrator import MarketDataOrchestrator
from engine.proxy import PassthroughProxy
from plugins.market_data.alpha_vantage import AlphaVantageProvider
from plugins.market_data.yahoo_finance import YahooFinanceProvider
from scheduler.runner import RefreshScheduler
from server import create_app


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet down noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Overnight market bias service")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config.yaml (default: ~/.overnight-bias/config.yaml)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: ~/.overnight-bias/.env)",
    )
    return parser.parse_args()


@dataclass
class Services:
    """Everything a fetch cycle or an HTTP request needs."""

    config: AppConfig
    registry: SourceRegistry
    orchestrator: MarketDataOrchestrator
    board: MarketBoard

    async def close(self) -> None:
        await self.registry.close_all()


def build_registry(config: AppConfig) -> SourceRegistry:
    """Instantiate one source per provider."""
    md = config.market_data
    registry = SourceRegistry()
    registry.register(YahooFinanceProvider(
        base_url=md.yahoo_finance.base_url,
        history_range=md.history_range,
        timeout=md.yahoo_finance.timeout,
        user_agent=md.yahoo_finance.user_agent,
    ))
    registry.register(AlphaVantageProvider(
        api_key=md.alpha_vantage.resolved_api_key,
        base_url=md.alpha_vantage.base_url,
        timeout=md.alpha_vantage.timeout,
    ))
    return registry


def build_services(config: AppConfig, registry: SourceRegistry | None = None) -> Services:
    registry = registry or build_registry(config)
    orchestrator = MarketDataOrchestrator(
        registry=registry,
        symbols=config.market_data.symbol_table(),
        cache=RecordCache(ttl_ms=config.market_data.cache_ttl_ms),
    )
    board = MarketBoard(orchestrator, timezone_name=config.schedule.timezone)
    return Services(config=config, registry=registry, orchestrator=orchestrator, board=board)


def build_proxy(config: AppConfig) -> PassthroughProxy | None:
    if not config.proxy.enabled:
        return None
    return PassthroughProxy(
        yahoo_upstream=config.proxy.yahoo_upstream,
        alpha_vantage_upstream=config.proxy.alpha_vantage_upstream,
        api_key=config.proxy.resolved_api_key,
        timeout=config.proxy.timeout,
    )


async def run(config_path: str | None = None, env_path: str | None = None) -> None:
    """Initialize all components and start the server."""
    config = load_config(config_path=config_path, env_path=env_path)
    logging.getLogger().setLevel(getattr(logging, config.logging.level.upper(), logging.INFO))
    logger = logging.getLogger("overnight_bias")
    logger.info("Configuration loaded (%d symbols)", len(config.market_data.symbols))

    services = build_services(config)
    proxy = build_proxy(config)

    scheduler = RefreshScheduler(
        refresh=services.board.refresh,
        cron_expression=config.schedule.refresh_cron,
        timezone_name=config.schedule.timezone,
        run_on_start=config.schedule.refresh_on_start,
    )

    app = create_app(
        config=config,
        orchestrator=services.orchestrator,
        board=services.board,
        scheduler=scheduler,
        proxy=proxy,
    )

    await scheduler.start()

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()

    logger.info(
        "Overnight Bias running at http://%s:%d",
        config.server.host,
        config.server.port,
    )

    # Run until interrupted
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        logger.info("Shutting down...")
        await scheduler.stop()
        await services.close()
        if proxy is not None:
            await proxy.close()
        await runner.cleanup()
        logger.info("Shutdown complete")


def main() -> None:
    args = parse_args()
    setup_logging("INFO")
    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
