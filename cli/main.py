"""Overnight Bias CLI -- the `overnight-bias` command.

Usage:
    overnight-bias serve              Start the server and nightly scheduler
    overnight-bias quotes             Fetch every tracked symbol and print biases
    overnight-bias quote GOLD         Fetch one symbol
    overnight-bias schedule           Show the prediction window state
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime

from core.bias import compute_bias
from core.config import AppConfig, load_config
from core.errors import MarketDataError
from core.models.market import OHLCRecord
from core.models.signals import Bias, ScheduleState
from core.schedule import schedule_state

_ARROWS = {"bullish": "▲", "bearish": "▼", "neutral": "■"}


def _load(args: argparse.Namespace) -> AppConfig:
    return load_config(config_path=args.config, env_path=args.env)


def format_reading(record: OHLCRecord, bias: Bias | None) -> str:
    """One line per symbol: price, change, source and (if shown) bias."""
    line = (
        f"  {record.symbol:<8} {record.name:<12} {record.close:>12,.2f} "
        f"{record.change:>+10.2f} ({record.change_percent:+.2f}%)  "
        f"H {record.high:,.2f}  L {record.low:,.2f}  [{record.source}"
        f"{', fallback' if record.is_fallback else ''}]"
    )
    if bias is not None:
        line += f"  {_ARROWS[bias.type]} {bias.type.upper()}"
        if bias.average_price is not None:
            line += f" (avg {bias.average_price:,.2f})"
    return line


def format_schedule(state: ScheduleState) -> str:
    status = "VISIBLE" if state.visible else "hidden until 23:01"
    return (
        f"  Local time:   {state.now_local:%Y-%m-%d %H:%M:%S %Z}\n"
        f"  Predictions:  {status}\n"
        f"  Next session: {state.label}"
    )


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the HTTP server and the nightly refresh scheduler."""
    from main import run, setup_logging
    setup_logging(args.log_level)

    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


async def _fetch_quotes(config: AppConfig, symbol: str | None) -> list[tuple[OHLCRecord, Bias]]:
    from main import build_services

    services = build_services(config)
    try:
        if symbol:
            record = await services.orchestrator.fetch_one(symbol)
            return [(record, compute_bias(record))]
        readings = await services.orchestrator.fetch_all()
        return [(r.record, r.bias) for r in readings]
    finally:
        await services.close()


def _print_quotes(args: argparse.Namespace, symbol: str | None) -> None:
    config = _load(args)
    state = schedule_state(tz=config.schedule.timezone)

    try:
        rows = asyncio.run(_fetch_quotes(config, symbol))
    except MarketDataError as exc:
        print(f"  Error: {exc.message}")
        sys.exit(1)

    show_bias = state.visible or args.always
    print(format_schedule(state))
    print()
    for record, bias in rows:
        print(format_reading(record, bias if show_bias else None))
    if not show_bias:
        print()
        print("  Bias is hidden outside the 23:01-06:00 window (use --always to show).")


def cmd_quotes(args: argparse.Namespace) -> None:
    """Fetch all tracked symbols."""
    _print_quotes(args, None)


def cmd_quote(args: argparse.Namespace) -> None:
    """Fetch one symbol."""
    _print_quotes(args, args.symbol.upper())


def cmd_schedule(args: argparse.Namespace) -> None:
    """Show the prediction window state, now or at --at."""
    config = _load(args)
    now = None
    if args.at:
        try:
            now = datetime.fromisoformat(args.at)
        except ValueError:
            print(f"  Invalid --at timestamp: {args.at}")
            sys.exit(2)
    print(format_schedule(schedule_state(now, config.schedule.timezone)))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="overnight-bias",
        description="Overnight Bias -- next-session bias for indices and commodities",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--env", type=str, default=None, help="Path to .env file")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level for serve")

    sub = parser.add_subparsers(dest="command")

    # serve
    sub.add_parser("serve", help="Start the server and nightly scheduler")

    # quotes
    quotes_parser = sub.add_parser("quotes", help="Fetch all tracked symbols")
    quotes_parser.add_argument("--always", action="store_true", help="Show bias outside the window")

    # quote
    quote_parser = sub.add_parser("quote", help="Fetch one symbol")
    quote_parser.add_argument("symbol", type=str, help="Symbol key, e.g. GOLD")
    quote_parser.add_argument("--always", action="store_true", help="Show bias outside the window")

    # schedule
    schedule_parser = sub.add_parser("schedule", help="Show the prediction window state")
    schedule_parser.add_argument("--at", type=str, default=None, help="ISO timestamp to evaluate")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    commands = {
        "serve": cmd_serve,
        "quotes": cmd_quotes,
        "quote": cmd_quote,
        "schedule": cmd_schedule,
    }

    handler = commands.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
