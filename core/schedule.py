"""Schedule gate -- when predictions are visible and which day they are for.

Everything is computed from wall-clock time in a reference timezone
(UK civil time by default, so BST/GMT transitions are followed). The
window opens at 23:01 and closes at 06:00. No holiday calendar is
consulted; only Saturdays and Sundays are skipped.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from core.models.signals import ScheduleState

DEFAULT_TIMEZONE = "Europe/London"

WINDOW_OPEN_HOUR = 23
WINDOW_OPEN_MINUTE = 1
WINDOW_CLOSE_HOUR = 6

_WEEKEND = (5, 6)  # date.weekday(): Saturday, Sunday


def resolve_timezone(tz: str | tzinfo | None) -> tzinfo:
    if tz is None:
        return ZoneInfo(DEFAULT_TIMEZONE)
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_local(now: datetime, tz: str | tzinfo | None = None) -> datetime:
    """Convert ``now`` to the reference timezone; naive values are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(resolve_timezone(tz))


def in_evening_window(local: datetime) -> bool:
    return local.hour == WINDOW_OPEN_HOUR and local.minute >= WINDOW_OPEN_MINUTE


def is_visible(local: datetime) -> bool:
    return in_evening_window(local) or local.hour < WINDOW_CLOSE_HOUR


def next_trading_day(local: datetime) -> date:
    """Weekday the current (or upcoming) bias applies to."""
    day = local.date()
    if in_evening_window(local):
        day += timedelta(days=1)
    while day.weekday() in _WEEKEND:
        day += timedelta(days=1)
    return day


def schedule_state(
    now: datetime | None = None,
    tz: str | tzinfo | None = None,
) -> ScheduleState:
    """Evaluate the gate at ``now`` (defaults to the current instant)."""
    if now is None:
        now = datetime.now(timezone.utc)
    local = to_local(now, tz)
    return ScheduleState(
        now_local=local,
        visible=is_visible(local),
        next_trading_day=next_trading_day(local),
    )
