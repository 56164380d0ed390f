"""Minimal cron expression parser. No external dependencies.

Supports standard 5-field cron: minute hour day_of_month month day_of_week

Examples:
    "1 23 * * *"     -> daily at 23:01 (the nightly refresh)
    "1 23 * * 1-5"   -> weekdays at 23:01
    "*/5 * * * *"    -> every 5 minutes

Expressions are matched against wall-clock time in a given timezone, so
"1 23 * * *" in Europe/London fires at 23:01 in both GMT and BST.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

# A weekly expression always matches within this horizon
_SEARCH_HORIZON = timedelta(days=8)


def cron_matches(expression: str, dt: datetime) -> bool:
    """Check if a datetime matches a cron expression.

    Args:
        expression: 5-field cron string (minute hour dom month dow)
        dt: datetime to check against, in the wall-clock zone of interest

    Returns:
        True if the datetime matches all cron fields.
    """
    minute, hour, dom, month, dow = _split(expression)

    # Every field is parsed, even after a mismatch
    results = [
        _field_matches(minute, dt.minute),
        _field_matches(hour, dt.hour),
        _field_matches(dom, dt.day),
        _field_matches(month, dt.month),
        _field_matches(dow, dt.isoweekday() % 7),  # 0=Sun, 6=Sat
    ]
    return all(results)


def next_fire_after(expression: str, after: datetime, tz: tzinfo) -> datetime:
    """First whole minute strictly after ``after`` that matches in ``tz``.

    Walks forward in UTC minutes and converts each to local time, so DST
    gaps are skipped and repeated hours match once per real instant.
    The result is timezone-aware, in ``tz``.

    Raises:
        ValueError: the expression is malformed or never matches within
            the search horizon (e.g. '0 0 31 2 *').
    """
    validate_cron(expression)
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)

    candidate = after.astimezone(timezone.utc).replace(second=0, microsecond=0)
    candidate += timedelta(minutes=1)
    deadline = candidate + _SEARCH_HORIZON

    while candidate < deadline:
        local = candidate.astimezone(tz)
        if cron_matches(expression, local):
            return local
        candidate += timedelta(minutes=1)

    raise ValueError(f"Cron expression {expression!r} has no match within {_SEARCH_HORIZON.days} days")


def validate_cron(expression: str) -> str:
    """Parse every field of ``expression``; raise ValueError if any is malformed."""
    for field in _split(expression):
        _field_matches(field, 0)
    return expression


def _split(expression: str) -> list[str]:
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(f"Invalid cron expression (need 5 fields): {expression!r}")
    return parts


def _field_matches(field: str, value: int) -> bool:
    """Check if a single cron field matches a value.

    Supports: *, */N, N, N-M, N,M,O
    """
    if field == "*":
        return True

    if field.startswith("*/"):
        try:
            step = int(field[2:])
        except ValueError:
            raise ValueError(f"Invalid cron step: {field!r}")
        if step <= 0:
            raise ValueError(f"Invalid cron step: {field!r}")
        return value % step == 0

    # List: N,M,O (may contain ranges)
    if "," in field:
        # Evaluate every part so a malformed entry is never skipped
        matches = [_field_matches(part.strip(), value) for part in field.split(",")]
        return any(matches)

    if "-" in field:
        start, end = field.split("-", 1)
        try:
            low, high = int(start), int(end)
        except ValueError:
            raise ValueError(f"Invalid cron range: {field!r}")
        return low <= value <= high

    try:
        return value == int(field)
    except ValueError:
        raise ValueError(f"Invalid cron field: {field!r}")
