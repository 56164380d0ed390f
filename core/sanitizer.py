"""Time series sanitizing -- one function per upstream series shape.

Single-value series are filtered to parseable points and sorted by date.
Indexed OHLC series are walked backward to the last two valid closes.
Neither function mutates its input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Sequence

from core.errors import EmptySeries, NoValidCloses, NoValidPoints
from core.models.market import PricePoint


@dataclass(frozen=True)
class CloseIndices:
    """Positions of the latest valid close and the nearest valid one before it."""

    last: int
    prev: int | None = None


def to_finite(value: Any) -> float | None:
    """Return ``value`` as a finite float, or None if it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def sanitize_points(raw: Sequence[dict[str, Any] | None]) -> list[PricePoint]:
    """Keep points with a finite value and a valid date, ascending by date.

    Raises:
        EmptySeries: ``raw`` has no entries at all.
        NoValidPoints: filtering removed every entry.
    """
    if not raw:
        raise EmptySeries("Series contains no points")

    points: list[PricePoint] = []
    for candidate in raw:
        if not isinstance(candidate, dict):
            continue
        value = to_finite(candidate.get("value"))
        day = _to_date(candidate.get("date"))
        if value is None or day is None:
            continue
        points.append(PricePoint(date=day, value=value))

    if not points:
        raise NoValidPoints(
            "Series contains no valid points",
            {"received": len(raw)},
        )

    # sorted() is stable, so same-day duplicates keep upstream order
    return sorted(points, key=lambda p: p.date)


def locate_closes(closes: Sequence[Any]) -> CloseIndices:
    """Find the rightmost finite close and the nearest finite close before it.

    Raises:
        NoValidCloses: no entry in ``closes`` is a finite number.
    """
    last = len(closes) - 1
    while last >= 0 and to_finite(closes[last]) is None:
        last -= 1
    if last < 0:
        raise NoValidCloses("No valid close values in series", {"length": len(closes)})

    prev = last - 1
    while prev >= 0 and to_finite(closes[prev]) is None:
        prev -= 1

    return CloseIndices(last=last, prev=prev if prev >= 0 else None)
