"""Bias and schedule models -- the derived, never-persisted outputs."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from core.models.market import OHLCRecord

BiasType = Literal["bullish", "bearish", "neutral"]


class Bias(BaseModel):
    """Directional call for the next session, derived from one record."""

    model_config = ConfigDict(frozen=True)

    type: BiasType
    reason: str
    average_price: float | None = None
    is_inside_bar: bool = False


class MarketReading(BaseModel):
    """A record together with the bias computed from it."""

    model_config = ConfigDict(frozen=True)

    record: OHLCRecord
    bias: Bias


class ScheduleState(BaseModel):
    """Visibility of predictions at one instant, in the reference timezone."""

    now_local: datetime
    visible: bool
    next_trading_day: date

    @property
    def label(self) -> str:
        """Human label for the session the bias applies to, e.g. 'Monday 20 October 2025'."""
        day = self.next_trading_day
        return f"{day.strftime('%A')} {day.day} {day.strftime('%B %Y')}"
