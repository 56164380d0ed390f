"""Market board -- the latest batch of readings, as shown to the consumer.

Refresh cycles come from three places: startup, the nightly scheduler and
manual refresh requests. A failed cycle keeps the previous readings.
Biases are masked in the view while the schedule gate is closed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from core.errors import AllSourcesFailed
from core.models.signals import MarketReading, ScheduleState
from core.schedule import schedule_state
from engine.orchestrator import MarketDataOrchestrator

logger = logging.getLogger(__name__)


class MarketBoard:
    """Holds the outcome of the most recent refresh cycle."""

    def __init__(self, orchestrator: MarketDataOrchestrator, timezone_name: str = "Europe/London") -> None:
        self._orchestrator = orchestrator
        self._timezone = timezone_name
        self._readings: list[MarketReading] = []
        self._refreshed_at: datetime | None = None
        self._last_error: AllSourcesFailed | None = None
        self._refresh_count = 0

    @property
    def readings(self) -> list[MarketReading]:
        return list(self._readings)

    @property
    def refreshed_at(self) -> datetime | None:
        return self._refreshed_at

    @property
    def last_error(self) -> AllSourcesFailed | None:
        return self._last_error

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    async def refresh(self, reason: str = "manual") -> list[MarketReading]:
        """Run one fetch cycle and store its readings.

        Raises AllSourcesFailed (after recording it) when nothing succeeded.
        """
        self._refresh_count += 1
        logger.info("Refreshing market board (%s)", reason)
        try:
            readings = await self._orchestrator.fetch_all()
        except AllSourcesFailed as exc:
            self._last_error = exc
            logger.error("Market board refresh failed (%s): %s", reason, exc)
            raise

        self._readings = readings
        self._refreshed_at = datetime.now(timezone.utc)
        self._last_error = None
        logger.info(
            "Market board refreshed: %d/%d symbols",
            len(readings), len(self._orchestrator.symbols),
        )
        return readings

    def view(self, now: datetime | None = None) -> dict[str, Any]:
        """JSON-ready board contents, with biases hidden outside the window."""
        state = schedule_state(now, self._timezone)
        return {
            "schedule": schedule_payload(state),
            "refreshed_at": self._refreshed_at.isoformat() if self._refreshed_at else None,
            "error": self._last_error.to_dict() if self._last_error else None,
            "markets": [
                reading_payload(reading, show_bias=state.visible)
                for reading in self._readings
            ],
        }


def schedule_payload(state: ScheduleState) -> dict[str, Any]:
    return {
        "now_local": state.now_local.isoformat(),
        "visible": state.visible,
        "next_trading_day": state.next_trading_day.isoformat(),
        "label": state.label,
    }


def reading_payload(reading: MarketReading, show_bias: bool = True) -> dict[str, Any]:
    record = reading.record.model_dump(mode="json")
    record["price"] = reading.record.price
    return {
        "record": record,
        "bias": reading.bias.model_dump(mode="json") if show_bias else None,
    }
