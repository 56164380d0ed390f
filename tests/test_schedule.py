"""Tests for the UK-time prediction window and next trading day."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from core.schedule import schedule_state
from conftest import LONDON


def london(*args) -> datetime:
    return datetime(*args, tzinfo=LONDON)


class TestVisibility:

    @pytest.mark.parametrize("hour, minute, visible", [
        (22, 59, False),
        (23, 0, False),
        (23, 1, True),
        (23, 59, True),
        (0, 0, True),
        (5, 59, True),
        (6, 0, False),
        (12, 0, False),
    ])
    def test_window_edges(self, hour, minute, visible):
        # Wednesday 15 October 2025 (BST)
        state = schedule_state(london(2025, 10, 15, hour, minute), LONDON)
        assert state.visible is visible

    def test_uses_uk_wall_clock_in_summer(self):
        # 22:30 UTC is 23:30 BST
        state = schedule_state(datetime(2025, 6, 2, 22, 30, tzinfo=timezone.utc), "Europe/London")
        assert state.visible is True
        assert state.now_local.hour == 23

    def test_uses_uk_wall_clock_in_winter(self):
        # 22:30 UTC is 22:30 GMT
        state = schedule_state(datetime(2025, 1, 8, 22, 30, tzinfo=timezone.utc), "Europe/London")
        assert state.visible is False

    def test_naive_datetime_is_utc(self):
        state = schedule_state(datetime(2025, 6, 2, 22, 30), "Europe/London")
        assert state.now_local.utcoffset().total_seconds() == 3600
        assert state.visible is True


class TestNextTradingDay:

    def test_friday_evening_rolls_to_monday(self):
        state = schedule_state(london(2025, 10, 17, 23, 1), LONDON)

        assert state.visible is True
        assert state.next_trading_day == date(2025, 10, 20)
        assert state.next_trading_day.weekday() == 0

    def test_friday_before_window_is_same_day(self):
        state = schedule_state(london(2025, 10, 17, 22, 59), LONDON)

        assert state.visible is False
        assert state.next_trading_day == date(2025, 10, 17)

    def test_weekday_evening_rolls_one_day(self):
        state = schedule_state(london(2025, 10, 15, 23, 30), LONDON)
        assert state.next_trading_day == date(2025, 10, 16)

    def test_early_morning_keeps_today(self):
        state = schedule_state(london(2025, 10, 16, 3, 0), LONDON)
        assert state.visible is True
        assert state.next_trading_day == date(2025, 10, 16)

    @pytest.mark.parametrize("day", [18, 19])
    def test_weekend_skips_to_monday(self, day):
        state = schedule_state(london(2025, 10, day, 3, 0), LONDON)
        assert state.next_trading_day == date(2025, 10, 20)

    def test_friday_evening_in_winter_utc_input(self):
        # Friday 10 January 2025, 23:30 GMT
        state = schedule_state(datetime(2025, 1, 10, 23, 30, tzinfo=timezone.utc), LONDON)
        assert state.next_trading_day == date(2025, 1, 13)

    def test_label(self):
        state = schedule_state(london(2025, 10, 17, 23, 1), LONDON)
        assert state.label == "Monday 20 October 2025"
