"""Next-session bias from one daily bar.

Deterministic, no I/O. An inside bar (today's range strictly within
yesterday's) is neutral. Otherwise the OHLC average is compared to the
close: above means bullish, anything else bearish.
"""

from __future__ import annotations

from core.models.market import OHLCRecord
from core.models.signals import Bias

INSIDE_BAR_REASON = "Inside bar detected — no signal for next session"
BULLISH_REASON = "Average price above closing price - expecting bullish momentum"
BEARISH_REASON = "Average price at or below closing price - expecting bearish momentum"


def is_inside_bar(record: OHLCRecord) -> bool:
    if record.previous_high is None or record.previous_low is None:
        return False
    return record.high < record.previous_high and record.low > record.previous_low


def compute_bias(record: OHLCRecord) -> Bias:
    """Classify ``record`` as bullish, bearish or neutral."""
    if is_inside_bar(record):
        return Bias(type="neutral", reason=INSIDE_BAR_REASON, is_inside_bar=True)

    average_price = (record.high + record.low + record.open + record.close) / 4

    # A tie with the close resolves to bearish
    if average_price > record.close:
        return Bias(
            type="bullish",
            reason=BULLISH_REASON,
            average_price=average_price,
            is_inside_bar=False,
        )
    return Bias(
        type="bearish",
        reason=BEARISH_REASON,
        average_price=average_price,
        is_inside_bar=False,
    )
