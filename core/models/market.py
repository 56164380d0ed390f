"""Market data models -- symbols, normalized daily bars and raw series shapes."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SourceTag = Literal["yahoo", "yahoo-spot", "alpha"]
ProviderName = Literal["yahoo_finance", "alpha_vantage"]
CalendarDate = date


class FallbackSource(BaseModel):
    """Alternate ticker tried when a symbol's primary fetch fails."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    provider: ProviderName = "yahoo_finance"
    source_tag: SourceTag = "yahoo-spot"


class Symbol(BaseModel):
    """A tracked instrument: our key, the provider's ticker and a display name."""

    model_config = ConfigDict(frozen=True)

    key: str
    ticker: str
    name: str
    provider: ProviderName = "yahoo_finance"
    fallback: FallbackSource | None = None


class PricePoint(BaseModel):
    """One dated value from a single-value-per-day series."""

    date: CalendarDate
    value: float


class OHLCRecord(BaseModel):
    """One normalized daily bar plus provenance.

    Built fresh on every successful fetch and never mutated; the next
    successful fetch for the same symbol supersedes it.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    name: str
    ticker: str
    open: float
    high: float
    low: float
    close: float
    prior_close: float
    previous_high: float | None = None
    previous_low: float | None = None
    change: float = 0.0
    change_percent: float = 0.0
    timestamp: datetime | None = None
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: SourceTag = "yahoo"
    is_fallback: bool = False

    @property
    def price(self) -> float:
        return self.close

    @classmethod
    def from_closes(cls, *, close: float, prior_close: float, **fields: Any) -> OHLCRecord:
        """Build a record, deriving change and change percent from the two closes.

        A zero prior close yields a change percent of 0 rather than a division error.
        """
        change = close - prior_close
        change_percent = (change / prior_close) * 100 if prior_close != 0 else 0.0
        return cls(
            close=close,
            prior_close=prior_close,
            change=change,
            change_percent=change_percent,
            **fields,
        )


class CacheEntry(BaseModel):
    """A cached record and the epoch milliseconds at which it was fetched."""

    model_config = ConfigDict(frozen=True)

    record: OHLCRecord
    fetched_at_ms: float


# ---------------------------------------------------------------------------
# Raw upstream shapes
# ---------------------------------------------------------------------------

class FullOHLCSeries(BaseModel):
    """Parallel arrays from a chart-style provider; entries may be null."""

    kind: Literal["full_ohlc"] = "full_ohlc"
    timestamps: list[Any] = Field(default_factory=list)
    open: list[Any] = Field(default_factory=list)
    high: list[Any] = Field(default_factory=list)
    low: list[Any] = Field(default_factory=list)
    close: list[Any] = Field(default_factory=list)


class SingleValueSeries(BaseModel):
    """Loose ``{date, value}`` candidates from a function-style provider."""

    kind: Literal["single_value"] = "single_value"
    points: list[Any] = Field(default_factory=list)
