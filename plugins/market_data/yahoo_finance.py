"""Yahoo Finance chart source -- full OHLC series via httpx (no yfinance dependency).

Supports indices, futures and spot forex (Yahoo-style tickers).
Example tickers: ^NDX, ^GSPC, ^DJI, CL=F, GC=F, XAUUSD=X
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from core.errors import MalformedResponse, UpstreamError
from core.models.market import FullOHLCSeries, OHLCRecord
from core.sanitizer import locate_closes, to_finite

logger = logging.getLogger(__name__)

# Yahoo Finance chart API path, relative to the configured base URL
_CHART_PATH = "/v8/finance/chart/{ticker}"


def _value_at(values: list[Any], index: int) -> float | None:
    if index < 0 or index >= len(values):
        return None
    return to_finite(values[index])


def _as_list(values: Any) -> list[Any]:
    # Non-list arrays read as all-missing
    return list(values) if isinstance(values, list) else []


def _to_utc(epoch_seconds: float | None) -> datetime | None:
    if epoch_seconds is None:
        return None
    try:
        return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.debug("Ignoring out-of-range timestamp %r", epoch_seconds)
        return None


class YahooFinanceProvider:
    """Fetches the latest daily bar from Yahoo Finance's public chart API.

    Implements the MarketDataSource protocol.
    """

    def __init__(
        self,
        base_url: str = "https://query1.finance.yahoo.com",
        history_range: str = "10d",
        timeout: float = 30.0,
        user_agent: str = "overnight-bias/0.1",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._history_range = history_range
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )

    @property
    def name(self) -> str:
        return "yahoo_finance"

    async def fetch(self, symbol: str, ticker: str, name: str) -> OHLCRecord:
        """Fetch a short daily history for ``ticker`` and reduce it to one record."""
        series = await self._fetch_series(ticker)
        return self._build_record(symbol, ticker, name, series)

    async def _fetch_series(self, ticker: str) -> FullOHLCSeries:
        params = {
            "range": self._history_range,
            "interval": "1d",
            "includePrePost": "false",
        }
        url = self._base_url + _CHART_PATH.format(ticker=quote(ticker, safe=""))

        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"Yahoo Finance request failed for {ticker}: {exc}",
                details={"ticker": ticker},
            ) from exc

        if not response.is_success:
            logger.warning(
                "Yahoo Finance returned %d for %s", response.status_code, ticker
            )
            raise UpstreamError(
                f"HTTP {response.status_code} from Yahoo Finance for {ticker}",
                status=response.status_code,
                details={"ticker": ticker},
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse(
                f"Yahoo Finance returned non-JSON body for {ticker}",
                {"ticker": ticker},
            ) from exc

        return self._parse_chart(ticker, data)

    def _parse_chart(self, ticker: str, data: Any) -> FullOHLCSeries:
        """Pull the parallel OHLC arrays out of a chart API payload."""
        chart = data.get("chart") if isinstance(data, dict) else None
        chart = chart if isinstance(chart, dict) else {}
        results = chart.get("result")

        result = results[0] if isinstance(results, list) and results else None
        if not isinstance(result, dict):
            raise MalformedResponse(
                "Invalid data structure from Yahoo Finance",
                {"ticker": ticker, "error": chart.get("error")},
            )

        timestamps = result.get("timestamp")
        indicators = result.get("indicators")
        quotes = indicators.get("quote") if isinstance(indicators, dict) else None
        quote_block = quotes[0] if isinstance(quotes, list) and quotes else None

        if not isinstance(timestamps, list) or not timestamps or not isinstance(quote_block, dict):
            raise MalformedResponse(
                "Invalid data structure from Yahoo Finance",
                {"ticker": ticker},
            )

        return FullOHLCSeries(
            timestamps=timestamps,
            open=_as_list(quote_block.get("open")),
            high=_as_list(quote_block.get("high")),
            low=_as_list(quote_block.get("low")),
            close=_as_list(quote_block.get("close")),
        )

    def _build_record(
        self,
        symbol: str,
        ticker: str,
        name: str,
        series: FullOHLCSeries,
    ) -> OHLCRecord:
        """Reduce a series to its last complete day plus the day before."""
        idx = locate_closes(series.close)
        last, prev = idx.last, idx.prev

        close = _value_at(series.close, last)

        previous_high = previous_low = None
        prior_close = close
        if prev is not None:
            previous_high = _value_at(series.high, prev)
            previous_low = _value_at(series.low, prev)
            prior_close = _value_at(series.close, prev)

        timestamp = _to_utc(_value_at(series.timestamps, last))

        return OHLCRecord.from_closes(
            symbol=symbol,
            name=name,
            ticker=ticker,
            open=_value_at(series.open, last) or 0.0,
            high=_value_at(series.high, last) or 0.0,
            low=_value_at(series.low, last) or 0.0,
            close=close,
            prior_close=prior_close,
            previous_high=previous_high,
            previous_low=previous_low,
            timestamp=timestamp,
            source="yahoo",
            is_fallback=False,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
