"""Alpha Vantage commodities source -- one value per day, OHLC inferred.

The commodity endpoints (WTI, BRENT, GOLD, ...) publish a single price per
date. The bar is approximated from the last two points: open is the prior
close, high/low are the max/min of open and close. Downstream bias values
depend on this exact approximation.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from typing import Any

import httpx

from core.errors import MalformedResponse, UpstreamError
from core.models.market import OHLCRecord, SingleValueSeries
from core.sanitizer import sanitize_points

logger = logging.getLogger(__name__)


class AlphaVantageProvider:
    """Fetches daily commodity prices from Alpha Vantage's function API.

    Implements the MarketDataSource protocol. ``ticker`` is the function
    name, e.g. ``WTI``.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://www.alphavantage.co",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    @property
    def name(self) -> str:
        return "alpha_vantage"

    async def fetch(self, symbol: str, ticker: str, name: str) -> OHLCRecord:
        series = await self._fetch_series(ticker)
        return self._build_record(symbol, ticker, name, series)

    async def _fetch_series(self, function: str) -> SingleValueSeries:
        params = {"function": function, "interval": "daily", "datatype": "json"}
        if self._api_key:
            params["apikey"] = self._api_key
        else:
            logger.warning("No Alpha Vantage API key configured; request for %s may be refused", function)

        try:
            response = await self._client.get(f"{self._base_url}/query", params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"Alpha Vantage request failed for {function}: {exc}",
                details={"function": function},
            ) from exc

        if not response.is_success:
            raise UpstreamError(
                f"HTTP {response.status_code} from Alpha Vantage for {function}",
                status=response.status_code,
                details={"function": function},
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponse(
                f"Alpha Vantage returned non-JSON body for {function}",
                {"function": function},
            ) from exc

        points = data.get("data") if isinstance(data, dict) else None
        if not isinstance(points, list):
            # Rate limits and bad keys come back as 200 with a note instead of data
            note = None
            if isinstance(data, dict):
                note = data.get("Note") or data.get("Information") or data.get("Error Message")
            raise MalformedResponse(
                "No data array in Alpha Vantage commodity response",
                {"function": function, "note": note},
            )

        return SingleValueSeries(points=points)

    def _build_record(
        self,
        symbol: str,
        ticker: str,
        name: str,
        series: SingleValueSeries,
    ) -> OHLCRecord:
        points = sanitize_points(series.points)
        last = points[-1]
        prev = points[-2] if len(points) > 1 else last

        close = last.value
        prior_close = prev.value
        open_ = prior_close
        high = max(open_, close)
        low = min(open_, close)

        return OHLCRecord.from_closes(
            symbol=symbol,
            name=name,
            ticker=ticker,
            open=open_,
            high=high,
            low=low,
            close=close,
            prior_close=prior_close,
            previous_high=prior_close,
            previous_low=prior_close,
            timestamp=datetime.combine(last.date, time.min, tzinfo=timezone.utc),
            source="alpha",
            is_fallback=False,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
