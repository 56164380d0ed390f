"""Passthrough proxy -- forwards client requests to the two upstream providers.

Yahoo requests keep their path and query, minus anything that looks like a
pasted absolute URL. Alpha Vantage requests get the server-held API key
injected so it never reaches the browser. Status, content type and body
are passed back unchanged.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

# Browser-like headers reduce the chance of Yahoo blocking the request
YAHOO_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Referer": "https://finance.yahoo.com/",
}

_ABSOLUTE_URL = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
# Route prefixes a client may have copied along with the upstream path
_ROUTE_PREFIX = re.compile(r"^(?:.*?/)?(?:yapi|yahoo)(?:/|$)", re.IGNORECASE)


@dataclass
class ProxyResponse:
    status: int
    body: bytes
    content_type: str = "application/json"
    headers: dict[str, str] = field(default_factory=lambda: {"cache-control": "no-store"})


class ProxyConfigError(Exception):
    """The proxy cannot serve a provider because configuration is missing."""


def sanitize_path(path: str) -> str:
    """Reduce ``path`` to a path relative to the upstream host.

    Handles pasted absolute URLs ('https://query1.finance.yahoo.com/v8/...')
    and leftover route prefixes ('/.netlify/functions/yahoo/v8/...').
    """
    path = (path or "").strip()
    while _ABSOLUTE_URL.match(path):
        path = urlsplit(path).path
    match = _ROUTE_PREFIX.match(path)
    if match:
        path = path[match.end():]
    return path.lstrip("/")


def sanitize_query(
    params: Iterable[tuple[str, str]],
    drop: Iterable[str] = (),
) -> list[tuple[str, str]]:
    """Drop parameters named in ``drop`` and any whose value is an absolute URL."""
    dropped = {name.lower() for name in drop}
    cleaned: list[tuple[str, str]] = []
    for name, value in params:
        if name.lower() in dropped:
            continue
        if _ABSOLUTE_URL.match(value.strip()):
            logger.debug("Dropping query parameter %s with absolute URL value", name)
            continue
        cleaned.append((name, value))
    return cleaned


class PassthroughProxy:
    """Forwards GET requests to Yahoo Finance and Alpha Vantage."""

    def __init__(
        self,
        yahoo_upstream: str = "https://query1.finance.yahoo.com",
        alpha_vantage_upstream: str = "https://www.alphavantage.co",
        api_key: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._yahoo = yahoo_upstream.rstrip("/")
        self._alpha = alpha_vantage_upstream.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def forward_yahoo(self, path: str, params: Iterable[tuple[str, str]]) -> ProxyResponse:
        url = f"{self._yahoo}/{sanitize_path(path)}"
        return await self._forward(url, sanitize_query(params), YAHOO_HEADERS)

    async def forward_alpha_vantage(self, params: Iterable[tuple[str, str]]) -> ProxyResponse:
        """Forward to ``/query`` with the server-held key.

        Raises:
            ProxyConfigError: no API key is configured.
        """
        if not self._api_key:
            raise ProxyConfigError("Missing API_KEY in environment.")
        query = sanitize_query(params, drop=["apikey"])
        query.append(("apikey", self._api_key))
        return await self._forward(f"{self._alpha}/query", query, {"Accept": "application/json"})

    async def _forward(
        self,
        url: str,
        params: list[tuple[str, str]],
        headers: dict[str, str],
    ) -> ProxyResponse:
        logger.debug("Proxying GET %s", url)
        upstream = await self._client.get(url, params=params, headers=headers)
        return ProxyResponse(
            status=upstream.status_code,
            body=upstream.content,
            content_type=upstream.headers.get("content-type", "application/json"),
        )

    async def close(self) -> None:
        await self._client.aclose()
