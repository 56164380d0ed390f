"""In-memory record cache keyed by symbol, with a fixed TTL.

Owned by one orchestrator instance. Writes are last-write-wins: two
concurrent fetches for the same symbol may both store, and the later
one stays. There is no locking.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from core.models.market import CacheEntry, OHLCRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000.0


def epoch_ms() -> float:
    return time.time() * 1000


class RecordCache:
    """Symbol -> CacheEntry mapping that never returns an expired entry."""

    def __init__(
        self,
        ttl_ms: float = DEFAULT_TTL_MS,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    def get(self, symbol: str) -> OHLCRecord | None:
        """Return the cached record if it is younger than the TTL."""
        entry = self._entries.get(symbol)
        if entry is None:
            return None
        age = self._clock() - entry.fetched_at_ms
        if age >= self._ttl_ms:
            logger.debug("Cache entry for %s expired (%.0fms old)", symbol, age)
            return None
        return entry.record

    def put(self, symbol: str, record: OHLCRecord) -> CacheEntry:
        """Replace the entry for ``symbol``, resetting its TTL."""
        entry = CacheEntry(record=record, fetched_at_ms=self._clock())
        self._entries[symbol] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._entries

    def __len__(self) -> int:
        return len(self._entries)
