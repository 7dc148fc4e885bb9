"""
In-memory extraction cache.

Avoids re-scraping and re-extracting a company whose domain was processed
recently. Entries are keyed by normalized domain, expire after a TTL and the
least-recently-used entry is evicted once the cache is full.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from src.core.config import settings
from src.core.utils import normalize_domain
from src.search.schemas import InsightPayload

logger = logging.getLogger(__name__)


class ExtractionCacheProtocol(Protocol):
    async def get(self, website: Optional[str]) -> Optional[InsightPayload]: ...

    async def set(self, website: Optional[str], payload: InsightPayload) -> None: ...


@dataclass
class ExtractionCacheEntry:
    domain: str
    payload: InsightPayload
    inserted_at: float


class ExtractionCache:
    """
    Concurrency-safe TTL + LRU cache of extraction payloads.

    The payload is returned as stored; callers that need candidate-specific
    identity fields copy it with InsightPayload.for_company().
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.extraction_cache_ttl_seconds
        self.max_entries = max_entries if max_entries is not None else settings.extraction_cache_max_entries
        if self.max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._clock = clock
        self._entries: "OrderedDict[str, ExtractionCacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    def _is_expired(self, entry: ExtractionCacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl_seconds

    async def get(self, website: Optional[str]) -> Optional[InsightPayload]:
        key = normalize_domain(website)
        if not key:
            return None

        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                self.misses += 1
                logger.debug(f"Extraction cache expired for {key}")
                return None

            self._entries.move_to_end(key)
            self.hits += 1

        logger.info(f"Extraction cache hit for {key} (age {now - entry.inserted_at:.0f}s)")
        return entry.payload

    async def set(self, website: Optional[str], payload: InsightPayload) -> None:
        key = normalize_domain(website)
        if not key:
            return

        async with self._lock:
            self._entries[key] = ExtractionCacheEntry(
                domain=key,
                payload=payload,
                inserted_at=self._clock(),
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Extraction cache full, evicted {evicted}")

        logger.debug(f"Stored extraction for {key}")

    async def prune(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Pruned {len(expired)} expired extraction cache entries")
        return len(expired)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> Dict[str, float]:
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }

    def __len__(self) -> int:
        return len(self._entries)


# Process-wide default; the orchestrator accepts any ExtractionCacheProtocol
extraction_cache = ExtractionCache()
