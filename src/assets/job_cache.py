"""Per-job single-flight image download cache.

When one job publishes to several platforms at once, every platform needs
the same source images. The first caller for a job starts the download
batch; concurrent and later callers await that same batch instead of
downloading again.

Entries expire ``ttl_seconds`` after creation. Expiry is checked lazily on
every access, there is no background sweeper. An entry is dropped as soon
as its batch raises, is cancelled, or reports any failed image, so the next
caller retries from scratch.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from src.common.config import settings
from src.common.logging import setup_logging

from .fetcher import FetchBatch
from .models import ImageAssetEntry

logger = setup_logging(module_name="assets.job_cache")

BatchFetcher = Callable[[Sequence[ImageAssetEntry]], Awaitable[FetchBatch]]


@dataclass
class _CacheEntry:
    created_at: float
    urls: frozenset[str]
    task: asyncio.Task


class JobImageCache:
    """Process-local, job-partitioned cache of download batches.

    Create one per process and pass it to every pipeline that should share
    downloads.

    Args:
        ttl_seconds: Lifetime of an entry (default from settings, 600s).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None
            else settings.pipeline.job_cache_ttl_seconds
        )
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def __contains__(self, job_id: str) -> bool:
        self._evict_expired()
        return job_id in self._entries

    def invalidate(self, job_id: str) -> None:
        self._entries.pop(job_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            job_id for job_id, entry in self._entries.items()
            if now - entry.created_at >= self.ttl_seconds
        ]
        for job_id in expired:
            logger.debug("Job cache entry expired: %s", job_id)
            del self._entries[job_id]

    def _on_done(self, job_id: str, entry: _CacheEntry) -> Callable[[asyncio.Task], None]:
        def _callback(task: asyncio.Task) -> None:
            if task.cancelled():
                reason = "cancelled"
            elif task.exception() is not None:
                reason = f"failed: {task.exception()}"
            elif task.result().failed:
                reason = f"{len(task.result().failed)} image(s) failed"
            else:
                return
            # A newer entry may have replaced this one in the meantime
            if self._entries.get(job_id) is entry:
                logger.info("Dropping job cache entry %s (%s)", job_id, reason)
                del self._entries[job_id]

        return _callback

    async def get_or_fetch(
        self,
        job_id: str,
        entries: Sequence[ImageAssetEntry],
        fetch_batch: BatchFetcher,
    ) -> FetchBatch:
        """Return the job's shared download batch, starting it if needed.

        URLs requested here that the shared batch does not cover are fetched
        directly with ``fetch_batch`` and merged into the returned result
        (but not into the cache).

        Raises:
            Exception: Whatever the shared batch raised.
        """
        self._evict_expired()

        entry = self._entries.get(job_id)
        if entry is None:
            task = asyncio.ensure_future(fetch_batch(list(entries)))
            entry = _CacheEntry(
                created_at=self._clock(),
                urls=frozenset(e.original_url for e in entries),
                task=task,
            )
            self._entries[job_id] = entry
            task.add_done_callback(self._on_done(job_id, entry))
            logger.debug("Job cache miss for %s: fetching %d image(s)", job_id, len(entries))
        else:
            logger.debug("Job cache hit for %s", job_id)

        # One caller giving up must not cancel the batch for the others
        batch = await asyncio.shield(entry.task)

        missing = [e for e in entries if e.original_url not in entry.urls]
        if missing:
            logger.debug("Fetching %d image(s) not covered by job %s", len(missing), job_id)
            batch = batch.merge(await fetch_batch(missing))
        return batch
