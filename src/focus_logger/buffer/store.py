"""Durable, merge-aware queue of log entries awaiting sync."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import diskcache

from focus_logger.buffer.merge import find_by_url, merge_entries, purge_count, subtract_delivered
from focus_logger.exceptions import BufferStoreError
from focus_logger.models import LogEntry, iso_timestamp

logger = logging.getLogger(__name__)

LOGS_KEY = "logs"
BYTES_PER_MB = 1024 * 1024


@dataclass
class PurgeResult:
    """Outcome of a quota check."""

    used_mb: float
    purged: bool
    purged_count: int = 0


@dataclass
class BufferSnapshot:
    """Entries as read by a sync pass and how many had been evicted by then."""

    entries: list[LogEntry]
    evicted: int = 0


def serialized_size(entries: Iterable[LogEntry]) -> int:
    """Estimated storage footprint in bytes (UTF-8 JSON)."""
    payload = json.dumps([e.to_dict() for e in entries], separators=(",", ":"))
    return len(payload.encode("utf-8"))


class BufferStore:
    """Oldest-first list of LogEntry persisted under a single cache key.

    Every mutation reads, modifies and writes the whole list while holding
    one lock, so the tracker and the sync engine never lose each other's
    updates. At most one entry exists per URL: a second entry for the same
    URL is merged into the first.

    Args:
        cache: Open diskcache.Cache (shared with LocalState).
        storage_quota_mb: Serialized size that triggers a purge.
        purge_percentage: Fraction of the oldest entries evicted per purge.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        cache: diskcache.Cache,
        storage_quota_mb: float = 4,
        purge_percentage: float = 0.1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self.storage_quota_mb = storage_quota_mb
        self.purge_percentage = purge_percentage
        self._clock = clock
        self._lock = asyncio.Lock()
        # Entries dropped from the head by purges and clears, in this process.
        self._evicted = 0

    # ---- raw persistence ----

    def _read(self) -> list[LogEntry]:
        try:
            raw = self._cache.get(LOGS_KEY, [])
        except Exception as e:
            raise BufferStoreError(f"Failed to read buffer: {e}") from e
        return [LogEntry.from_dict(item) for item in raw or []]

    def _write(self, entries: list[LogEntry]) -> None:
        try:
            self._cache.set(LOGS_KEY, [e.to_dict() for e in entries])
        except Exception as e:
            raise BufferStoreError(f"Failed to write buffer: {e}") from e

    def _purge_if_needed(self, entries: list[LogEntry]) -> tuple[list[LogEntry], PurgeResult]:
        used_mb = serialized_size(entries) / BYTES_PER_MB
        logger.debug("Storage check: %.2fMB used, %d entries", used_mb, len(entries))
        if used_mb <= self.storage_quota_mb:
            return entries, PurgeResult(used_mb=used_mb, purged=False)

        count = purge_count(len(entries), self.purge_percentage)
        remaining = entries[count:]
        logger.warning(
            "Storage purge triggered: evicted %d oldest entries, %d remaining",
            count,
            len(remaining),
        )
        return remaining, PurgeResult(used_mb=used_mb, purged=True, purged_count=count)

    # ---- public API ----

    async def append(self, entry: LogEntry) -> int:
        """Add ``entry`` (merging on URL) after enforcing the quota. Returns the new size."""
        async with self._lock:
            return await asyncio.to_thread(self._append, entry)

    def _append(self, entry: LogEntry) -> int:
        entries, purge = self._purge_if_needed(self._read())
        idx = find_by_url(entries, entry.url)
        if idx != -1:
            entries[idx] = merge_entries(entries[idx], entry, iso_timestamp(self._clock()))
            logger.debug("Merged entry for %s (duration now %ds)", entry.domain, entries[idx].duration)
        else:
            entries.append(entry.copy())
            logger.debug("Added entry for %s (%ds), buffer size %d", entry.domain, entry.duration, len(entries))
        self._write(entries)
        self._evicted += purge.purged_count
        return len(entries)

    async def list(self) -> list[LogEntry]:
        """Snapshot of all entries, oldest first."""
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def snapshot(self) -> BufferSnapshot:
        """Entries plus the eviction count, for a later ``remove_at``."""
        async with self._lock:
            entries = await asyncio.to_thread(self._read)
            return BufferSnapshot(entries=entries, evicted=self._evicted)

    async def remove_at(self, indices: Iterable[int], snapshot: BufferSnapshot | None = None) -> int:
        """Drop entries at positions taken from an earlier snapshot.

        Without ``snapshot`` the positions apply to the current list as is.
        With it, positions are shifted past entries evicted since the
        snapshot, evicted entries are skipped, and an entry that has had a
        newer visit merged into it keeps the part that was not in the
        snapshot. Entries appended after the snapshot are untouched.
        Returns the remaining size.
        """
        to_remove = set(indices)
        async with self._lock:
            return await asyncio.to_thread(self._remove_at, to_remove, snapshot)

    def _remove_at(self, to_remove: set[int], snapshot: BufferSnapshot | None) -> int:
        entries = self._read()
        if snapshot is None:
            remaining = [e for i, e in enumerate(entries) if i not in to_remove]
        else:
            remaining = self._reconcile(entries, to_remove, snapshot)
        self._write(remaining)
        logger.debug("Removed %d entries from buffer, %d remaining", len(entries) - len(remaining), len(remaining))
        return len(remaining)

    def _reconcile(self, entries: list[LogEntry], to_remove: set[int], snapshot: BufferSnapshot) -> list[LogEntry]:
        shift = self._evicted - snapshot.evicted
        kept: list[LogEntry | None] = list(entries)
        for i in sorted(to_remove):
            sent = snapshot.entries[i]
            j = i - shift
            if j < 0:
                continue  # evicted by a purge
            if j >= len(entries) or entries[j].url != sent.url:
                logger.warning("Buffer changed during sync, keeping entry for %s", sent.url[:80])
                continue
            current = entries[j]
            if current == sent:
                kept[j] = None
            else:
                kept[j] = subtract_delivered(current, sent)
                if kept[j] is not None:
                    logger.debug("Kept %ds merged into %s during sync", kept[j].duration, sent.domain)
        return [e for e in kept if e is not None]

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._clear)
        logger.info("Buffer cleared")

    def _clear(self) -> None:
        count = len(self._read())
        self._write([])
        self._evicted += count

    async def check_and_purge(self) -> PurgeResult:
        """Run the quota check on its own, without appending."""
        async with self._lock:
            return await asyncio.to_thread(self._check_and_purge)

    def _check_and_purge(self) -> PurgeResult:
        entries = self._read()
        remaining, result = self._purge_if_needed(entries)
        if result.purged:
            self._write(remaining)
            self._evicted += result.purged_count
        return result

    async def size(self) -> int:
        return len(await self.list())

    async def size_bytes(self) -> int:
        return serialized_size(await self.list())
