"""Merge and eviction rules for the log buffer."""

from __future__ import annotations

import math

from focus_logger.models import LogEntry


def merge_entries(existing: LogEntry, incoming: LogEntry, timestamp: str) -> LogEntry:
    """Fold ``incoming`` into ``existing`` (same URL) and return the result.

    Durations add up, the time span widens to cover both, and title or
    description are only backfilled where the existing entry has none.
    """
    merged = existing.copy()
    merged.duration = (existing.duration or 0) + (incoming.duration or 0)
    if incoming.start_time and (not existing.start_time or incoming.start_time < existing.start_time):
        merged.start_time = incoming.start_time
    if incoming.end_time and (not existing.end_time or incoming.end_time > existing.end_time):
        merged.end_time = incoming.end_time
    merged.timestamp = timestamp
    if not merged.title and incoming.title:
        merged.title = incoming.title
    if not merged.description and incoming.description:
        merged.description = incoming.description
    return merged


def find_by_url(entries: list[LogEntry], url: str) -> int:
    for i, entry in enumerate(entries):
        if entry.url == url:
            return i
    return -1


def purge_count(total: int, purge_percentage: float) -> int:
    """Number of oldest entries to evict: ceil(total * purge_percentage)."""
    if total <= 0:
        return 0
    return min(total, math.ceil(total * purge_percentage))


def subtract_delivered(current: LogEntry, delivered: LogEntry) -> LogEntry | None:
    """What is left of ``current`` once ``delivered``, merged into it earlier, has been synced.

    Returns None when nothing is left to send.
    """
    duration = (current.duration or 0) - (delivered.duration or 0)
    if duration <= 0:
        return None
    rest = current.copy()
    rest.duration = duration
    if delivered.end_time and delivered.end_time < current.end_time:
        rest.start_time = max(current.start_time, delivered.end_time)
    return rest
