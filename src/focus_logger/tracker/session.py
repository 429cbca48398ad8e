"""Session lifecycle: turns focus changes into finished, privacy-filtered log entries."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any
from urllib.parse import parse_qs, urlsplit

from focus_logger.buffer.store import BufferStore
from focus_logger.exceptions import BufferStoreError
from focus_logger.metadata.base import MetadataProvider, fetch_with_timeout, try_fetch
from focus_logger.models import Destination, Handle, LogEntry, PageMetadata, Session, iso_timestamp
from focus_logger.privacy import (
    PrivacyRules,
    extract_domain,
    is_blacklisted_domain,
    is_url_allowed,
    redact_sensitive_url,
    sanitize_text,
)
from focus_logger.tracker.source import DestinationSource

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500

# (host suffix, path, query parameter holding the content id)
WATCH_PAGES: tuple[tuple[str, str, str], ...] = (
    ("youtube.com", "/watch", "v"),
)


def watch_content_id(url: str) -> str | None:
    """Content id of a long-form video page, ignoring playback-resume params."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    host = (parts.hostname or "").lower()
    for suffix, path, param in WATCH_PAGES:
        if (host == suffix or host.endswith(f".{suffix}")) and parts.path == path:
            values = parse_qs(parts.query).get(param)
            if values and values[0]:
                return f"{suffix}:{values[0]}"
    return None


def is_same_content(current_url: str, new_url: str) -> bool:
    if current_url == new_url:
        return True
    current_id = watch_content_id(current_url)
    return current_id is not None and current_id == watch_content_id(new_url)


class SessionTracker:
    """Owns the one current session. Idle when ``session`` is None, else Active.

    All transitions run under a single lock, so a later focus change is
    processed strictly after the previous one has finished.

    Args:
        source: Resolves handles to their current destination.
        metadata_provider: Scrapes title/description for a destination.
        buffer: Where finished entries are pushed.
        rules: Blocked domains and sensitive params.
        min_duration: Entries shorter than this (seconds) are discarded.
        metadata_timeout: Time box for metadata retrieval (seconds).
        on_buffer_change: Called with the new buffer size after each push.
        clock: Returns the current epoch time in seconds.
    """

    def __init__(
        self,
        source: DestinationSource,
        metadata_provider: MetadataProvider,
        buffer: BufferStore,
        rules: PrivacyRules | None = None,
        min_duration: float = 5,
        metadata_timeout: float = 2.0,
        on_buffer_change: Callable[[int], Any] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._metadata = metadata_provider
        self._buffer = buffer
        self.rules = rules or PrivacyRules()
        self.min_duration = min_duration
        self.metadata_timeout = metadata_timeout
        self._on_buffer_change = on_buffer_change
        self._clock = clock
        self._session: Session | None = None
        self._lock = asyncio.Lock()

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    def current(self) -> dict | None:
        """Snapshot of the active session for status queries."""
        s = self._session
        if s is None:
            return None
        return {
            "handle": s.handle,
            "url": s.url,
            "title": s.metadata.title,
            "description": s.metadata.description,
            "start_time": s.start_time,
            "duration": s.elapsed(self._clock()),
        }

    # ---- public transitions ----

    async def start(self, handle: Handle | None) -> bool:
        """Begin tracking ``handle``. Returns True if a session became active."""
        async with self._lock:
            return await self._start(handle)

    async def end(self) -> LogEntry | None:
        """Finish the active session. Returns the buffered entry, or None."""
        async with self._lock:
            return await self._end()

    async def end_and_restart(self) -> LogEntry | None:
        """Chunk a long session: finish it and resume the same destination with a fresh start time."""
        async with self._lock:
            snapshot = self._session
            entry = await self._end()
            if snapshot is not None and snapshot.handle is not None and snapshot.url:
                now = self._clock()
                self._session = Session(
                    handle=snapshot.handle,
                    url=snapshot.url,
                    metadata=replace(snapshot.metadata),
                    start_time=now,
                    last_active_time=now,
                )
                logger.debug("Restarted session (chunking): %s", snapshot.url[:50])
            return entry

    async def handle_change(self, new_handle: Handle | None) -> LogEntry | None:
        """React to a focus change. Returns the entry closed by the change, if any."""
        async with self._lock:
            new_dest: Destination | None = None
            if new_handle is not None:
                try:
                    new_dest = await self._source.resolve(new_handle)
                except Exception as e:
                    logger.debug("Destination %r unavailable: %s", new_handle, e)

            current = self._session
            if (
                current is not None
                and new_dest is not None
                and current.handle == new_handle
                and is_same_content(current.url, new_dest.url)
            ):
                await self._refresh_metadata(new_dest)
                return None

            if current is not None:
                logger.debug(
                    "Focus change %r -> %r after %ds",
                    current.handle,
                    new_handle,
                    round(current.elapsed(self._clock())),
                )
            entry = await self._end()
            await self._start(new_handle, new_dest)
            return entry

    # ---- internals (caller holds the lock) ----

    def _reset(self) -> None:
        self._session = None

    async def _start(self, handle: Handle | None, dest: Destination | None = None) -> bool:
        if handle is None:
            self._reset()
            return False

        try:
            if dest is None:
                dest = await self._source.resolve(handle)
        except Exception as e:
            logger.warning("Failed to start session for %r: %s", handle, e)
            self._reset()
            return False

        if not dest.active or not is_url_allowed(dest.url):
            self._reset()
            return False

        domain = extract_domain(dest.url)
        if is_blacklisted_domain(domain, self.rules):
            logger.debug("Skipping blacklisted domain %s", domain)
            self._reset()
            return False

        now = self._clock()
        metadata = await fetch_with_timeout(self._metadata, dest, self.metadata_timeout)
        self._session = Session(
            handle=handle,
            url=dest.url,
            metadata=metadata,
            start_time=now,
            last_active_time=now,
        )
        logger.info("Started session: %s (%s)", metadata.title[:50], domain)
        return True

    async def _refresh_metadata(self, dest: Destination) -> None:
        logger.debug("Same session update, refreshing metadata: %s", dest.url[:50])
        if dest.status != "complete":
            return
        meta = await try_fetch(self._metadata, dest, self.metadata_timeout)
        if meta is not None and meta.title and self._session is not None:
            self._session.metadata = PageMetadata(title=meta.title, description=meta.description)

    async def _end(self) -> LogEntry | None:
        session = self._session
        if session is None:
            return None
        self._reset()

        now = self._clock()
        duration = session.elapsed(now)
        domain = extract_domain(session.url)

        if not session.url or not is_url_allowed(session.url) or duration < self.min_duration:
            logger.debug(
                "Session too short or invalid, not saving: %ds %s",
                round(duration),
                session.url[:50] if session.url else "none",
            )
            return None

        if is_blacklisted_domain(domain, self.rules):
            logger.debug("Skipping blacklisted domain %s", domain)
            return None

        entry = LogEntry(
            url=redact_sensitive_url(session.url, self.rules),
            domain=domain,
            title=sanitize_text(session.metadata.title, MAX_TITLE_LENGTH),
            description=sanitize_text(session.metadata.description, MAX_DESCRIPTION_LENGTH),
            start_time=int(session.last_active_time * 1000),
            end_time=int(now * 1000),
            duration=round(duration),
            timestamp=iso_timestamp(now),
        )

        try:
            size = await self._buffer.append(entry)
        except BufferStoreError as e:
            logger.error("Failed to buffer entry for %s: %s", domain, e)
            return None

        self._notify(size)
        logger.info("Ended session: %s, %ds", entry.domain, entry.duration)
        return entry

    def _notify(self, size: int) -> None:
        if self._on_buffer_change is None:
            return
        try:
            self._on_buffer_change(size)
        except Exception as e:
            logger.warning("Buffer change callback failed: %s", e)
