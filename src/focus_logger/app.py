"""Wires the tracker, buffer and sync engine together and runs their timers."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

import diskcache
import httpx

from focus_logger import __version__
from focus_logger.buffer import BufferStore, LocalState, open_cache
from focus_logger.config import Settings
from focus_logger.metadata import MetadataProvider, StaticMetadataProvider
from focus_logger.privacy import PrivacyRules
from focus_logger.sync import IngestClient, SyncEngine, SyncResult
from focus_logger.tracker import DestinationSource, FocusEventRouter, InMemoryDestinationSource, SessionTracker

logger = logging.getLogger(__name__)


class FocusLogger:
    """One client: a single tracker, a single local queue, a single sync engine.

    Args:
        settings: Behaviour knobs; read from the environment when omitted.
        source: Resolves destination handles (defaults to an in-memory source).
        metadata_provider: Page metadata scraper.
        cache: Pre-opened diskcache; opened under ``settings.data_dir`` otherwise.
        transport: httpx transport for the ingestion client (tests).
        connectivity: Returns False when offline.
        on_buffer_change: Called with the buffer size after each new entry.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        source: DestinationSource | None = None,
        metadata_provider: MetadataProvider | None = None,
        cache: diskcache.Cache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        connectivity: Callable[[], bool] = lambda: True,
        on_buffer_change: Callable[[int], Any] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self._owns_cache = cache is None
        self._cache = cache if cache is not None else open_cache(self.settings.data_dir)

        self.state = LocalState(self._cache)
        self.rules = PrivacyRules.load(self.state)
        self.buffer = BufferStore(
            self._cache,
            storage_quota_mb=self.settings.storage_quota_mb,
            purge_percentage=self.settings.purge_percentage,
            clock=clock,
        )
        self.source = source or InMemoryDestinationSource()
        self.metadata = metadata_provider or StaticMetadataProvider()
        self.tracker = SessionTracker(
            self.source,
            self.metadata,
            self.buffer,
            rules=self.rules,
            min_duration=self.settings.min_duration,
            metadata_timeout=self.settings.metadata_timeout,
            on_buffer_change=on_buffer_change,
            clock=clock,
        )
        self.router = FocusEventRouter(
            self.tracker,
            debounce_seconds=self.settings.debounce_seconds,
            idle_threshold=self.settings.idle_threshold,
        )
        self.client = IngestClient(
            self.settings.api_url,
            timeout=self.settings.request_timeout,
            transport=transport,
        )
        self.engine = SyncEngine(
            self.buffer,
            self.state,
            self.client,
            protocol_version=self.settings.protocol_version,
            backoff_base=self.settings.backoff_base,
            backoff_cap=self.settings.backoff_cap,
            connectivity=connectivity,
            end_session=self.tracker.end,
            version=__version__,
            clock=clock,
        )
        self._tasks: list[asyncio.Task] = []

    # ---- lifecycle ----

    async def start(self) -> None:
        """Load custom privacy tables and start the periodic timers."""
        self.reload_privacy_settings()
        sync_every = self.settings.sync_interval * 60
        health_every = self.settings.health_ping_interval * 60
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._every(sync_every, self.tracker.end_and_restart, "session chunk")),
            loop.create_task(self._every(sync_every, self.engine.run_pass, "sync")),
            loop.create_task(self._every(health_every, self.engine.send_health_report, "health ping")),
        ]
        logger.info("Timers configured: sync/chunk every %d min", self.settings.sync_interval)

    async def _every(self, seconds: float, func: Callable[[], Awaitable[Any]], name: str) -> None:
        while True:
            await asyncio.sleep(seconds)
            logger.debug("%s timer fired", name)
            try:
                await func()
            except Exception as e:
                logger.error("%s failed: %s", name, e)

    async def stop(self) -> None:
        """Cancel timers, capture the in-flight session and release resources."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks = []

        await self.router.close()
        await self.tracker.end()
        await self.engine.close()
        await self.client.aclose()
        await self.metadata.aclose()
        if self._owns_cache:
            self._cache.close()

    async def __aenter__(self) -> FocusLogger:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # ---- queries and actions ----

    def reload_privacy_settings(self) -> None:
        self.rules.reload(self.state)

    async def force_sync(self) -> SyncResult:
        return await self.engine.force_sync()

    async def status(self) -> dict[str, Any]:
        """Aggregate counters only; no raw error detail."""
        return {
            "buffered": await self.buffer.size(),
            "session": self.tracker.current(),
            "api_key_set": bool(self.state.api_key),
            **self.engine.status(),
        }
