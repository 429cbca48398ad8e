"""Drains the buffer to the ingestion API with backoff and partial-failure handling."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from focus_logger.buffer.state import LocalState
from focus_logger.buffer.store import BufferStore
from focus_logger.exceptions import BufferStoreError, FocusLoggerError, PermanentSyncError, TransientSyncError
from focus_logger.models import LogEntry, iso_timestamp
from focus_logger.sync.backoff import calculate_backoff
from focus_logger.sync.client import IngestClient
from focus_logger.sync.protocol import ProtocolVersion, bulk_payload, health_payload, log_payload

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """What one pass did."""

    synced: int = 0
    dropped: int = 0
    remaining: int = 0
    transient_failure: bool = False
    storage_error: bool = False
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class SyncEngine:
    """Delivers buffered entries, one pass at a time.

    Per entry: 2xx is removed; 429/5xx/network errors stop the pass and
    schedule a retry, keeping the failing entry and everything after it;
    other 4xx responses drop the entry and count an error. Completed
    indices are removed from the buffer in one batch after the pass.

    Args:
        buffer: The local log buffer.
        state: Holds the API key and client id.
        client: Ingestion API client.
        protocol_version: Shape of ``/api/log`` bodies.
        backoff_base: Base retry delay in seconds.
        backoff_cap: Maximum retry delay in seconds.
        connectivity: Returns False when the machine is known to be offline.
        end_session: Finalizes the active session (used by ``force_sync``).
        version: Reported in health pings.
    """

    def __init__(
        self,
        buffer: BufferStore,
        state: LocalState,
        client: IngestClient,
        protocol_version: int = ProtocolVersion.SINGLE,
        backoff_base: float = 60.0,
        backoff_cap: float = 300.0,
        connectivity: Callable[[], bool] = lambda: True,
        end_session: Callable[[], Awaitable[Any]] | None = None,
        version: str = "0.0.0",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._buffer = buffer
        self._state = state
        self._client = client
        self.protocol_version = ProtocolVersion(protocol_version)
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._connectivity = connectivity
        self._end_session = end_session
        self.version = version
        self._clock = clock

        self.retry_attempt = 0
        self.error_count = 0
        self.last_retry_delay: float | None = None
        self._retry_task: asyncio.Task | None = None
        self._pass_lock = asyncio.Lock()

    # ---- status ----

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_task is not None and not self._retry_task.done()

    def status(self) -> dict[str, Any]:
        return {
            "retry_attempt": self.retry_attempt,
            "error_count": self.error_count,
            "retry_scheduled": self.retry_scheduled,
        }

    # ---- passes ----

    def _precondition_failure(self) -> str | None:
        if not self._connectivity():
            logger.warning("Offline - skipping sync")
            return "offline"
        if not self._state.api_key:
            logger.warning("No API key configured")
            return "no_api_key"
        return None

    async def run_pass(self) -> SyncResult:
        """Attempt delivery of the current buffer snapshot, in order."""
        async with self._pass_lock:
            reason = self._precondition_failure()
            if reason:
                return SyncResult(skipped_reason=reason)

            try:
                snapshot = await self._buffer.snapshot()
            except BufferStoreError as e:
                logger.error("Cannot read buffer for sync: %s", e)
                self.error_count += 1
                return SyncResult(storage_error=True, skipped_reason="storage_error")
            if not snapshot.entries:
                logger.debug("No logs to sync")
                return SyncResult(skipped_reason="empty")

            api_key = self._state.api_key
            started = time.perf_counter()
            if self.protocol_version is ProtocolVersion.LEGACY_BULK:
                result, completed = await self._send_bulk(snapshot.entries, api_key)
            else:
                result, completed = await self._send_each(snapshot.entries, api_key)

            result.remaining = len(snapshot.entries)
            if completed:
                try:
                    result.remaining = await self._buffer.remove_at(completed, snapshot)
                except BufferStoreError as e:
                    # Delivered entries stay buffered and are sent again next pass.
                    logger.error("Failed to remove %d delivered logs from buffer: %s", len(completed), e)
                    self.error_count += 1
                    result.storage_error = True
                else:
                    logger.info(
                        "Sync batch completed: %d synced, %d dropped, %d remaining (%.2fs)",
                        result.synced,
                        result.dropped,
                        result.remaining,
                        time.perf_counter() - started,
                    )

            if result.transient_failure:
                self._schedule_retry()
            else:
                self.retry_attempt = 0
            return result

    async def _send_each(self, snapshot: list[LogEntry], api_key: str) -> tuple[SyncResult, list[int]]:
        result = SyncResult()
        completed: list[int] = []
        client_id = self._state.get_client_id()

        for i, entry in enumerate(snapshot):
            payload = log_payload(entry, client_id)
            try:
                await self._client.post_log(payload, api_key, self.protocol_version)
            except TransientSyncError as e:
                if e.status_code is None:
                    logger.error("Sync failed: %s", e)
                    self.error_count += 1
                else:
                    logger.warning("Sync paused (server issue): %s", e.status_code)
                result.transient_failure = True
                break
            except PermanentSyncError as e:
                logger.error("Log rejected (%s): %s", e.status_code, entry.url[:80])
                self.error_count += 1
                result.dropped += 1
                completed.append(i)
            else:
                logger.debug("Synced log: %s", payload["title"][:50])
                result.synced += 1
                completed.append(i)

        return result, completed

    async def _send_bulk(self, snapshot: list[LogEntry], api_key: str) -> tuple[SyncResult, list[int]]:
        result = SyncResult()
        indices = list(range(len(snapshot)))
        try:
            await self._client.post_log(bulk_payload(snapshot), api_key, self.protocol_version)
        except TransientSyncError as e:
            if e.status_code is None:
                logger.error("Bulk sync failed: %s", e)
                self.error_count += 1
            else:
                logger.warning("Bulk sync paused (server issue): %s", e.status_code)
            result.transient_failure = True
            return result, []
        except PermanentSyncError as e:
            logger.error("Bulk upload of %d logs rejected (%s)", len(snapshot), e.status_code)
            self.error_count += 1
            result.dropped = len(snapshot)
            return result, indices
        result.synced = len(snapshot)
        return result, indices

    # ---- retries ----

    def _schedule_retry(self) -> None:
        delay = calculate_backoff(self.retry_attempt, self.backoff_base, self.backoff_cap)
        self.retry_attempt += 1
        self.last_retry_delay = delay
        logger.info("Scheduling retry %d in %.1fs", self.retry_attempt, delay)

        previous = self._retry_task
        if previous is not None and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()
        self._retry_task = asyncio.get_running_loop().create_task(self._retry_after(delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.run_pass()
        except Exception as e:
            # Scheduled work has no caller to report to.
            logger.error("Retry pass failed: %s", e)

    async def force_sync(self) -> SyncResult:
        """Finalize the active session, reset backoff and run a pass now."""
        logger.info("Force sync triggered")
        if self._end_session is not None:
            try:
                await self._end_session()
            except FocusLoggerError as e:
                logger.error("Failed to finalize session before sync: %s", e)
        self.retry_attempt = 0
        return await self.run_pass()

    # ---- health ----

    async def send_health_report(self) -> bool:
        """Best-effort, never retried. Resets the error count only on success."""
        if not self._connectivity():
            return False
        api_key = self._state.api_key
        if not api_key:
            return False

        payload = health_payload(self.version, self.error_count, iso_timestamp(self._clock()))
        ok = await self._client.post_health(payload, api_key)
        if ok:
            logger.info("Health ping sent (errors=%d)", payload["errorsEncountered"])
            self.error_count = 0
        return ok

    async def check_connection(self) -> dict[str, Any]:
        return await self._client.get_status()

    async def close(self) -> None:
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
