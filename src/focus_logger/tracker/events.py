"""Routes raw focus notifications to the tracker, coalescing rapid flicker."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from focus_logger.models import Handle
from focus_logger.tracker.session import SessionTracker

logger = logging.getLogger(__name__)

IDLE_STATES = {"idle", "locked"}
ACTIVE = "active"


def classify_idle(seconds_since_input: float, idle_threshold: float) -> str:
    return "idle" if seconds_since_input >= idle_threshold else ACTIVE


class FocusEventRouter:
    """Debounces destination switches; focus loss and idle act immediately.

    A coalescable event replaces whatever switch is still waiting out the
    debounce window. Once the window elapses the transition itself is
    shielded, so a later event can never interrupt it half-way.
    """

    def __init__(
        self,
        tracker: SessionTracker,
        debounce_seconds: float = 0.5,
        idle_threshold: float = 360,
    ) -> None:
        self._tracker = tracker
        self.debounce_seconds = debounce_seconds
        self.idle_threshold = idle_threshold
        self._pending: asyncio.Task | None = None
        self._idle_state = ACTIVE

    @property
    def idle_state(self) -> str:
        return self._idle_state

    # ---- coalescable ----

    def on_destination_activated(self, handle: Handle) -> None:
        self._schedule(handle)

    def on_destination_updated(self, handle: Handle, status: str, active: bool = True) -> None:
        """Navigation inside a destination; only settled, foreground loads count."""
        if status == "complete" and active:
            self._schedule(handle)

    # ---- immediate ----

    async def on_focus_lost(self) -> None:
        self._cancel_pending()
        logger.debug("Foreground focus lost, ending session")
        await self._tracker.end()

    async def on_focus_gained(self, handle: Handle | None) -> None:
        self._cancel_pending()
        if handle is not None:
            await self._tracker.handle_change(handle)

    async def on_idle_state(self, state: str, handle: Handle | None = None) -> None:
        """``idle``/``locked`` end the session now; ``active`` resumes on ``handle``."""
        previous, self._idle_state = self._idle_state, state
        logger.debug("User state %s -> %s", previous, state)
        if state in IDLE_STATES:
            self._cancel_pending()
            await self._tracker.end()
        elif state == ACTIVE and previous != ACTIVE and handle is not None:
            self._cancel_pending()
            # Fresh start time: the idle period is not counted.
            await self._tracker.handle_change(handle)

    async def on_input_idle(self, seconds_since_input: float, handle: Handle | None = None) -> None:
        """Feed raw inactivity time; emits an idle-state change only when the state flips."""
        state = classify_idle(seconds_since_input, self.idle_threshold)
        if state != self._idle_state:
            await self.on_idle_state(state, handle)

    # ---- task management ----

    def _schedule(self, handle: Handle) -> None:
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._fire(handle))

    async def _fire(self, handle: Handle) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await asyncio.shield(self._tracker.handle_change(handle))

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> None:
        """Wait for the pending switch, if any, to be applied."""
        task = self._pending
        if task is None:
            return
        with suppress(asyncio.CancelledError):
            await task

    async def close(self) -> None:
        task = self._pending
        self._cancel_pending()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
