"""Session tracking: state machine, event routing and the event-source interface."""

from focus_logger.tracker.events import FocusEventRouter, classify_idle
from focus_logger.tracker.session import SessionTracker, is_same_content, watch_content_id
from focus_logger.tracker.source import DestinationSource, InMemoryDestinationSource

__all__ = [
    "SessionTracker",
    "FocusEventRouter",
    "DestinationSource",
    "InMemoryDestinationSource",
    "classify_idle",
    "is_same_content",
    "watch_content_id",
]
