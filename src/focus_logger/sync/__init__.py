"""Remote synchronization of buffered log entries."""

from focus_logger.sync.backoff import calculate_backoff
from focus_logger.sync.client import IngestClient
from focus_logger.sync.engine import SyncEngine, SyncResult
from focus_logger.sync.protocol import ProtocolVersion

__all__ = [
    "SyncEngine",
    "SyncResult",
    "IngestClient",
    "ProtocolVersion",
    "calculate_backoff",
]
