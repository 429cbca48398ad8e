"""Local durable buffer and persisted client state."""

from focus_logger.buffer.merge import merge_entries, purge_count
from focus_logger.buffer.state import LocalState, open_cache
from focus_logger.buffer.store import BufferSnapshot, BufferStore, PurgeResult

__all__ = [
    "BufferSnapshot",
    "BufferStore",
    "PurgeResult",
    "LocalState",
    "open_cache",
    "merge_entries",
    "purge_count",
]
