"""Data models shared by the tracker, buffer and sync engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from collections.abc import Hashable
from typing import Any

Handle = Hashable


@dataclass
class PageMetadata:
    """Title and description scraped from a destination."""

    title: str = ""
    description: str = ""


@dataclass
class Destination:
    """Current info for a handle, as reported by the event source."""

    handle: Handle
    url: str
    title: str = ""
    active: bool = True
    status: str = "complete"  # "loading" | "complete"


@dataclass
class Session:
    """The single in-memory interval of attention on one destination."""

    handle: Handle
    url: str
    metadata: PageMetadata = field(default_factory=PageMetadata)
    start_time: float = 0.0  # epoch seconds
    last_active_time: float = 0.0

    def elapsed(self, now: float) -> float:
        return now - self.last_active_time


@dataclass
class LogEntry:
    """A finished, privacy-filtered session awaiting sync."""

    url: str
    domain: str
    title: str
    description: str
    start_time: int  # epoch milliseconds
    end_time: int
    duration: int  # whole seconds
    timestamp: str  # ISO 8601

    def to_dict(self) -> dict[str, Any]:
        """Storage/wire representation (camelCase keys)."""
        return {
            "url": self.url,
            "domain": self.domain,
            "title": self.title,
            "description": self.description,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LogEntry:
        return cls(
            url=str(raw.get("url") or ""),
            domain=str(raw.get("domain") or ""),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            start_time=int(raw.get("startTime") or 0),
            end_time=int(raw.get("endTime") or 0),
            duration=int(raw.get("duration") or 0),
            timestamp=str(raw.get("timestamp") or ""),
        )

    def copy(self) -> LogEntry:
        return LogEntry(**asdict(self))


def iso_timestamp(epoch_seconds: float) -> str:
    """UTC ISO 8601 with millisecond precision and a ``Z`` suffix."""
    dt = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
