"""Versioned request bodies for the ingestion API."""

from __future__ import annotations

import platform
from enum import IntEnum
from typing import Any

from focus_logger.models import LogEntry, iso_timestamp

SOURCE_TYPE = "focus-logger"
PROTOCOL_HEADER = "X-Log-Protocol"
UNTITLED = "Untitled"


class ProtocolVersion(IntEnum):
    """Shape of ``POST /api/log`` bodies. Chosen by configuration, never inferred."""

    LEGACY_BULK = 1  # one array of entries per request
    SINGLE = 2  # one entry per request, with source attribution


def log_payload(entry: LogEntry, client_id: str, device_name: str | None = None) -> dict[str, Any]:
    """Body for a single-entry (v2) ``/api/log`` request."""
    return {
        "url": entry.url,
        "title": entry.title or UNTITLED,
        "duration": entry.duration,
        "timestamp": entry.timestamp or iso_timestamp(entry.start_time / 1000),
        "description": entry.description or "",
        "source": {
            "type": SOURCE_TYPE,
            "deviceName": device_name or platform.node() or "unknown",
            "clientId": client_id,
        },
    }


def bulk_payload(entries: list[LogEntry]) -> list[dict[str, Any]]:
    """Body for a legacy (v1) ``/api/log`` request."""
    return [entry.to_dict() for entry in entries]


def health_payload(version: str, error_count: int, timestamp: str) -> dict[str, Any]:
    return {
        "extensionVersion": version,
        "platform": platform.system().lower(),
        "arch": platform.machine().lower(),
        "errorsEncountered": error_count,
        "timestamp": timestamp,
    }
