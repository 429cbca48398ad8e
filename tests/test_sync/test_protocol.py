"""Tests for versioned request bodies."""

from conftest import make_entry

from focus_logger.sync.protocol import ProtocolVersion, bulk_payload, health_payload, log_payload


def test_single_payload_has_source_attribution():
    payload = log_payload(make_entry(title=""), "client_1", device_name="laptop")
    assert payload["title"] == "Untitled"
    assert payload["source"] == {"type": "focus-logger", "deviceName": "laptop", "clientId": "client_1"}
    assert payload["duration"] == 10
    assert set(payload) == {"url", "title", "duration", "timestamp", "description", "source"}


def test_single_payload_derives_missing_timestamp():
    payload = log_payload(make_entry(timestamp="", start_time=0), "c")
    assert payload["timestamp"] == "1970-01-01T00:00:00.000Z"


def test_bulk_payload_is_array_of_entries():
    body = bulk_payload([make_entry(url="http://a.com/"), make_entry(url="http://b.com/")])
    assert isinstance(body, list)
    assert body[1]["url"] == "http://b.com/"
    assert "startTime" in body[0]


def test_health_payload_fields():
    payload = health_payload("1.2.3", 4, "2024-01-01T00:00:00.000Z")
    assert payload["extensionVersion"] == "1.2.3"
    assert payload["errorsEncountered"] == 4
    assert {"platform", "arch", "timestamp"} <= set(payload)


def test_versions_are_explicit():
    assert ProtocolVersion(1) is ProtocolVersion.LEGACY_BULK
    assert ProtocolVersion(2) is ProtocolVersion.SINGLE
