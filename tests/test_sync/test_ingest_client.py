"""Tests for the ingestion API client."""

import json

import httpx
import pytest

from focus_logger.exceptions import PermanentSyncError, TransientSyncError
from focus_logger.sync.client import IngestClient, is_transient_status


def client_for(handler):
    return IngestClient("http://ingest.test/", transport=httpx.MockTransport(handler))


def test_transient_statuses():
    assert is_transient_status(429)
    assert is_transient_status(500)
    assert is_transient_status(503)
    assert not is_transient_status(400)
    assert not is_transient_status(401)


@pytest.mark.asyncio
async def test_post_log_sends_auth_and_protocol_headers():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["protocol"] = request.headers["X-Log-Protocol"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "logId": "l1"})

    async with client_for(handler) as client:
        result = await client.post_log({"url": "http://a.com"}, "k123", 2)

    assert result["logId"] == "l1"
    assert seen == {"auth": "Bearer k123", "protocol": "2", "body": {"url": "http://a.com"}}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 502])
async def test_post_log_transient(status):
    async with client_for(lambda r: httpx.Response(status)) as client:
        with pytest.raises(TransientSyncError) as exc:
            await client.post_log({}, "k")
    assert exc.value.status_code == status


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404])
async def test_post_log_permanent(status):
    async with client_for(lambda r: httpx.Response(status)) as client:
        with pytest.raises(PermanentSyncError) as exc:
            await client.post_log({}, "k")
    assert exc.value.status_code == status


@pytest.mark.asyncio
async def test_post_log_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(TransientSyncError) as exc:
            await client.post_log({}, "k")
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_get_status():
    async with client_for(lambda r: httpx.Response(200, json={"status": "ok", "version": "2.1.0"})) as client:
        assert await client.get_status() == {"status": "ok", "version": "2.1.0"}


@pytest.mark.asyncio
async def test_post_health_reports_success_only_on_2xx():
    async with client_for(lambda r: httpx.Response(200, json={"received": True})) as client:
        assert await client.post_health({}, "k") is True
    async with client_for(lambda r: httpx.Response(500)) as client:
        assert await client.post_health({}, "k") is False
