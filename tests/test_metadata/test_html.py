"""Tests for HTML metadata extraction and the HTTP provider."""

import httpx
import pytest

from focus_logger.exceptions import MetadataError
from focus_logger.metadata import HtmlMetadataProvider, extract_metadata
from focus_logger.models import Destination

PAGE = """
<html>
  <head>
    <title> Release notes </title>
    <meta name="description" content=" What changed in 2.0 ">
  </head>
  <body><p>hi</p></body>
</html>
"""


class TestExtractMetadata:
    def test_title_and_description(self):
        meta = extract_metadata(PAGE)
        assert meta.title == "Release notes"
        assert meta.description == "What changed in 2.0"

    def test_og_description_fallback(self):
        html = '<html><head><title>T</title><meta property="og:description" content="og text"></head></html>'
        assert extract_metadata(html).description == "og text"

    def test_missing_title_uses_fallback(self):
        meta = extract_metadata("<html><body>no head</body></html>", fallback_title="Tab title")
        assert meta.title == "Tab title"
        assert meta.description == ""


def provider_for(handler):
    return HtmlMetadataProvider(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_provider_parses_page():
    provider = provider_for(lambda r: httpx.Response(200, text=PAGE, headers={"content-type": "text/html"}))
    try:
        meta = await provider.fetch(Destination(handle=1, url="https://example.com/notes"))
    finally:
        await provider.aclose()
    assert meta.title == "Release notes"


@pytest.mark.asyncio
async def test_provider_sends_user_agent():
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["User-Agent"]
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})

    provider = HtmlMetadataProvider(user_agent="Test/1", transport=httpx.MockTransport(handler))
    try:
        await provider.fetch(Destination(handle=1, url="https://example.com/"))
    finally:
        await provider.aclose()
    assert seen["ua"] == "Test/1"


@pytest.mark.asyncio
async def test_provider_non_html_falls_back_to_known_title():
    provider = provider_for(lambda r: httpx.Response(200, json={"a": 1}))
    try:
        meta = await provider.fetch(Destination(handle=1, url="https://api.example.com/x", title="Known"))
    finally:
        await provider.aclose()
    assert meta.title == "Known"


@pytest.mark.asyncio
async def test_provider_rejects_non_http_urls():
    provider = provider_for(lambda r: httpx.Response(200, text=PAGE))
    try:
        with pytest.raises(MetadataError):
            await provider.fetch(Destination(handle=1, url="file:///etc/hosts"))
    finally:
        await provider.aclose()


@pytest.mark.asyncio
async def test_provider_http_error_raises_metadata_error():
    provider = provider_for(lambda r: httpx.Response(404))
    try:
        with pytest.raises(MetadataError):
            await provider.fetch(Destination(handle=1, url="https://example.com/missing"))
    finally:
        await provider.aclose()


@pytest.mark.asyncio
async def test_provider_rejects_oversized_response():
    provider = HtmlMetadataProvider(
        max_response_bytes=10,
        transport=httpx.MockTransport(lambda r: httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})),
    )
    try:
        with pytest.raises(MetadataError, match="too large"):
            await provider.fetch(Destination(handle=1, url="https://example.com/"))
    finally:
        await provider.aclose()


@pytest.mark.asyncio
async def test_provider_stops_reading_past_size_cap():
    pulled = []

    async def body():
        yield b"<html><head><title>Big</title></head><body>"
        for i in range(100):
            pulled.append(i)
            yield b"x" * 1024

    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html"}, content=body())

    provider = HtmlMetadataProvider(max_response_bytes=4096, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(MetadataError, match="too large"):
            await provider.fetch(Destination(handle=1, url="https://example.com/big"))
    finally:
        await provider.aclose()
    assert len(pulled) < 10


@pytest.mark.asyncio
async def test_provider_rejects_declared_oversize():
    def handler(request):
        return httpx.Response(200, headers={"content-type": "text/html", "content-length": "999999"}, content=b"<html></html>")

    provider = HtmlMetadataProvider(max_response_bytes=1000, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(MetadataError, match="too large"):
            await provider.fetch(Destination(handle=1, url="https://example.com/"))
    finally:
        await provider.aclose()
