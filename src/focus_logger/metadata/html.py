"""Fetch a page over HTTP and read its <title> and description meta tags."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from focus_logger.exceptions import MetadataError
from focus_logger.metadata.base import MetadataProvider
from focus_logger.models import Destination, PageMetadata

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


def extract_metadata(html: str, fallback_title: str = "") -> PageMetadata:
    """Pull title and description out of an HTML document."""
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(html, "html.parser")

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    description = ""
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            description = tag["content"].strip()
            break

    return PageMetadata(title=title or fallback_title, description=description)


class HtmlMetadataProvider(MetadataProvider):
    """Scrapes metadata by downloading the destination's URL.

    Args:
        max_response_bytes: Responses larger than this are rejected (default 1MB).
        user_agent: Value of the User-Agent header.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        max_response_bytes: int = 1_048_576,
        user_agent: str = "FocusLogger/1.0",
        transport=None,
    ):
        try:
            import httpx
            import bs4  # noqa: F401
        except ImportError:
            raise ImportError(
                "httpx and beautifulsoup4 are required for HtmlMetadataProvider. "
                "Install with: pip install focus-logger"
            )
        self.max_response_bytes = max_response_bytes
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def fetch(self, destination: Destination) -> PageMetadata:
        parsed = urlparse(destination.url)
        if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.hostname:
            raise MetadataError(f"Cannot scrape non-http URL: {destination.url[:50]}")

        too_large = MetadataError(f"Response too large (>{self.max_response_bytes} bytes)")
        try:
            async with self._client.stream("GET", destination.url) as response:
                response.raise_for_status()
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > self.max_response_bytes:
                    raise too_large
                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_response_bytes:
                        raise too_large
                content_type = response.headers.get("content-type", "")
                encoding = response.charset_encoding or "utf-8"
        except MetadataError:
            raise
        except Exception as e:
            raise MetadataError(f"Fetch failed: {e}") from e

        try:
            text = bytes(body).decode(encoding, errors="replace")
        except LookupError:
            text = bytes(body).decode("utf-8", errors="replace")

        fallback = destination.title or parsed.hostname
        if "html" not in content_type and not text.lstrip().startswith("<"):
            return PageMetadata(title=fallback, description="")

        return extract_metadata(text, fallback_title=fallback)

    async def aclose(self) -> None:
        await self._client.aclose()
