"""Metadata provider interface and the time-boxed lookup used by the tracker."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from focus_logger.exceptions import MetadataError
from focus_logger.models import Destination, PageMetadata

logger = logging.getLogger(__name__)


class MetadataProvider(ABC):
    """Best-effort source of a destination's title and description."""

    @abstractmethod
    async def fetch(self, destination: Destination) -> PageMetadata:
        """Return metadata for ``destination``; raise MetadataError on failure."""
        ...

    async def aclose(self) -> None:
        """Release any resources held by the provider."""


class StaticMetadataProvider(MetadataProvider):
    """Uses the title the event source already knows, optionally overridden per URL."""

    def __init__(self, overrides: dict[str, PageMetadata] | None = None):
        self.overrides = dict(overrides or {})

    async def fetch(self, destination: Destination) -> PageMetadata:
        if destination.url in self.overrides:
            meta = self.overrides[destination.url]
            return PageMetadata(title=meta.title, description=meta.description)
        return PageMetadata(title=destination.title, description="")


async def try_fetch(
    provider: MetadataProvider,
    destination: Destination,
    timeout: float,
) -> PageMetadata | None:
    """Fetch metadata within ``timeout`` seconds; None on timeout or failure."""
    try:
        return await asyncio.wait_for(provider.fetch(destination), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("Metadata fetch timed out after %.1fs for %s", timeout, destination.url[:50])
    except MetadataError as e:
        logger.debug("Metadata fetch failed for %s: %s", destination.url[:50], e)
    except Exception as e:
        logger.warning("Unexpected metadata failure for %s: %s", destination.url[:50], e)
    return None


async def fetch_with_timeout(
    provider: MetadataProvider,
    destination: Destination,
    timeout: float,
) -> PageMetadata:
    """Like try_fetch, but degrades to the title the event source already knows."""
    meta = await try_fetch(provider, destination, timeout)
    if meta is None:
        logger.debug("Scrape fallback to known title for %s", destination.url[:50])
        return PageMetadata(title=destination.title or "", description="")
    return meta
