"""Page metadata providers."""

from focus_logger.metadata.base import (
    MetadataProvider,
    StaticMetadataProvider,
    fetch_with_timeout,
    try_fetch,
)
from focus_logger.metadata.html import HtmlMetadataProvider, extract_metadata

__all__ = [
    "MetadataProvider",
    "StaticMetadataProvider",
    "HtmlMetadataProvider",
    "extract_metadata",
    "fetch_with_timeout",
    "try_fetch",
]
