"""Focus tracking with durable buffering and resilient sync."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("focus-logger")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0+dev"

__all__ = ["__version__"]
