"""Event-source interface: resolves a destination handle to its current info."""

from __future__ import annotations

from abc import ABC, abstractmethod

from focus_logger.exceptions import DestinationUnavailableError
from focus_logger.models import Destination, Handle


class DestinationSource(ABC):
    """Where the tracker looks up what a handle currently points at."""

    @abstractmethod
    async def resolve(self, handle: Handle) -> Destination:
        """Return the destination for ``handle``.

        Raises:
            DestinationUnavailableError: the destination closed or is restricted.
        """
        ...


class InMemoryDestinationSource(DestinationSource):
    """Destinations registered by the embedding application (or a test)."""

    def __init__(self) -> None:
        self._destinations: dict[Handle, Destination] = {}

    def set(
        self,
        handle: Handle,
        url: str,
        title: str = "",
        active: bool = True,
        status: str = "complete",
    ) -> Destination:
        dest = Destination(handle=handle, url=url, title=title, active=active, status=status)
        self._destinations[handle] = dest
        return dest

    def close(self, handle: Handle) -> None:
        self._destinations.pop(handle, None)

    async def resolve(self, handle: Handle) -> Destination:
        try:
            return self._destinations[handle]
        except KeyError:
            raise DestinationUnavailableError(f"No destination for handle {handle!r}") from None
