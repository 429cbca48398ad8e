"""HTTP client for the ingestion API (``/api/log``, ``/api/status``, ``/api/health``)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from focus_logger.exceptions import PermanentSyncError, TransientSyncError
from focus_logger.sync.protocol import PROTOCOL_HEADER, ProtocolVersion

logger = logging.getLogger(__name__)


def is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class IngestClient:
    """Thin async wrapper that maps responses onto the sync error taxonomy.

    Args:
        base_url: Root of the ingestion API.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    async def post_log(
        self,
        payload: dict | list,
        api_key: str,
        protocol_version: int = ProtocolVersion.SINGLE,
    ) -> dict[str, Any]:
        """Deliver one ``/api/log`` body, declaring its protocol version in a header.

        Raises:
            TransientSyncError: network failure, 429 or 5xx.
            PermanentSyncError: any other non-2xx status.
        """
        try:
            headers = {**self._headers(api_key), PROTOCOL_HEADER: str(int(protocol_version))}
            response = await self._client.post("/api/log", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise TransientSyncError(f"Network error: {e}") from e

        if response.is_success:
            try:
                return response.json()
            except ValueError:
                return {}
        if is_transient_status(response.status_code):
            raise TransientSyncError(
                f"Server unavailable ({response.status_code})", status_code=response.status_code
            )
        raise PermanentSyncError(
            f"Log rejected ({response.status_code})", status_code=response.status_code
        )

    async def get_status(self) -> dict[str, Any]:
        """Connectivity check. Raises TransientSyncError when unreachable."""
        try:
            response = await self._client.get("/api/status")
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransientSyncError(f"Status check failed: {e}") from e

    async def post_health(self, payload: dict, api_key: str) -> bool:
        """Best-effort health report. Returns True on a 2xx response."""
        try:
            response = await self._client.post("/api/health", json=payload, headers=self._headers(api_key))
        except httpx.HTTPError as e:
            logger.warning("Health ping failed: %s", e)
            return False
        if not response.is_success:
            logger.warning("Health ping rejected (%s)", response.status_code)
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> IngestClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
