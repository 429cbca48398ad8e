"""Persisted client settings: API key, client id, custom privacy tables."""

from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path

import diskcache

logger = logging.getLogger(__name__)

API_KEY = "apiKey"
CLIENT_ID = "clientId"
CUSTOM_BLOCKED_DOMAINS = "customBlockedDomains"
CUSTOM_SENSITIVE_PARAMS = "customSensitiveParams"

_BASE36 = string.digits + string.ascii_lowercase


def open_cache(data_dir: Path | str) -> diskcache.Cache:
    """Open (creating if needed) the local store shared by state and buffer."""
    path = Path(data_dir)
    path.mkdir(parents=True, exist_ok=True)
    return diskcache.Cache(directory=str(path))


def to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_client_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"client_{suffix}_{to_base36(int(time.time() * 1000))}"


class LocalState:
    """Key/value settings kept alongside the buffer in the same cache."""

    def __init__(self, cache: diskcache.Cache):
        self._cache = cache

    @property
    def api_key(self) -> str | None:
        return self._cache.get(API_KEY) or None

    @api_key.setter
    def api_key(self, value: str | None) -> None:
        if value:
            self._cache.set(API_KEY, value.strip())
        else:
            self._cache.delete(API_KEY)

    def get_client_id(self) -> str:
        """Stable attribution id, generated on first use."""
        client_id = self._cache.get(CLIENT_ID)
        if client_id:
            return client_id
        client_id = generate_client_id()
        # add() is a no-op if another writer got there first.
        if not self._cache.add(CLIENT_ID, client_id):
            client_id = self._cache.get(CLIENT_ID)
        logger.info("Client id initialised: %s", client_id)
        return client_id

    @property
    def custom_blocked_domains(self) -> list[str]:
        return list(self._cache.get(CUSTOM_BLOCKED_DOMAINS, []))

    @custom_blocked_domains.setter
    def custom_blocked_domains(self, domains: list[str]) -> None:
        cleaned = [d.strip().lower() for d in domains if d and d.strip()]
        self._cache.set(CUSTOM_BLOCKED_DOMAINS, cleaned)

    @property
    def custom_sensitive_params(self) -> list[str]:
        return list(self._cache.get(CUSTOM_SENSITIVE_PARAMS, []))

    @custom_sensitive_params.setter
    def custom_sensitive_params(self, params: list[str]) -> None:
        cleaned = [p.strip() for p in params if p and p.strip()]
        self._cache.set(CUSTOM_SENSITIVE_PARAMS, cleaned)
