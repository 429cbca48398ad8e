"""Built-in privacy tables and their merge with user-custom additions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from focus_logger.buffer.state import LocalState

logger = logging.getLogger(__name__)

# Never tracked, regardless of user settings. Empty by default.
BLACKLISTED_DOMAINS: tuple[str, ...] = ()

# Query parameters whose values are redacted (substring match on the key).
SENSITIVE_PARAMS: tuple[str, ...] = (
    "token",
    "key",
    "apikey",
    "api_key",
    "password",
    "passwd",
    "pwd",
    "secret",
    "auth",
    "authorization",
    "session",
    "sessionid",
    "session_id",
    "code",
    "access_token",
    "refresh_token",
    "id_token",
    "bearer",
    "credential",
    "ssn",
    "social",
    "credit_card",
    "cc",
    "cvv",
    "pin",
)

SYSTEM_URL_PREFIXES: tuple[str, ...] = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "file://",
    "moz-extension://",
    "brave://",
    "opera://",
    "vivaldi://",
)


@dataclass
class PrivacyRules:
    """Blocked domains and sensitive parameters in effect for this client."""

    custom_blocked_domains: list[str] = field(default_factory=list)
    custom_sensitive_params: list[str] = field(default_factory=list)

    @property
    def blocked_domains(self) -> list[str]:
        return [*BLACKLISTED_DOMAINS, *self.custom_blocked_domains]

    @property
    def sensitive_params(self) -> list[str]:
        return [*SENSITIVE_PARAMS, *self.custom_sensitive_params]

    @classmethod
    def load(cls, state: LocalState) -> PrivacyRules:
        rules = cls()
        rules.reload(state)
        return rules

    def reload(self, state: LocalState) -> None:
        """Re-read custom tables from local state (call after settings change)."""
        try:
            self.custom_blocked_domains = list(state.custom_blocked_domains)
            self.custom_sensitive_params = list(state.custom_sensitive_params)
        except Exception as e:
            logger.error("Failed to load custom privacy settings: %s", e)
            return
        logger.debug(
            "Custom privacy settings loaded: %d blocked domains, %d sensitive params",
            len(self.custom_blocked_domains),
            len(self.custom_sensitive_params),
        )
