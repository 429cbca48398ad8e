"""URL, domain and text privacy filtering."""

from focus_logger.privacy.filter import (
    extract_domain,
    is_blacklisted_domain,
    is_system_url,
    is_url_allowed,
    redact_sensitive_url,
    sanitize_text,
)
from focus_logger.privacy.rules import PrivacyRules

__all__ = [
    "PrivacyRules",
    "extract_domain",
    "is_blacklisted_domain",
    "is_system_url",
    "is_url_allowed",
    "redact_sensitive_url",
    "sanitize_text",
]
