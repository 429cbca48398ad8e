"""Pure privacy checks applied to every destination before it is logged."""

from __future__ import annotations

import logging
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from focus_logger.privacy.rules import SYSTEM_URL_PREFIXES, PrivacyRules

logger = logging.getLogger(__name__)

REDACTED = "REDACTED"

_ALLOWED_SCHEMES = {"http", "https"}
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def is_system_url(url: str | None) -> bool:
    """Browser-internal and local pages are never tracked."""
    if not url:
        return True
    return url.startswith(SYSTEM_URL_PREFIXES)


def is_url_allowed(url: str | None) -> bool:
    if is_system_url(url):
        return False
    try:
        return urlsplit(url).scheme.lower() in _ALLOWED_SCHEMES
    except ValueError:
        return False


def extract_domain(url: str | None) -> str | None:
    """Lowercase hostname of ``url``, or None when it cannot be parsed."""
    if not url:
        return None
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname or None


def is_blacklisted_domain(domain: str | None, rules: PrivacyRules) -> bool:
    """Exact or subdomain match against the blocked list. Unknown domains are blocked."""
    if not domain:
        return True
    lower = domain.lower()
    for blocked in rules.blocked_domains:
        b = blocked.strip().lower()
        if not b:
            continue
        if lower == b or lower.endswith(f".{b}"):
            return True
    return False


def redact_sensitive_url(url: str, rules: PrivacyRules) -> str:
    """Replace values of sensitive query parameters with ``REDACTED``.

    A parameter is sensitive when its lowercase key contains any configured
    sensitive name. Other parameters and their order are left untouched.
    """
    try:
        parts = urlsplit(url)
        pairs = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError as e:
        logger.warning("Failed to parse URL for redaction (%s): %s", url[:80], e)
        return url

    if not pairs:
        return url

    needles = [p.lower() for p in rules.sensitive_params if p]
    redacted = False
    out: list[tuple[str, str]] = []
    for key, value in pairs:
        if any(n in key.lower() for n in needles):
            out.append((key, REDACTED))
            redacted = True
        else:
            out.append((key, value))

    if not redacted:
        return url

    logger.debug("Redacted sensitive URL params for %s", parts.hostname)
    return urlunsplit(parts._replace(query=urlencode(out)))


def sanitize_text(text: str | None, max_length: int = 500) -> str:
    """Strip HTML tags, collapse whitespace and cap the length."""
    if not text:
        return ""
    stripped = _TAG_RE.sub("", text)
    normalized = _WS_RE.sub(" ", stripped).strip()
    if len(normalized) > max_length:
        return normalized[:max_length] + "..."
    return normalized
