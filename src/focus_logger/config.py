"""Runtime settings, overridable from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from focus_logger.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOCUS_LOGGER_"

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "focus_logger"


@dataclass
class Settings:
    """Tunable behaviour of the tracker, buffer and sync engine.

    Durations are in seconds unless the field name says otherwise.
    """

    api_url: str = DEFAULT_API_URL
    # Seconds without input before the user is considered away.
    idle_threshold: int = 360
    # Visits shorter than this are discarded.
    min_duration: int = 5
    # Minutes between sync passes (and session chunks).
    sync_interval: int = 15
    debounce_ms: int = 500
    # Minutes between health reports.
    health_ping_interval: int = 1440
    storage_quota_mb: float = 4
    # Fraction of the oldest entries evicted on each purge.
    purge_percentage: float = 0.1
    metadata_timeout: float = 2.0
    backoff_base: float = 60.0
    backoff_cap: float = 300.0
    protocol_version: int = 2
    request_timeout: float = 10.0
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigError(f"api_url must be an http(s) URL, got {self.api_url!r}")
        for name in ("idle_threshold", "sync_interval", "health_ping_interval"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.min_duration < 0 or self.debounce_ms < 0:
            raise ConfigError("min_duration and debounce_ms must not be negative")
        if self.storage_quota_mb <= 0:
            raise ConfigError("storage_quota_mb must be positive")
        if not 0 < self.purge_percentage <= 1:
            raise ConfigError("purge_percentage must be in (0, 1]")
        if self.backoff_base <= 0 or self.backoff_cap < self.backoff_base:
            raise ConfigError("backoff_cap must be >= backoff_base > 0")
        if self.protocol_version not in (1, 2):
            raise ConfigError(f"Unsupported protocol version: {self.protocol_version}")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> Settings:
        """Build settings from ``FOCUS_LOGGER_*`` variables.

        Explicit keyword overrides win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _coerce(f.name, f.type, raw.strip())
        values.update(overrides)
        settings = cls(**values)
        logger.debug("Loaded settings: api_url=%s data_dir=%s", settings.api_url, settings.data_dir)
        return settings


def _coerce(name: str, type_name: str, raw: str):
    # Annotations are strings under ``from __future__ import annotations``.
    try:
        if type_name == "int":
            return int(raw)
        if type_name == "float":
            return float(raw)
        if type_name == "Path":
            return Path(raw).expanduser()
        return raw
    except ValueError as e:
        raise ConfigError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from e
