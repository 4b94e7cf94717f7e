"""Runtime configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from .errors import ConfigError

DEFAULT_LOG_LEVEL = "error"
LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    delay: float = 5.0
    log_level: str = DEFAULT_LOG_LEVEL
    instance: Optional[str] = None


def normalize_log_level(value: Optional[str]) -> str:
    """Return a lower-case level name uvicorn and logging both accept."""
    level = (value or "").strip().lower()
    if level == "warn":
        level = "warning"
    return level if level in LOG_LEVELS else DEFAULT_LOG_LEVEL


def parse_port(value: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid port: {value!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range: {port}")
    return port


def parse_delay(value: str) -> float:
    try:
        delay = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid delay: {value!r}") from exc
    if not delay > 0:
        raise ConfigError(f"delay must be positive: {value!r}")
    return delay


def load_settings(
    host: Optional[str] = None,
    port: Optional[int] = None,
    delay: Optional[float] = None,
    log_level: Optional[str] = None,
    instance: Optional[str] = None,
) -> Settings:
    """Build settings from explicit values, reading the environment only for the rest.

    An explicit value means the matching environment variable is never parsed,
    so a command-line flag can replace a malformed one.
    """
    if host is None:
        host = os.getenv("INSTANCE_MONITOR_HOST", "0.0.0.0")
    if port is None:
        port = parse_port(os.getenv("INSTANCE_MONITOR_PORT", "8080"))
    if delay is None:
        delay = parse_delay(os.getenv("INSTANCE_MONITOR_DELAY", "5"))
    if log_level is None:
        log_level = os.getenv("INSTANCE_MONITOR_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    if instance is None:
        instance = os.getenv("INSTANCE_MONITOR_INSTANCE")
    return Settings(
        host=host,
        port=port,
        delay=delay,
        log_level=normalize_log_level(log_level),
        instance=instance or None,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    return load_settings()
