"""
Runtime configuration for the storefront.

All settings come from environment variables so the same code runs in
tests, the CLI and any embedding process without a config file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_MAX_BYTES = 50 * 1024 * 1024  # 50MB
DEFAULT_CACHE_TTL_MS = 300_000  # 5 minutes

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}; using {default}")
        return default
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class Settings:
    """Storefront settings.  ``storage_path`` of None means in-memory storage."""
    storage_path: Optional[str] = None
    cache_max_bytes: int = DEFAULT_CACHE_MAX_BYTES
    cache_default_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    auth_disabled: bool = False
    log_dir: str = "logs"
    log_level: str = "INFO"
    tenant_id: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        level = os.environ.get("BUENA_LOG_LEVEL", "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            logger.warning(f"Unknown BUENA_LOG_LEVEL={level!r}; using INFO")
            level = "INFO"
        return cls(
            storage_path=os.environ.get("BUENA_STORAGE_PATH") or None,
            cache_max_bytes=_env_int("BUENA_CACHE_MAX_BYTES", DEFAULT_CACHE_MAX_BYTES),
            cache_default_ttl_ms=_env_int("BUENA_CACHE_DEFAULT_TTL_MS", DEFAULT_CACHE_TTL_MS),
            auth_disabled=_env_bool("BUENA_AUTH_DISABLED"),
            log_dir=os.environ.get("BUENA_LOG_DIR", "logs"),
            log_level=level,
            tenant_id=os.environ.get("BUENA_TENANT_ID") or None,
        )

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)
