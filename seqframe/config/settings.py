"""
Settings loading.

Reads ``SEQFRAME_*`` environment variables into a ProtocolSettings.
"""

from __future__ import annotations

import os
from functools import lru_cache

from .schemas import ProtocolSettings

ENV_PREFIX = "SEQFRAME_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _optional(value: str | None) -> str | None:
    """Empty and "none" both mean unset."""
    if value is None or value.strip().lower() in ("", "none"):
        return None
    return value


def load_settings() -> ProtocolSettings:
    """
    Build settings from the environment.

    Raises:
        pydantic.ValidationError: a variable holds an invalid value
    """
    return ProtocolSettings(
        # Service
        service_name=_env("SERVICE_NAME", "seqframe"),
        environment=_env("ENVIRONMENT", "development"),
        debug=_env("DEBUG", "false").lower() == "true",
        # Frame store
        start_sequence=_env("START_SEQUENCE", "1"),
        default_scope=_env("DEFAULT_SCOPE", "default"),
        history_limit=_optional(_env("HISTORY_LIMIT")),
        # Dispatcher
        mutation_timeout=_optional(_env("MUTATION_TIMEOUT", "30")),
        require_thoughts=_env("REQUIRE_THOUGHTS", "false").lower() == "true",
        # Session sync
        small_gap_threshold=_env("SMALL_GAP_THRESHOLD", "20"),
        max_unacked=_env("MAX_UNACKED", "50"),
    )


@lru_cache()
def get_settings() -> ProtocolSettings:
    """
    Get protocol settings from environment.

    Uses lru_cache for singleton pattern; call ``get_settings.cache_clear()``
    after changing the environment.
    """
    return load_settings()
