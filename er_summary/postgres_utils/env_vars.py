from __future__ import annotations

import os
from typing import Dict, Optional


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


ERSUMMARY_CONN = _get_env("ERSUMMARY_CONN") or _get_env("DATABASE_URL")
ERSUMMARY_SCHEMA = _get_env("ERSUMMARY_SCHEMA", "public")
ERSUMMARY_MAX_WORKERS = _get_int("ERSUMMARY_MAX_WORKERS", 1)
ERSUMMARY_LOG_LEVEL = (_get_env("ERSUMMARY_LOG_LEVEL", "WARNING") or "WARNING").upper()


def build_base_connection_config() -> Dict[str, object]:
    """Connection settings taken from the environment; empty values are kept as ''."""

    return {
        "conn": ERSUMMARY_CONN or "",
        "schema": ERSUMMARY_SCHEMA or "public",
        "max_workers": ERSUMMARY_MAX_WORKERS,
        "log_level": ERSUMMARY_LOG_LEVEL,
    }
