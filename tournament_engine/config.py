"""Environment configuration for the tournament engine."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_CHALLONGE_API_BASE = "https://api.challonge.com/v1"


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class ChallongeSettings:
    username: str
    api_key: str
    api_base: str = DEFAULT_CHALLONGE_API_BASE
    timeout: float = 30.0


@dataclass(frozen=True)
class StorageSettings:
    table_name: str | None
    region: str


def read_challonge_settings() -> ChallongeSettings | None:
    """Return Challonge credentials, or None when bracket mirroring is off."""
    if not env_bool("CHALLONGE_ENABLED", default=True):
        return None
    username = os.getenv("CHALLONGE_USERNAME")
    api_key = os.getenv("CHALLONGE_API_KEY")
    if not username or not api_key:
        return None
    return ChallongeSettings(
        username=username,
        api_key=api_key,
        api_base=os.getenv("CHALLONGE_API_BASE") or DEFAULT_CHALLONGE_API_BASE,
        timeout=float(env_int("CHALLONGE_TIMEOUT", default=30) or 30),
    )


def read_storage_settings() -> StorageSettings:
    return StorageSettings(
        table_name=os.getenv("TOURNAMENT_TABLE_NAME") or None,
        region=os.getenv("AWS_REGION", "us-east-1"),
    )
