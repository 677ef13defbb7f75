"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.domain.onboarding import ONBOARDING_QUEUE
from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_float_tuple_env(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    """
    Read a comma-separated list of non-negative floats, e.g. ``10,30,60``.
    Falls back to the default when any item is malformed.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        values = tuple(float(item) for item in raw_value.split(",") if item.strip())
    except ValueError:
        return default
    if not values or any(value < 0 for value in values):
        return default
    return values


@dataclass(frozen=True)
class AppSettings:
    """
    Top-level application settings.

    debug exposes internal error messages in 500 responses.
    """

    debug: bool = False
    log_level: str = "INFO"


@dataclass(frozen=True)
class OnboardingSettings:
    """
    Runtime settings for bulk registration and the onboarding worker lane.
    """

    max_batch_size: int = 1000
    insert_chunk_size: int = 500
    queue_name: str = ONBOARDING_QUEUE
    max_attempts: int = 3
    backoff_seconds: tuple[float, ...] = (10.0, 30.0, 60.0)
    timeout_seconds: float = 300.0
    worker_concurrency: int = 8
    action_path: str | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings(
        debug=_get_bool_env("APP_DEBUG", False),
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_onboarding_settings() -> OnboardingSettings:
    """
    Return cached onboarding settings from environment variables.
    """

    return OnboardingSettings(
        max_batch_size=max(1, _get_int_env("ONBOARDING_MAX_BATCH_SIZE", 1000)),
        insert_chunk_size=max(1, _get_int_env("ONBOARDING_INSERT_CHUNK_SIZE", 500)),
        queue_name=_get_str_env("ONBOARDING_QUEUE_NAME", ONBOARDING_QUEUE),
        max_attempts=max(1, _get_int_env("ONBOARDING_MAX_ATTEMPTS", 3)),
        backoff_seconds=_get_float_tuple_env("ONBOARDING_BACKOFF_SECONDS", (10.0, 30.0, 60.0)),
        timeout_seconds=max(1.0, _get_float_env("ONBOARDING_TIMEOUT_SECONDS", 300.0)),
        worker_concurrency=max(1, _get_int_env("ONBOARDING_WORKER_CONCURRENCY", 8)),
        action_path=_get_optional_str_env("ONBOARDING_ACTION"),
    )
