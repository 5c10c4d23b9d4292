"""Application configuration accessors.

Centralizes environment variable parsing & defaults so services and routes
never read ``os.environ`` directly.
"""
from __future__ import annotations

import os
from functools import lru_cache

APP_NAME = "lectio"
APP_VERSION = "0.4.0"
APP_DESCRIPTION = "EPUB cover resolution service"

DEFAULT_DB_PATH = "lectio.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_UPLOADS_DIR = "uploads"
DEFAULT_COVER_SEARCH_URL = "https://openlibrary.org/search.json"
DEFAULT_COVER_IMAGE_URL = "https://covers.openlibrary.org/b/id"
DEFAULT_COVER_FETCH_TIMEOUT = 5.0
DEFAULT_API_RATE_LIMIT = 200
DEFAULT_API_RATE_WINDOW = 60
_TRUE = {"1", "true", "yes", "on"}


def _raw_env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def env_bool(name: str, default: bool = False) -> bool:
    raw = _raw_env(name, str(default).lower())
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE


def _env_float(name: str, default: float) -> float:
    raw = _raw_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = _raw_env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_db_path() -> str:
    raw = _raw_env("LECTIO_DB_PATH", DEFAULT_DB_PATH)
    if raw and raw != ":memory:" and not os.path.isabs(raw):
        data_dir = os.getenv("LECTIO_DATA_DIR")
        if data_dir:
            return os.path.join(data_dir, raw)
    return raw  # type: ignore[return-value]


def log_level_name() -> str:
    return _raw_env("LECTIO_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()  # type: ignore[union-attr]


def uploads_dir() -> str:
    """Root directory every stored document path must resolve inside."""
    return _raw_env("LECTIO_UPLOADS_DIR", DEFAULT_UPLOADS_DIR)  # type: ignore[return-value]


def covers_dir() -> str:
    """Cover cache directory (LECTIO_COVERS_DIR, default ``<uploads>/covers``)."""
    value = os.getenv("LECTIO_COVERS_DIR")
    if value and value.strip():
        return value.strip()
    return os.path.join(uploads_dir(), "covers")


def cover_search_url() -> str:
    return os.getenv("LECTIO_COVER_SEARCH_URL", DEFAULT_COVER_SEARCH_URL)


def cover_image_url() -> str:
    return os.getenv("LECTIO_COVER_IMAGE_URL", DEFAULT_COVER_IMAGE_URL).rstrip("/")


def cover_fetch_timeout() -> float:
    """Seconds allowed for each external cover call (search and image fetch)."""
    return _env_float("LECTIO_COVER_FETCH_TIMEOUT", DEFAULT_COVER_FETCH_TIMEOUT)


def cover_single_flight() -> bool:
    return env_bool("LECTIO_COVER_SINGLE_FLIGHT", default=True)


def api_rate_limit() -> int:
    return _env_int("LECTIO_API_RATE_LIMIT", DEFAULT_API_RATE_LIMIT)


def api_rate_window() -> int:
    return _env_int("LECTIO_API_RATE_WINDOW", DEFAULT_API_RATE_WINDOW)


def cors_origin() -> str | None:
    """Origin echoed on embedded cover responses (LECTIO_CORS_ORIGIN)."""
    value = os.getenv("LECTIO_CORS_ORIGIN")
    if value is None:
        return None
    value = value.strip()
    return value or None


@lru_cache(maxsize=1)
def metadata() -> dict:
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
    }


def summarize_runtime_config() -> dict:
    return {
        "db_path": get_db_path(),
        "log_level": log_level_name(),
        "uploads_dir": uploads_dir(),
        "covers_dir": covers_dir(),
        "cover_fetch_timeout": cover_fetch_timeout(),
        "cover_single_flight": cover_single_flight(),
    }


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "env_bool",
    "get_db_path",
    "log_level_name",
    "uploads_dir",
    "covers_dir",
    "cover_search_url",
    "cover_image_url",
    "cover_fetch_timeout",
    "cover_single_flight",
    "api_rate_limit",
    "api_rate_window",
    "cors_origin",
    "metadata",
    "summarize_runtime_config",
]
