from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        return default


_DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3001",
]
ALLOWED_ORIGINS = [
    item.strip()
    for item in os.getenv("ALLOWED_ORIGINS", ",".join(_DEFAULT_ALLOWED_ORIGINS)).split(",")
    if item.strip()
]

SOURCE = os.getenv("CF_SOURCE", "yahoo").strip().lower()
PROXY_URL = os.getenv("CF_PROXY_URL", "http://localhost:8787/").strip()
YAHOO_URL = os.getenv(
    "CF_YAHOO_URL", "https://query1.finance.yahoo.com/v8/finance/chart"
).strip()

POLL_INTERVAL_SECONDS = _env_float("CF_POLL_INTERVAL_SECONDS", 15.0, minimum=0.5)
FETCH_TIMEOUT_SECONDS = _env_int("CF_FETCH_TIMEOUT_SECONDS", 8, minimum=1)
FETCH_RETRIES = _env_int("CF_FETCH_RETRIES", 2, minimum=1)
KEEPALIVE_SECONDS = 30

DEFAULT_TIMEFRAME = os.getenv("CF_DEFAULT_TIMEFRAME", "1d").strip().lower()
LOG_LEVEL = os.getenv("CF_LOG_LEVEL", "INFO").strip().upper()
DEBUG = _env_bool("CF_DEBUG", False)
