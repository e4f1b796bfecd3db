from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


API_BASE_URL = _env_str("COINBASE_API_BASE_URL", "https://api.coinbase.com")
API_VERSION = _env_str("COINBASE_API_VERSION", "2016-05-16")
EXCHANGE_BASE_URL = _env_str("COINBASE_EXCHANGE_BASE_URL", "https://api.exchange.coinbase.com")
WS_FEED_URL = _env_str("COINBASE_WS_FEED_URL", "wss://ws-feed.exchange.coinbase.com")

HTTP_TIMEOUT_S = _env_float("COINBASE_HTTP_TIMEOUT_S", 30.0)

# Inter-page throttle for cursor-paginated listings; 0 means back-to-back.
PAGE_THROTTLE_MS = _env_int("COINBASE_PAGE_THROTTLE_MS", 0)

# Candle history is windowed and fetched in parallel.
CANDLE_THROTTLE_MS = _env_int("COINBASE_CANDLE_THROTTLE_MS", 350)
CANDLE_WINDOW_S = _env_int("COINBASE_CANDLE_WINDOW_S", 5 * 3600)
CANDLE_MAX_GRANULARITY_S = _env_int("COINBASE_CANDLE_MAX_GRANULARITY_S", 30)
CANDLE_WORKERS = max(1, _env_int("COINBASE_CANDLE_WORKERS", 4))

LOG_LEVEL = _env_str("COINBASE_LOG_LEVEL", "INFO")

ENV_API_KEY = "COINBASE_API_KEY"
ENV_API_SECRET = "COINBASE_API_SECRET"
ENV_API_PASSPHRASE = "COINBASE_API_PASSPHRASE"


def load_config(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def credentials_from_config(cfg: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Pull api_key/api_secret/passphrase out of a config mapping.

    Accepts them at the top level or under a `coinbase:` section.
    """
    section = cfg.get("coinbase", cfg)
    if not isinstance(section, dict):
        return None
    api_key = str(section.get("api_key") or "").strip()
    api_secret = str(section.get("api_secret") or "").strip()
    if not api_key or not api_secret:
        return None
    return {
        "api_key": api_key,
        "api_secret": api_secret,
        "passphrase": str(section.get("passphrase") or "").strip(),
    }
