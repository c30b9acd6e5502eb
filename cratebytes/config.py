"""Configuration values for the CrateBytes SDK."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

# API connectivity
API_BASE_URL = os.getenv("CRATEBYTES_BASE_URL", "https://api.cratebytes.com/api/game")
PUBLIC_KEY = os.getenv("CRATEBYTES_PUBLIC_KEY", "")

# Session tracking (seconds)
HEARTBEAT_INTERVAL = 60.0
SESSION_TIMEOUT = 300.0
REQUEST_TIMEOUT = 15.0

# Player prefs file used by JsonFileStore
DEFAULT_STORE_PATH = os.path.join(os.path.expanduser("~"), ".cratebytes", "prefs.json")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SdkSettings:
    base_url: str = API_BASE_URL
    public_key: str = PUBLIC_KEY
    heartbeat_interval: float = HEARTBEAT_INTERVAL
    session_timeout: float = SESSION_TIMEOUT
    request_timeout: float = REQUEST_TIMEOUT
    enable_logging: bool = False
    store_path: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.base_url) and bool(self.public_key)


def load_settings() -> SdkSettings:
    return SdkSettings(
        base_url=os.getenv("CRATEBYTES_BASE_URL", API_BASE_URL),
        public_key=os.getenv("CRATEBYTES_PUBLIC_KEY", PUBLIC_KEY),
        heartbeat_interval=_env_float("CRATEBYTES_HEARTBEAT_INTERVAL", HEARTBEAT_INTERVAL),
        session_timeout=_env_float("CRATEBYTES_SESSION_TIMEOUT", SESSION_TIMEOUT),
        request_timeout=_env_float("CRATEBYTES_REQUEST_TIMEOUT", REQUEST_TIMEOUT),
        enable_logging=_env_flag("CRATEBYTES_ENABLE_LOGGING"),
        store_path=os.getenv("CRATEBYTES_STORE_PATH") or None,
    )
