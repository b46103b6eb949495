"""
Configuration module for pqguard.

Settings come from ``PQGUARD_*`` environment variables, read once at
import. The deployment description (which guards run, with which keys) is
a JSON file, reloaded when it changes on disk.
"""

import json
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("PQGUARD_ENV", "dev")  # dev|stage|prod

# Minimum dwell time between propose and finalize (seconds)
ROTATION_DELAY = _env_int("PQGUARD_ROTATION_DELAY", 86400)

# Used-set persistence: memory|sqlite
USED_SET_BACKEND = os.getenv("PQGUARD_USED_SET_BACKEND", "memory")
DB_PATH = os.getenv("PQGUARD_DB_PATH", "data/pqguard.db")

# Deployment description (keys, root, guardians) for the service
DEPLOYMENT_PATH = os.getenv("PQGUARD_DEPLOYMENT_PATH", "deployment/pqguard.json")

# Signed operator messages further than this from server time are rejected
MAX_CLOCK_SKEW_SECONDS = _env_int("PQGUARD_MAX_CLOCK_SKEW_SECONDS", 300)

LOG_LEVEL = os.getenv("PQGUARD_LOG_LEVEL", "INFO")
LOG_JSON = _env_flag("PQGUARD_LOG_JSON", True)

# How often the deployment file's mtime is re-checked (seconds)
CONFIG_CACHE_TTL = _env_int("PQGUARD_CONFIG_CACHE_TTL", 60)


# ============================================================
# Deployment File Cache
# ============================================================

class CachedConfig:
    """
    JSON file cache keyed by path.

    An entry is served from memory until ``ttl_seconds`` have passed since
    it was last checked; after that the file is re-read only if its mtime
    moved.
    """

    def __init__(self, ttl_seconds: int = 60):
        self._ttl = ttl_seconds
        self._lock = threading.RLock()
        # path -> (data, mtime, checked_at)
        self._entries: Dict[str, Tuple[Dict[str, Any], float, float]] = {}

    def get_json(self, path: str, force_reload: bool = False) -> Dict[str, Any]:
        with self._lock:
            now = time.monotonic()
            entry = self._entries.get(path)
            if entry is not None and not force_reload:
                data, mtime, checked_at = entry
                if now - checked_at <= self._ttl:
                    return data
                if os.stat(path).st_mtime == mtime:
                    self._entries[path] = (data, mtime, now)
                    return data

            mtime = os.stat(path).st_mtime
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._entries[path] = (data, mtime, now)
            return data

    def invalidate(self, path: Optional[str] = None) -> None:
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(path, None)


_config_cache = CachedConfig(ttl_seconds=CONFIG_CACHE_TTL)


def load_deployment(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the deployment description (``DEPLOYMENT_PATH`` by default)."""
    return _config_cache.get_json(path or DEPLOYMENT_PATH)


def invalidate_config_cache() -> None:
    _config_cache.invalidate()


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check settings the service depends on.

    Returns a dict of check name -> ok.
    """
    return {
        "deployment": Path(DEPLOYMENT_PATH).is_file(),
        "rotation_delay": ROTATION_DELAY >= 0,
        "used_set_backend": USED_SET_BACKEND in ("memory", "sqlite"),
        "db_path": USED_SET_BACKEND != "sqlite" or bool(DB_PATH),
        "max_clock_skew": MAX_CLOCK_SKEW_SECONDS > 0,
    }


def is_production() -> bool:
    return ENV == "prod"
