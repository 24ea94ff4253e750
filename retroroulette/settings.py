"""Application settings for RetroRoulette."""
from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from typing import Any, Dict

from .shared_config import CONFIG_FILE, MAX_REEL_COUNT, MIN_REEL_COUNT, SETTINGS_FILE

log = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = SETTINGS_FILE

DEFAULT_SETTINGS: Dict[str, Any] = {
    "config_path": CONFIG_FILE,
    "reels": {
        "count": 3,
        "spin_tick_seconds": 0.04,
    },
    "browser": {
        "max_results": 100,
    },
    "web": {
        "host": "127.0.0.1",
        "port": 5000,
    },
    "monitor": {
        "heartbeat_seconds": 0,
        "echo": False,
    },
}


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    out = deepcopy(base)
    for k, v in (updates or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = deepcopy(v)
    return out


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> Dict[str, Any]:
    if not os.path.exists(path):
        return deepcopy(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning("Ignoring unreadable settings file %s: %s", path, e)
        return deepcopy(DEFAULT_SETTINGS)
    if not isinstance(data, dict):
        return deepcopy(DEFAULT_SETTINGS)
    return _deep_merge(DEFAULT_SETTINGS, data)


def save_settings(settings: Dict[str, Any], path: str = DEFAULT_SETTINGS_PATH) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, ensure_ascii=False, indent=2)


def clamp_reel_count(count: int) -> int:
    return max(MIN_REEL_COUNT, min(MAX_REEL_COUNT, int(count)))


def reel_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    reels = settings.get("reels", {})
    return {
        "count": clamp_reel_count(reels.get("count", 3)),
        "spin_tick_seconds": float(reels.get("spin_tick_seconds", 0.04)),
    }
