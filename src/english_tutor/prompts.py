"""Prompt config loader: reads model settings from data/prompts.yaml.

The file is loaded on first access and cached for 30 seconds, so model names,
temperatures and the tutor persona can be tuned without a restart. Every key
has a built-in default; a missing or broken file never breaks a request.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any

import yaml

from .config import DATA_DIR

logger = logging.getLogger(__name__)

PROMPTS_PATH = Path(os.environ.get("ENGLISH_TUTOR_PROMPTS_PATH", DATA_DIR / "prompts.yaml"))

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TEMPERATURE = 0.7

_cache: dict[str, Any] | None = None
_cache_time: float = 0.0
_CACHE_TTL = 30.0  # seconds


def _load_prompts() -> dict[str, Any]:
    """Load prompt config from the YAML file, with a short cache."""
    global _cache, _cache_time
    now = time.monotonic()
    if _cache is not None and (now - _cache_time) < _CACHE_TTL:
        return _cache
    try:
        raw = Path(PROMPTS_PATH).read_text(encoding="utf-8")
        data = yaml.safe_load(raw) or {}
    except FileNotFoundError:
        data = {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not load prompt config from %s: %s", PROMPTS_PATH, exc)
        data = {}
    if not isinstance(data, dict):
        data = {}
    _cache = data
    _cache_time = now
    return data


def invalidate_cache() -> None:
    """Force the next get() to re-read the YAML file."""
    global _cache, _cache_time
    _cache = None
    _cache_time = 0.0


def get(key: str, default: str = "") -> str:
    """Get a string by dotted key, e.g. 'tutor_persona' or 'models.conversation'."""
    current: Any = _load_prompts()
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    if isinstance(current, str):
        return current.strip()
    return default


def get_model(operation: str) -> str:
    """Model name for an operation: conversation, assessment, tips, compare, questions."""
    models = _load_prompts().get("models") or {}
    if not isinstance(models, dict):
        return DEFAULT_MODEL
    return str(models.get(operation) or models.get("default") or DEFAULT_MODEL)


def get_temperature(operation: str) -> float:
    temps = _load_prompts().get("temperatures") or {}
    if not isinstance(temps, dict):
        return DEFAULT_TEMPERATURE
    try:
        return float(temps.get(operation, temps.get("default", DEFAULT_TEMPERATURE)))
    except (ValueError, TypeError):
        return DEFAULT_TEMPERATURE


__all__ = [
    "DEFAULT_MODEL",
    "DEFAULT_TEMPERATURE",
    "get",
    "get_model",
    "get_temperature",
    "invalidate_cache",
]
