"""Runtime settings read from the process environment.

Settings are resolved once per process and passed explicitly into the model
and upload clients, so tests can construct their own.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _env_log_level(name: str, default: str = "INFO") -> str:
    level = os.environ.get(name, "").strip().upper()
    if level in logging.getLevelNamesMapping():
        return level
    return default


@dataclass(frozen=True, slots=True)
class Settings:
    gemini_api_key: str = ""
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    model_timeout: float = 20.0
    model_retry_backoff: float = 1.0
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "pronunciation"
    upload_timeout: float = 30.0
    upload_dir: Path = DATA_DIR / "uploads"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = ""

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret
        )

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            gemini_api_key=os.environ.get("GEMINI_API_KEY", ""),
            gemini_base_url=os.environ.get("GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL),
            model_timeout=_env_float("ENGLISH_TUTOR_MODEL_TIMEOUT", 20.0),
            model_retry_backoff=_env_float("ENGLISH_TUTOR_MODEL_RETRY_BACKOFF", 1.0),
            cloudinary_cloud_name=os.environ.get("CLOUDINARY_CLOUD_NAME", ""),
            cloudinary_api_key=os.environ.get("CLOUDINARY_API_KEY", ""),
            cloudinary_api_secret=os.environ.get("CLOUDINARY_API_SECRET", ""),
            cloudinary_folder=os.environ.get("CLOUDINARY_FOLDER", "pronunciation"),
            upload_timeout=_env_float("ENGLISH_TUTOR_UPLOAD_TIMEOUT", 30.0),
            upload_dir=Path(os.environ.get("ENGLISH_TUTOR_UPLOAD_DIR", DATA_DIR / "uploads")),
            debug=_env_bool("ENGLISH_TUTOR_DEBUG"),
            log_level=_env_log_level("ENGLISH_TUTOR_LOG_LEVEL"),
            log_file=os.environ.get("ENGLISH_TUTOR_LOG_FILE", ""),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


__all__ = ["DATA_DIR", "PROJECT_ROOT", "Settings", "get_settings"]
