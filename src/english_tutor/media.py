"""Audio validation and upload.

Recordings go to Cloudinary's upload API when credentials are configured;
otherwise they are written under the local upload directory. Both uploaders
return a reference string that is stored on the pronunciation attempt.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Protocol

import httpx

from .config import Settings
from .errors import MediaUploadError, ValidationError
from .models import UploadedAudio

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 10 * 1024 * 1024
ALLOWED_AUDIO_TYPES: frozenset[str] = frozenset(
    {"audio/wav", "audio/mp3", "audio/webm", "audio/ogg", "audio/mpeg"}
)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


class AudioUploader(Protocol):
    def upload_audio(self, audio: UploadedAudio) -> str: ...


def validate_audio(audio: UploadedAudio | None, *, field: str = "audio") -> UploadedAudio:
    if audio is None or not audio.data:
        raise ValidationError(f"{field} file is required")
    content_type = (audio.content_type or "").split(";", 1)[0].strip().lower()
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise ValidationError("Invalid file type. Only audio files are allowed.")
    if audio.size > MAX_AUDIO_BYTES:
        raise ValidationError("Audio file exceeds the 10MB limit")
    return audio


def _suffix(filename: str) -> str:
    return Path(filename or "").suffix.lower()


class CloudinaryUploader:
    """Signed uploads to Cloudinary; audio is stored under the ``video`` resource type."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clock = clock

    @property
    def upload_url(self) -> str:
        return f"{CLOUDINARY_API_BASE}/{self._settings.cloudinary_cloud_name}/video/upload"

    def sign(self, params: dict[str, str]) -> str:
        payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1((payload + self._settings.cloudinary_api_secret).encode("utf-8")).hexdigest()

    def upload_audio(self, audio: UploadedAudio) -> str:
        params = {
            "folder": self._settings.cloudinary_folder,
            "public_id": uuid.uuid4().hex,
            "timestamp": str(int(self._clock())),
        }
        form = {
            **params,
            "api_key": self._settings.cloudinary_api_key,
            "signature": self.sign(params),
        }
        files = {"file": (audio.filename or "recording", audio.data, audio.content_type)}

        logger.info("Uploading %d bytes of audio to Cloudinary", audio.size)
        try:
            with httpx.Client(timeout=self._settings.upload_timeout, transport=self._transport) as client:
                response = client.post(self.upload_url, data=form, files=files)
        except httpx.HTTPError as exc:
            logger.error("Cloudinary upload failed: %s", exc)
            raise MediaUploadError(f"Audio upload failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _cloudinary_error(response)
            logger.error("Cloudinary rejected upload (%d): %s", response.status_code, detail)
            raise MediaUploadError(f"Audio upload failed: {detail}")

        try:
            body = response.json()
        except ValueError as exc:
            raise MediaUploadError("Audio upload returned an invalid response") from exc
        url = (body.get("secure_url") or body.get("url")) if isinstance(body, dict) else None
        if not url:
            raise MediaUploadError("Audio upload response did not include a URL")
        return str(url)


def _cloudinary_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return f"HTTP {response.status_code}"


class LocalUploader:
    """Writes recordings to disk; used when Cloudinary is not configured."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def upload_audio(self, audio: UploadedAudio) -> str:
        target = self._directory / f"{uuid.uuid4().hex}{_suffix(audio.filename)}"
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            target.write_bytes(audio.data)
        except OSError as exc:
            raise MediaUploadError(f"Could not store audio: {exc}") from exc
        logger.info("Stored %d bytes of audio at %s", audio.size, target)
        return target.resolve().as_uri()


def build_uploader(settings: Settings) -> AudioUploader:
    if settings.cloudinary_configured:
        return CloudinaryUploader(settings)
    return LocalUploader(settings.upload_dir)


__all__ = [
    "ALLOWED_AUDIO_TYPES",
    "AudioUploader",
    "CloudinaryUploader",
    "LocalUploader",
    "MAX_AUDIO_BYTES",
    "build_uploader",
    "validate_audio",
]
