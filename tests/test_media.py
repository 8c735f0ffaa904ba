"""Tests for audio validation and the upload clients."""

from __future__ import annotations

import hashlib
from pathlib import Path

import httpx
import pytest

from english_tutor.config import Settings
from english_tutor.errors import MediaUploadError, ValidationError
from english_tutor.media import (
    MAX_AUDIO_BYTES,
    CloudinaryUploader,
    LocalUploader,
    build_uploader,
    validate_audio,
)
from english_tutor.models import UploadedAudio


def _audio(content_type: str = "audio/wav", data: bytes = b"RIFF....WAVE") -> UploadedAudio:
    return UploadedAudio(filename="take.wav", content_type=content_type, data=data)


def _cloudinary_settings() -> Settings:
    return Settings(
        cloudinary_cloud_name="demo",
        cloudinary_api_key="key123",
        cloudinary_api_secret="secret",
    )


class TestValidateAudio:
    @pytest.mark.parametrize("content_type", ["audio/wav", "audio/mp3", "audio/webm", "audio/ogg", "audio/mpeg"])
    def test_allowed_types(self, content_type):
        assert validate_audio(_audio(content_type)).content_type == content_type

    def test_content_type_parameters_ignored(self):
        validate_audio(_audio("audio/webm;codecs=opus"))

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError, match="Only audio files"):
            validate_audio(_audio("image/png"))

    def test_rejects_missing_or_empty(self):
        with pytest.raises(ValidationError, match="audio file is required"):
            validate_audio(None)
        with pytest.raises(ValidationError, match="userAudio file is required"):
            validate_audio(_audio(data=b""), field="userAudio")

    def test_rejects_oversize(self):
        with pytest.raises(ValidationError, match="10MB"):
            validate_audio(_audio(data=b"0" * (MAX_AUDIO_BYTES + 1)))


class TestCloudinaryUploader:
    def test_signed_upload_returns_secure_url(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            seen["body"] = request.read()
            return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/demo/a.wav"})

        uploader = CloudinaryUploader(
            _cloudinary_settings(),
            transport=httpx.MockTransport(handler),
            clock=lambda: 1700000000.0,
        )
        assert uploader.upload_audio(_audio()) == "https://res.cloudinary.com/demo/a.wav"
        request = seen["request"]
        assert str(request.url) == "https://api.cloudinary.com/v1_1/demo/video/upload"
        body = seen["body"]
        assert b'name="api_key"' in body and b"key123" in body
        assert b'name="signature"' in body
        assert b"1700000000" in body

    def test_signature(self):
        uploader = CloudinaryUploader(_cloudinary_settings())
        expected = hashlib.sha1(b"folder=f&timestamp=1secret").hexdigest()
        assert uploader.sign({"timestamp": "1", "folder": "f"}) == expected

    def test_rejected_upload(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(401, json={"error": {"message": "Invalid Signature"}})
        )
        uploader = CloudinaryUploader(_cloudinary_settings(), transport=transport)
        with pytest.raises(MediaUploadError, match="Invalid Signature"):
            uploader.upload_audio(_audio())

    def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        uploader = CloudinaryUploader(_cloudinary_settings(), transport=httpx.MockTransport(handler))
        with pytest.raises(MediaUploadError):
            uploader.upload_audio(_audio())

    def test_response_without_url(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"public_id": "x"}))
        uploader = CloudinaryUploader(_cloudinary_settings(), transport=transport)
        with pytest.raises(MediaUploadError):
            uploader.upload_audio(_audio())


class TestLocalUploader:
    def test_writes_file_and_returns_uri(self, tmp_path):
        uri = LocalUploader(tmp_path / "uploads").upload_audio(_audio(data=b"abc"))
        assert uri.startswith("file://")
        stored = list((tmp_path / "uploads").iterdir())
        assert len(stored) == 1
        assert stored[0].suffix == ".wav"
        assert stored[0].read_bytes() == b"abc"

    def test_build_uploader_picks_backend(self, tmp_path):
        assert isinstance(build_uploader(_cloudinary_settings()), CloudinaryUploader)
        local = build_uploader(Settings(upload_dir=Path(tmp_path)))
        assert isinstance(local, LocalUploader)
