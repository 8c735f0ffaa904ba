"""FastAPI dependencies for the external clients.

Tests swap these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from .config import get_settings
from .conversation import ConversationService
from .llm import ModelClient
from .media import AudioUploader, build_uploader
from .pronunciation import PronunciationService


@lru_cache(maxsize=1)
def get_model_client() -> ModelClient:
    return ModelClient(get_settings())


@lru_cache(maxsize=1)
def get_uploader() -> AudioUploader:
    return build_uploader(get_settings())


def get_conversation_service(model: ModelClient = Depends(get_model_client)) -> ConversationService:
    return ConversationService(model)


def get_pronunciation_service(
    model: ModelClient = Depends(get_model_client),
    uploader: AudioUploader = Depends(get_uploader),
) -> PronunciationService:
    return PronunciationService(model, uploader)


__all__ = [
    "get_conversation_service",
    "get_model_client",
    "get_pronunciation_service",
    "get_uploader",
]
