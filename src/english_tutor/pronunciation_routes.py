"""HTTP routes for pronunciation assessment, history, tips and comparison."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from .deps import get_pronunciation_service
from .media import MAX_AUDIO_BYTES
from .models import UploadedAudio
from .pronunciation import PronunciationService

router = APIRouter(prefix="/pronunciation", tags=["pronunciation"])


async def _read_upload(upload: UploadFile | None) -> UploadedAudio | None:
    """Read at most one byte past the limit so oversize files are rejected without buffering them whole."""
    if upload is None:
        return None
    data = await upload.read(MAX_AUDIO_BYTES + 1)
    return UploadedAudio(
        filename=upload.filename or "",
        content_type=upload.content_type or "",
        data=data,
    )


@router.post("/assess")
async def assess(
    email: str | None = Form(None),
    word: str | None = Form(None),
    audio: UploadFile | None = File(None),
    service: PronunciationService = Depends(get_pronunciation_service),
) -> dict[str, Any]:
    recording = await _read_upload(audio)
    return await run_in_threadpool(service.assess, email, word, recording)


@router.get("/history")
async def history(
    email: str | None = Query(None),
    service: PronunciationService = Depends(get_pronunciation_service),
) -> dict[str, Any]:
    return await run_in_threadpool(service.history, email)


@router.get("/tips")
async def tips(
    word: str | None = Query(None),
    email: str | None = Query(None),
    service: PronunciationService = Depends(get_pronunciation_service),
) -> dict[str, Any]:
    return await run_in_threadpool(service.tips, word, email)


@router.post("/compare")
async def compare(
    word: str | None = Form(None),
    user_audio: UploadFile | None = File(None, alias="userAudio"),
    reference_audio: UploadFile | None = File(None, alias="referenceAudio"),
    service: PronunciationService = Depends(get_pronunciation_service),
) -> dict[str, Any]:
    user_recording = await _read_upload(user_audio)
    reference_recording = await _read_upload(reference_audio)
    return await run_in_threadpool(service.compare, word, user_recording, reference_recording)
