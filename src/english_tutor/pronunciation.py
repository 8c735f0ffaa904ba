"""Pronunciation flow: upload a recording, have the model assess it, keep the attempt."""

from __future__ import annotations

import logging
from typing import Any

from . import db
from .context import resolve_user
from .errors import UpstreamModelError, ValidationError
from .llm import ModelClient
from .media import AudioUploader, validate_audio
from .models import PronunciationAttempt, UploadedAudio, User, UserProfile
from .parsing import (
    fallback_tips,
    load_stored_json,
    parse_assessment,
    parse_comparison,
    parse_tips,
)
from .prompt_builder import build_assessment_prompt, build_compare_prompt, build_tips_prompt

logger = logging.getLogger(__name__)

HISTORY_PREVIEW_CHARS = 100


def _feedback_view(feedback: str) -> dict[str, Any]:
    data = load_stored_json(feedback)
    if data is not None:
        return data
    return {"raw": feedback[:HISTORY_PREVIEW_CHARS] + "..."}


def attempt_to_history_item(attempt: PronunciationAttempt) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "word": attempt.word,
        "accuracy": attempt.accuracy,
        "audioUrl": attempt.audio_url,
        "feedback": _feedback_view(attempt.feedback),
        "date": attempt.created_at,
    }


def learner_stats(user: User) -> dict[str, int]:
    attempts = db.fetch_pronunciation_attempts(user.id)
    accuracy = round(sum(a.accuracy for a in attempts) / len(attempts)) if attempts else 0
    return {
        "turnCount": db.count_turns(user.id),
        "pronunciationAttempts": len(attempts),
        "pronunciationAccuracy": accuracy,
    }


class PronunciationService:
    def __init__(self, model_client: ModelClient, uploader: AudioUploader) -> None:
        self._model = model_client
        self._uploader = uploader

    def assess(self, email: str | None, word: str | None, audio: UploadedAudio | None) -> dict[str, Any]:
        """Upload the recording, assess it and store the attempt.

        Validation and user lookup happen before the upload, so a rejected
        request leaves nothing behind.
        """
        if not email or not email.strip() or not word or not word.strip() or audio is None:
            raise ValidationError("Email, word, and audio file are required")
        validate_audio(audio)
        word = word.strip()
        user = resolve_user(email)

        audio_url = self._uploader.upload_audio(audio)
        prompt = build_assessment_prompt(UserProfile.from_user(user), word, audio_url)
        raw = self._model.generate(prompt, operation="assessment")
        result = parse_assessment(raw, word)

        attempt = db.insert_pronunciation_attempt(
            user_id=user.id,
            word=word,
            audio_url=audio_url,
            accuracy=result.payload["accuracy"],
            feedback=result.stored_text,
        )
        logger.info(
            "Stored pronunciation attempt %d for user %d (accuracy=%d, degraded=%s)",
            attempt.id,
            user.id,
            attempt.accuracy,
            result.degraded,
        )
        payload = dict(result.payload)
        payload["attemptId"] = attempt.id
        payload["audioUrl"] = audio_url
        return payload

    def history(self, email: str | None) -> dict[str, Any]:
        user = resolve_user(email)
        attempts = db.fetch_pronunciation_attempts(user.id)
        return {"success": True, "history": [attempt_to_history_item(a) for a in attempts]}

    def tips(self, word: str | None, email: str | None = None) -> dict[str, Any]:
        if not word or not word.strip():
            raise ValidationError("Word parameter is required")
        word = word.strip()
        profile = None
        if email and email.strip():
            user = db.get_user_by_email(email)
            if user is not None:
                profile = UserProfile.from_user(user)
        try:
            raw = self._model.generate(build_tips_prompt(word, profile), operation="tips")
        except UpstreamModelError as exc:
            logger.warning("Tips model unavailable for %r, using generic guide: %s", word, exc.message)
            return fallback_tips(word)
        return parse_tips(raw, word).payload

    def compare(
        self,
        word: str | None,
        user_audio: UploadedAudio | None,
        reference_audio: UploadedAudio | None,
    ) -> dict[str, Any]:
        if not word or not word.strip() or user_audio is None or reference_audio is None:
            raise ValidationError("Word, user audio, and reference audio are required")
        validate_audio(user_audio, field="userAudio")
        validate_audio(reference_audio, field="referenceAudio")
        word = word.strip()
        prompt = build_compare_prompt(word, user_audio.filename, reference_audio.filename)
        raw = self._model.generate(prompt, operation="compare")
        return parse_comparison(raw, word).payload


__all__ = [
    "PronunciationService",
    "attempt_to_history_item",
    "learner_stats",
]
