"""Learner-facing profile endpoints: starter questions and progress stats."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from .context import resolve_user
from .deps import get_model_client
from .errors import UpstreamModelError
from .llm import ModelClient
from .models import UserProfile
from .parsing import fallback_questions, parse_questions
from .prompt_builder import build_initial_questions_prompt
from .pronunciation import learner_stats

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])


class InitialQuestionsRequest(BaseModel):
    email: str | None = None


def initial_questions(model: ModelClient, email: str | None) -> dict[str, Any]:
    """Six personalised opening questions; a profile-based set when the model can't supply them."""
    user = resolve_user(email)
    profile = UserProfile.from_user(user)
    try:
        raw = model.generate(build_initial_questions_prompt(profile), operation="questions")
    except UpstreamModelError as exc:
        logger.warning("Question model unavailable for user %d: %s", user.id, exc.message)
        return {"success": True, "questions": fallback_questions(profile), "fallback": True}
    parsed = parse_questions(raw, profile)
    payload: dict[str, Any] = {"success": True, "questions": parsed.questions}
    if parsed.degraded:
        payload["fallback"] = True
    return payload


def profile_summary(email: str | None) -> dict[str, Any]:
    user = resolve_user(email)
    return {"success": True, "user": user.to_dict(), "stats": learner_stats(user)}


@router.post("/initial-questions")
async def create_initial_questions(
    body: InitialQuestionsRequest,
    model: ModelClient = Depends(get_model_client),
) -> dict[str, Any]:
    return await run_in_threadpool(initial_questions, model, body.email)


@router.get("/profile")
async def get_profile(email: str | None = Query(None)) -> dict[str, Any]:
    return await run_in_threadpool(profile_summary, email)
