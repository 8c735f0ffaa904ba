"""HTTP routes for the conversational turn pipeline."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from .conversation import ConversationService
from .deps import get_conversation_service

router = APIRouter(prefix="/conversation", tags=["conversation"])


class AskRequest(BaseModel):
    email: str | None = None
    message: str | None = None


class EditRequest(BaseModel):
    email: str | None = None
    content: str | None = None
    generate_new_response: bool = Field(False, alias="generateNewResponse")


@router.post("/ask")
async def ask(
    body: AskRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    return await run_in_threadpool(service.ask, body.email, body.message)


@router.put("/{turn_id}")
async def edit_turn(
    turn_id: int,
    body: EditRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    outcome = await run_in_threadpool(
        service.edit,
        turn_id,
        body.email,
        body.content,
        generate_new_response=body.generate_new_response,
    )
    return outcome.to_dict()


@router.delete("/{turn_id}")
async def delete_turn(
    turn_id: int,
    email: str | None = Query(None),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    deleted = await run_in_threadpool(service.delete, turn_id, email)
    return {"success": True, "deletedId": deleted}


@router.get("/history")
async def history(
    email: str | None = Query(None),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    return await run_in_threadpool(service.history, email)
