"""Turn lifecycle: ask, edit (optionally regenerating the reply), delete, history.

Every mutation is an ownership-checked conditional statement in ``db``; when
it touches no row the turn is looked up once more only to tell a missing
turn (404) from someone else's turn (403).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from . import db
from .context import assemble_context, render_context_block, resolve_user
from .errors import ForbiddenError, TurnNotFoundError, UpstreamModelError, ValidationError
from .llm import ModelClient
from .models import Turn, User
from .parsing import ParsedReply, load_stored_json, parse_tutor_reply
from .prompt_builder import build_conversation_prompt

logger = logging.getLogger(__name__)


def _require_text(value: str | None, message: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message)
    return str(value)


@dataclass(slots=True)
class EditOutcome:
    turn: Turn
    regenerated: bool = False
    reply: ParsedReply | None = None
    regeneration_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "turn": self.turn.to_dict(),
            "regenerated": self.regenerated,
        }
        if self.reply is not None:
            payload["response"] = self.reply.to_dict()
        if self.regeneration_error is not None:
            payload["regenerationError"] = self.regeneration_error
        return payload


class ConversationService:
    def __init__(self, model_client: ModelClient) -> None:
        self._model = model_client

    def _reply_for(self, user: User, message: str, *, exclude_turn_id: int | None = None) -> ParsedReply:
        context = assemble_context(user, exclude_turn_id=exclude_turn_id)
        prompt = build_conversation_prompt(context.profile, context.block, message)
        raw = self._model.generate(prompt, operation="conversation")
        return parse_tutor_reply(raw)

    def ask(self, email: str | None, message: str | None) -> dict[str, Any]:
        """Answer a new student message and persist it as a turn."""
        if not email or not str(email).strip() or not message or not str(message).strip():
            raise ValidationError("email and message are required")
        user = resolve_user(email)
        reply = self._reply_for(user, message)
        turn = db.insert_turn(user.id, message, reply.stored_text)
        logger.info("Stored turn %d for user %d (degraded=%s)", turn.id, user.id, reply.degraded)
        payload = reply.to_dict()
        payload["questionId"] = turn.id
        return payload

    def _ownership_failure(self, turn_id: int, user: User) -> Exception:
        existing = db.get_turn(turn_id)
        if existing is None:
            return TurnNotFoundError(turn_id)
        logger.warning("User %d attempted to modify turn %d owned by %d", user.id, turn_id, existing.user_id)
        return ForbiddenError()

    def edit(
        self,
        turn_id: int,
        email: str | None,
        content: str | None,
        *,
        generate_new_response: bool = False,
    ) -> EditOutcome:
        """Rewrite a turn's student message, then optionally regenerate its reply.

        The message edit is committed before regeneration starts. A model
        failure during regeneration is reported on the outcome and leaves the
        stored reply untouched.
        """
        email = _require_text(email, "email and content are required")
        content = _require_text(content, "email and content are required")
        user = resolve_user(email)

        if not db.update_turn_message(turn_id, user.id, content):
            raise self._ownership_failure(turn_id, user)

        outcome = EditOutcome(turn=self._load_turn(turn_id))
        if not generate_new_response:
            return outcome

        try:
            reply = self._reply_for(user, content, exclude_turn_id=turn_id)
        except UpstreamModelError as exc:
            logger.warning("Regeneration for turn %d failed: %s", turn_id, exc.message)
            outcome.regeneration_error = exc.message
            return outcome

        if not db.update_turn_response(turn_id, user.id, reply.stored_text):
            raise self._ownership_failure(turn_id, user)
        outcome.turn = self._load_turn(turn_id)
        outcome.regenerated = True
        outcome.reply = reply
        return outcome

    def delete(self, turn_id: int, email: str | None) -> int:
        email = _require_text(email, "Email is required")
        user = resolve_user(email)
        if not db.delete_turn(turn_id, user.id):
            raise self._ownership_failure(turn_id, user)
        logger.info("Deleted turn %d for user %d", turn_id, user.id)
        return turn_id

    def history(self, email: str | None) -> dict[str, Any]:
        user = resolve_user(email)
        turns = db.fetch_all_turns(user.id)
        items = []
        for turn in turns:
            item = turn.to_dict()
            item["response"] = load_stored_json(turn.model_response)
            items.append(item)
        return {"success": True, "history": items, "context": render_context_block(turns)}

    @staticmethod
    def _load_turn(turn_id: int) -> Turn:
        turn = db.get_turn(turn_id)
        if turn is None:
            raise TurnNotFoundError(turn_id)
        return turn


__all__ = ["ConversationService", "EditOutcome"]
