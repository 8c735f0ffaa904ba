"""Conversation context assembly: learner profile plus recent turns."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import db
from .errors import UserNotFoundError, ValidationError
from .models import Turn, User, UserProfile
from .parsing import summarize_stored_reply

CONTEXT_TURN_LIMIT = 5
CONTEXT_HEADER = "Previous conversation history:"


@dataclass(slots=True)
class ConversationContext:
    """Recent turns for one user, oldest first."""

    user: User
    profile: UserProfile
    turns: list[Turn] = field(default_factory=list)

    @property
    def block(self) -> str:
        return render_context_block(self.turns)


def resolve_user(email: str | None) -> User:
    if not email or not email.strip():
        raise ValidationError("Email is required")
    user = db.get_user_by_email(email)
    if user is None:
        raise UserNotFoundError(email)
    return user


def render_context_block(turns: list[Turn]) -> str:
    """Render turns into the history block; empty string when there are none."""
    if not turns:
        return ""
    lines = [CONTEXT_HEADER]
    for turn in turns:
        lines.append(f"[{turn.created_at}]")
        lines.append(f"Student: {turn.user_message}")
        lines.append(f"Tutor: {summarize_stored_reply(turn.model_response)}")
        lines.append("")
    return "\n".join(lines) + "\n"


def assemble_context(
    user: User | str,
    *,
    exclude_turn_id: int | None = None,
    limit: int = CONTEXT_TURN_LIMIT,
) -> ConversationContext:
    """Load the learner and their last ``limit`` turns in chronological order.

    ``user`` may be a resolved ``User`` or an email address; an unknown email
    raises ``UserNotFoundError`` before anything else is read.
    """
    if not isinstance(user, User):
        user = resolve_user(user)
    recent = db.fetch_recent_turns(user.id, limit=limit, exclude_turn_id=exclude_turn_id)
    recent.reverse()
    return ConversationContext(user=user, profile=UserProfile.from_user(user), turns=recent)


__all__ = [
    "CONTEXT_TURN_LIMIT",
    "ConversationContext",
    "assemble_context",
    "render_context_block",
    "resolve_user",
]
