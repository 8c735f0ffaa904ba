from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class User:
    id: int
    email: str
    name: str | None = None
    native_language: str | None = None
    level: str | None = None
    learning_goal: str | None = None
    interests: list[str] = field(default_factory=list)
    focus: str | None = None
    occupation: str | None = None
    preferred_topics: list[str] = field(default_factory=list)
    preferred_content_type: str | None = None
    voice: str | None = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "nativeLanguage": self.native_language,
            "level": self.level,
            "learningGoal": self.learning_goal,
            "interests": list(self.interests),
            "focus": self.focus,
            "occupation": self.occupation,
            "preferredTopics": list(self.preferred_topics),
            "preferredContentType": self.preferred_content_type,
            "voice": self.voice,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class Turn:
    """One student message and the tutor response stored for it."""

    id: int
    user_id: int
    user_message: str
    model_response: str
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userMessage": self.user_message,
            "modelResponse": self.model_response,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(slots=True)
class PronunciationAttempt:
    id: int
    user_id: int
    word: str
    audio_url: str
    accuracy: int
    feedback: str
    created_at: str


@dataclass(slots=True)
class UploadedAudio:
    """Audio payload received from the client, already read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Prompt-ready view of a learner with every optional field defaulted."""

    name: str = "Student"
    native_language: str = "Unknown"
    level: str = "Intermediate"
    learning_goal: str = "General improvement"
    interests: str = "Various topics"
    focus: str = "General English skills"
    occupation: str = "Not specified"
    preferred_topics: str = "General topics"
    preferred_content_type: str = "Flexible"
    voice: str = "Supportive and encouraging"

    @classmethod
    def from_user(cls, user: User | None) -> UserProfile:
        if user is None:
            return cls()
        defaults = cls()
        return cls(
            name=_text_or(user.name, defaults.name),
            native_language=_text_or(user.native_language, defaults.native_language),
            level=_text_or(user.level, defaults.level),
            learning_goal=_text_or(user.learning_goal, defaults.learning_goal),
            interests=_join_or(user.interests, defaults.interests),
            focus=_text_or(user.focus, defaults.focus),
            occupation=_text_or(user.occupation, defaults.occupation),
            preferred_topics=_join_or(user.preferred_topics, defaults.preferred_topics),
            preferred_content_type=_text_or(user.preferred_content_type, defaults.preferred_content_type),
            voice=_text_or(user.voice, defaults.voice),
        )


def _text_or(value: str | None, default: str) -> str:
    if value is None:
        return default
    cleaned = str(value).strip()
    return cleaned or default


def _join_or(values: list[str], default: str) -> str:
    joined = ", ".join(v.strip() for v in values if v and v.strip())
    return joined or default
