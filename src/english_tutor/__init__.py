"""English Tutor FastAPI backend package."""

from .conversation import ConversationService
from .db import init_db
from .errors import TutorError
from .llm import ModelClient
from .pronunciation import PronunciationService

__all__ = [
    "ConversationService",
    "ModelClient",
    "PronunciationService",
    "TutorError",
    "init_db",
]
