"""Model output parsing with deterministic fallbacks.

Model text is untrusted. Each parser strips markdown fences, tries a strict
JSON parse, makes one bounded recovery attempt (re-wrapping a bare object
body in braces when its field markers are present) and otherwise returns a
locally synthesized fallback. ``ResponseShapeError`` never leaves this module.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from .errors import ResponseShapeError
from .models import UserProfile

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

_TUTOR_MARKERS = ('"answer":',)
_ASSESSMENT_MARKERS = ('"word":', '"accuracy":')
_TIPS_MARKERS = ('"word":', '"phonetic":')
_COMPARE_MARKERS = ('"word":', '"similarityScore":')

FALLBACK_ANSWER = (
    "I'm sorry, I couldn't put together a complete answer just now. "
    "Could you try asking your question again, maybe in slightly different words?"
)
FALLBACK_EXPLANATION = (
    "Rephrasing a question is good practice too: try using a full sentence "
    "with a clear subject and verb."
)
FALLBACK_FEEDBACK = "Thanks for practising! Asking questions in English is a great way to improve."
FALLBACK_FOLLOW_UP = "What would you like to talk about next?"


def strip_code_fences(text: str | None) -> str:
    """Remove ```json / ``` markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text or "").strip()


def _load_object(cleaned: str, markers: tuple[str, ...]) -> tuple[dict[str, Any], str]:
    """Parse a JSON object, re-wrapping it in braces once if that might help."""
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        data = None
    else:
        if isinstance(data, dict):
            return data, cleaned
        raise ResponseShapeError("Model response is not a JSON object")

    if cleaned and all(marker in cleaned for marker in markers):
        candidate = cleaned
        if not candidate.startswith("{"):
            candidate = "{" + candidate
        if not candidate.endswith("}"):
            candidate = candidate + "}"
        if candidate != cleaned:
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict):
                return data, candidate
    raise ResponseShapeError("Model response is not valid JSON")


def load_stored_json(text: str | None) -> dict[str, Any] | None:
    """Best-effort decode of a stored response; None when it is not a JSON object."""
    if not text:
        return None
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return " ".join(_as_text(item) for item in value if _as_text(item))
    return str(value).strip()


def _as_text_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [text for text in (_as_text(item) for item in value) if text]
    return [_as_text(value)] if _as_text(value) else []


def clamp_score(value: Any) -> int:
    """Coerce a model-reported percentage to a whole number in 0..100."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    return max(0, min(100, int(round(number))))


def _edge_letters(word: str) -> list[str]:
    cleaned = (word or "").strip()
    if not cleaned:
        return []
    first, last = cleaned[0], cleaned[-1]
    if len(cleaned) == 1:
        return [first]
    return [first, last]


# ── Conversation replies ─────────────────────────────────────────────────────


@dataclass(slots=True)
class TutorReply:
    answer: str
    explanation: str = ""
    feedback: str = ""
    follow_up: str = ""

    def sections(self) -> list[dict[str, str]]:
        """Non-empty parts of the reply, in display order."""
        parts = [
            ("answer", "Answer", self.answer),
            ("explanation", "Explanation", self.explanation),
            ("feedback", "Feedback", self.feedback),
            ("followUp", "Follow-up", self.follow_up),
        ]
        return [{"key": key, "title": title, "content": content} for key, title, content in parts if content]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "answer": self.answer,
            "explanation": self.explanation,
            "feedback": self.feedback,
            "followUp": self.follow_up,
        }


@dataclass(slots=True)
class ParsedReply:
    """A tutor reply plus the text that should be stored for the turn."""

    reply: TutorReply
    stored_text: str
    degraded: bool = False
    raw: str = ""

    def to_dict(self) -> dict[str, Any]:
        payload = self.reply.to_dict()
        payload["sections"] = self.reply.sections()
        if self.degraded:
            payload["fallback"] = True
            payload["response"] = self.raw
        return payload


def _best_effort_answer(cleaned: str) -> str:
    if not cleaned or cleaned[0] in "{[":
        return FALLBACK_ANSWER
    return cleaned


def fallback_tutor_reply(raw: str | None) -> TutorReply:
    """Deterministic reply for unparseable output; prose output is kept as the answer."""
    return TutorReply(
        answer=_best_effort_answer(strip_code_fences(raw)),
        explanation=FALLBACK_EXPLANATION,
        feedback=FALLBACK_FEEDBACK,
        follow_up=FALLBACK_FOLLOW_UP,
    )


def parse_tutor_reply(raw: str | None) -> ParsedReply:
    raw_text = raw or ""
    cleaned = strip_code_fences(raw_text)
    try:
        data, stored = _load_object(cleaned, _TUTOR_MARKERS)
        answer = _as_text(data.get("answer"))
        if not answer:
            raise ResponseShapeError("Model response has no answer")
    except ResponseShapeError as exc:
        logger.warning("Falling back to synthesized tutor reply: %s", exc)
        return ParsedReply(
            reply=fallback_tutor_reply(raw_text),
            stored_text=raw_text,
            degraded=True,
            raw=raw_text,
        )
    reply = TutorReply(
        answer=answer,
        explanation=_as_text(data.get("explanation")),
        feedback=_as_text(data.get("feedback")),
        follow_up=_as_text(data.get("followUp")),
    )
    return ParsedReply(reply=reply, stored_text=stored, raw=raw_text)


def summarize_stored_reply(stored: str) -> str:
    """Compact 'answer explanation' text for a stored turn, or the raw text."""
    data = load_stored_json(stored)
    if data is None:
        return stored
    answer = _as_text(data.get("answer"))
    if not answer:
        return stored
    explanation = _as_text(data.get("explanation"))
    return f"{answer} {explanation}" if explanation else answer


# ── Structured payloads (pronunciation, tips, compare) ───────────────────────


@dataclass(slots=True)
class ParseResult:
    payload: dict[str, Any]
    stored_text: str
    degraded: bool = False


def fallback_assessment(word: str) -> dict[str, Any]:
    letters = _edge_letters(word)
    improvement = [f"The '{letter}' sound" for letter in letters] or ["Clear, steady vowel sounds"]
    return {
        "success": True,
        "word": word,
        "accuracy": 0,
        "correctSounds": [],
        "improvementNeeded": improvement,
        "commonIssues": (
            "We couldn't analyse this recording in detail. Focus on the opening "
            "and closing sounds of the word and keep the stress steady."
        ),
        "practiceExercises": [
            f"Say '{word}' slowly three times, then at normal speed.",
            f"Record yourself saying '{word}' and compare it with a dictionary recording.",
        ],
        "encouragement": "Keep going! Every attempt trains your ear and your mouth.",
        "fallback": True,
    }


def parse_assessment(raw: str | None, word: str) -> ParseResult:
    raw_text = raw or ""
    cleaned = strip_code_fences(raw_text)
    try:
        data, stored = _load_object(cleaned, _ASSESSMENT_MARKERS)
        if "accuracy" not in data:
            raise ResponseShapeError("Assessment has no accuracy")
    except ResponseShapeError as exc:
        logger.warning("Falling back to synthesized assessment for %r: %s", word, exc)
        payload = fallback_assessment(word)
        if cleaned:
            payload["response"] = raw_text
        return ParseResult(payload=payload, stored_text=raw_text, degraded=True)
    payload = {
        "success": True,
        "word": _as_text(data.get("word")) or word,
        "accuracy": clamp_score(data.get("accuracy")),
        "correctSounds": _as_text_list(data.get("correctSounds")),
        "improvementNeeded": _as_text_list(data.get("improvementNeeded")),
        "commonIssues": _as_text(data.get("commonIssues")),
        "practiceExercises": _as_text_list(data.get("practiceExercises")),
        "encouragement": _as_text(data.get("encouragement")),
    }
    return ParseResult(payload=payload, stored_text=stored)


def fallback_tips(word: str) -> dict[str, Any]:
    """Generic pronunciation guide built from the word's first and last letters."""
    letters = _edge_letters(word)
    sound_guide: list[dict[str, str]] = []
    if letters:
        sound_guide.append(
            {
                "sound": letters[0],
                "howTo": f"Start with a clear '{letters[0]}' sound; don't rush into the rest of the word.",
            }
        )
    if len(letters) > 1:
        sound_guide.append(
            {
                "sound": letters[1],
                "howTo": f"Finish on a crisp '{letters[1]}' sound instead of letting it fade out.",
            }
        )
    return {
        "success": True,
        "word": word,
        "phonetic": "",
        "syllables": word,
        "stress": "Check a dictionary recording to hear which syllable is stressed.",
        "soundGuide": sound_guide,
        "commonErrors": [
            "Dropping the final sound",
            "Stressing the wrong syllable",
        ],
        "practiceExercises": [
            f"Break '{word}' into syllables and say each one slowly." if word else "Practise slowly, one syllable at a time.",
            "Listen to a native speaker and repeat immediately after them (shadowing).",
        ],
        "fallback": True,
    }


def _sound_guide(value: Any) -> list[dict[str, str]]:
    if not isinstance(value, list):
        return []
    guide: list[dict[str, str]] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        sound = _as_text(item.get("sound"))
        how_to = _as_text(item.get("howTo"))
        if sound or how_to:
            guide.append({"sound": sound, "howTo": how_to})
    return guide


def parse_tips(raw: str | None, word: str) -> ParseResult:
    raw_text = raw or ""
    cleaned = strip_code_fences(raw_text)
    try:
        data, stored = _load_object(cleaned, _TIPS_MARKERS)
        if not any(key in data for key in ("phonetic", "syllables", "soundGuide")):
            raise ResponseShapeError("Tips response has no pronunciation fields")
    except ResponseShapeError as exc:
        logger.warning("Falling back to generic tips for %r: %s", word, exc)
        payload = fallback_tips(word)
        if cleaned:
            payload["tips"] = cleaned
        return ParseResult(payload=payload, stored_text=raw_text, degraded=True)
    payload = {
        "success": True,
        "word": _as_text(data.get("word")) or word,
        "phonetic": _as_text(data.get("phonetic")),
        "syllables": _as_text(data.get("syllables")),
        "stress": _as_text(data.get("stress")),
        "soundGuide": _sound_guide(data.get("soundGuide")),
        "commonErrors": _as_text_list(data.get("commonErrors")),
        "practiceExercises": _as_text_list(data.get("practiceExercises")),
    }
    return ParseResult(payload=payload, stored_text=stored)


def fallback_comparison(word: str) -> dict[str, Any]:
    return {
        "success": True,
        "word": word,
        "similarityScore": 0,
        "matchingAspects": [],
        "differences": [],
        "improvements": [
            f"Listen to the reference recording of '{word}' and repeat it several times.",
            "Match the rhythm first, then the individual sounds.",
        ],
        "fallback": True,
    }


def parse_comparison(raw: str | None, word: str) -> ParseResult:
    raw_text = raw or ""
    cleaned = strip_code_fences(raw_text)
    try:
        data, stored = _load_object(cleaned, _COMPARE_MARKERS)
        if "similarityScore" not in data:
            raise ResponseShapeError("Comparison has no similarityScore")
    except ResponseShapeError as exc:
        logger.warning("Falling back to generic comparison for %r: %s", word, exc)
        return ParseResult(payload=fallback_comparison(word), stored_text=raw_text, degraded=True)
    payload = {
        "success": True,
        "word": _as_text(data.get("word")) or word,
        "similarityScore": clamp_score(data.get("similarityScore")),
        "matchingAspects": _as_text_list(data.get("matchingAspects")),
        "differences": _as_text_list(data.get("differences")),
        "improvements": _as_text_list(data.get("improvements")),
    }
    return ParseResult(payload=payload, stored_text=stored)


# ── Initial questions ────────────────────────────────────────────────────────

QUESTION_COUNT = 6


@dataclass(slots=True)
class ParsedQuestions:
    questions: list[str] = field(default_factory=list)
    degraded: bool = False


def fallback_questions(profile: UserProfile) -> list[str]:
    return [
        f"Hi {profile.name}! What made you decide to improve your English?",
        f"How does learning English help you reach your goal: {profile.learning_goal.lower()}?",
        f"Which of your interests ({profile.interests}) could you talk about for a minute in English?",
        "What did you do last weekend? Try to use the past tense.",
        f"What is one thing you find difficult about {profile.focus.lower()}?",
        "If you could travel anywhere in the world, where would you go and why?",
    ]


def parse_questions(raw: str | None, profile: UserProfile) -> ParsedQuestions:
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        data = data.get("questions")
    if isinstance(data, list):
        questions = [text for text in (_as_text(item) for item in data) if text]
        if len(questions) == QUESTION_COUNT:
            return ParsedQuestions(questions=questions)
    logger.warning("Falling back to profile-based starter questions")
    return ParsedQuestions(questions=fallback_questions(profile), degraded=True)


__all__ = [
    "FALLBACK_ANSWER",
    "ParseResult",
    "ParsedQuestions",
    "ParsedReply",
    "QUESTION_COUNT",
    "TutorReply",
    "clamp_score",
    "fallback_assessment",
    "fallback_comparison",
    "fallback_questions",
    "fallback_tips",
    "fallback_tutor_reply",
    "load_stored_json",
    "parse_assessment",
    "parse_comparison",
    "parse_questions",
    "parse_tips",
    "parse_tutor_reply",
    "strip_code_fences",
    "summarize_stored_reply",
]
