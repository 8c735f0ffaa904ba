"""Instruction prompts for the tutor model.

Pure text templating: every builder is deterministic given its inputs. Only
the conversation persona can be overridden, via ``tutor_persona`` in
``data/prompts.yaml``.
"""

from __future__ import annotations

from . import prompts as prompt_config
from .models import UserProfile

DEFAULT_PERSONA = (
    "You are a highly supportive and knowledgeable AI English tutor designed to help "
    "students improve their English language skills efficiently and enjoyably."
)

RAW_JSON_RULE = "Output ONLY the raw JSON object. Do not add markdown formatting, code blocks, or any extra text."


def _persona() -> str:
    return prompt_config.get("tutor_persona", DEFAULT_PERSONA) or DEFAULT_PERSONA


def _profile_lines(profile: UserProfile) -> str:
    fields = [
        ("Name", profile.name),
        ("Mother Tongue", profile.native_language),
        ("English Proficiency Level", profile.level),
        ("Learning Goal", profile.learning_goal),
        ("Interests", profile.interests),
        ("Current Focus Areas", profile.focus),
        ("Occupation", profile.occupation),
        ("Preferred Topics", profile.preferred_topics),
        ("Preferred Content Type", profile.preferred_content_type),
        ("Preferred Tutoring Style/Voice", profile.voice),
    ]
    return "\n".join(f"- {label}: {value}" for label, value in fields)


def build_conversation_prompt(profile: UserProfile, context_block: str, message: str) -> str:
    sections = [
        _persona(),
        "Student Information:\n" + _profile_lines(profile),
    ]
    if context_block:
        sections.append(context_block.rstrip("\n"))
    sections.append(
        "Instructions:\n"
        f'The student has asked the following question: "{message}"\n\n'
        "Your task is to generate a structured JSON response in the following format:\n"
        "{\n"
        '  "success": true,\n'
        '  "answer": "Short and clear answer to their question",\n'
        '  "explanation": "A brief educational explanation related to their learning goal, with 1-2 examples where possible",\n'
        '  "feedback": "Supportive feedback on their question or English usage",\n'
        '  "followUp": "A related follow-up question to encourage further conversation"\n'
        "}"
    )
    sections.append(
        "Guidelines:\n"
        "- Keep the answer concise, friendly and easy to understand.\n"
        "- Pitch the explanation at the student's level and focus areas.\n"
        "- Reference the learning goal or focus when giving feedback.\n"
        "- Base the follow-up question on their interests, occupation or preferred topics when possible.\n"
        "- Refer back to earlier conversation when it helps continuity.\n"
        "- Match the student's preferred tutoring voice.\n"
        f"- {RAW_JSON_RULE}"
    )
    return "\n\n".join(sections) + "\n"


def build_assessment_prompt(profile: UserProfile, word: str, audio_url: str) -> str:
    return (
        "You are an expert English pronunciation coach evaluating a student's pronunciation.\n\n"
        "Student Profile:\n"
        f"- Native language: {profile.native_language}\n"
        f"- Current English level: {profile.level}\n\n"
        f'The student attempted to pronounce the word: "{word}"\n'
        f"Recording: {audio_url}\n\n"
        "Evaluate:\n"
        "1. Overall accuracy as a whole-number percentage from 0 to 100\n"
        "2. Sounds that were pronounced correctly\n"
        "3. Sounds that need improvement\n"
        "4. Common issues for speakers of their native language when saying this word\n"
        "5. Practice tips tailored to their difficulties\n\n"
        "Respond with JSON in exactly this structure:\n"
        "{\n"
        '  "success": true,\n'
        f'  "word": "{word}",\n'
        '  "accuracy": 85,\n'
        '  "correctSounds": ["sounds pronounced well"],\n'
        '  "improvementNeeded": ["sounds needing work"],\n'
        '  "commonIssues": "Typical issues for speakers of their language",\n'
        '  "practiceExercises": ["2-3 specific exercises"],\n'
        '  "encouragement": "Positive, encouraging feedback"\n'
        "}\n\n"
        f"{RAW_JSON_RULE}\n"
    )


def build_tips_prompt(word: str, profile: UserProfile | None = None) -> str:
    learner = ""
    if profile is not None:
        learner = (
            f"The student's native language is {profile.native_language}. "
            f"Their English level is {profile.level}.\n\n"
        )
    return (
        "You are an expert English pronunciation coach explaining how to pronounce a word.\n\n"
        f"{learner}"
        f'The word they want to learn is: "{word}"\n\n'
        "Include the IPA transcription, a syllable breakdown, the stress pattern, "
        "common mistakes and step-by-step articulation instructions.\n\n"
        "Respond with JSON in exactly this structure:\n"
        "{\n"
        '  "success": true,\n'
        f'  "word": "{word}",\n'
        '  "phonetic": "IPA transcription",\n'
        '  "syllables": "Breakdown of syllables",\n'
        '  "stress": "Which syllable has primary stress",\n'
        '  "soundGuide": [{"sound": "specific sound", "howTo": "how to form this sound"}],\n'
        '  "commonErrors": ["typical mistakes"],\n'
        '  "practiceExercises": ["2-3 exercises"]\n'
        "}\n\n"
        f"{RAW_JSON_RULE}\n"
    )


def build_compare_prompt(word: str, user_audio_name: str, reference_audio_name: str) -> str:
    return (
        "You are an AI pronunciation coach comparing a student's pronunciation with a reference pronunciation.\n\n"
        f'The word being pronounced is: "{word}"\n'
        f"Student recording: {user_audio_name}\n"
        f"Reference recording: {reference_audio_name}\n\n"
        "Give an overall similarity score as a whole-number percentage, the aspects that match well, "
        "the aspects that differ and concrete tips for improvement.\n\n"
        "Respond with JSON in exactly this structure:\n"
        "{\n"
        '  "success": true,\n'
        f'  "word": "{word}",\n'
        '  "similarityScore": 78,\n'
        '  "matchingAspects": ["aspects that match well"],\n'
        '  "differences": ["aspects that differ"],\n'
        '  "improvements": ["specific tips"]\n'
        "}\n\n"
        f"{RAW_JSON_RULE}\n"
    )


def build_initial_questions_prompt(profile: UserProfile) -> str:
    return (
        "You are an AI English tutor creating personalized questions for an English learner.\n\n"
        "STUDENT PROFILE:\n"
        f"- Name: {profile.name}\n"
        f"- Native language: {profile.native_language}\n"
        f"- English level: {profile.level}\n"
        f"- Learning goal: {profile.learning_goal}\n"
        f"- Interests: {profile.interests}\n"
        f"- Focus area: {profile.focus}\n\n"
        "TASK:\n"
        "Generate exactly 6 engaging, personalized questions suited to their level, interests and goal.\n"
        "- For speaking fluency, ask conversational questions about their interests.\n"
        "- For grammar improvement, ask questions that practise specific grammar points.\n"
        "- For vocabulary expansion, ask questions that naturally introduce new words.\n\n"
        "Respond with a JSON array of exactly 6 strings and nothing else, e.g.\n"
        '["First question?", "Second question?", "Third question?", '
        '"Fourth question?", "Fifth question?", "Sixth question?"]\n'
    )


__all__ = [
    "DEFAULT_PERSONA",
    "build_assessment_prompt",
    "build_compare_prompt",
    "build_conversation_prompt",
    "build_initial_questions_prompt",
    "build_tips_prompt",
]
