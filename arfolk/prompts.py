"""Prompt templates and request building for quiz generation."""
from __future__ import annotations

from arfolk.models import Difficulty, GenerationRequest, Subject

DEFAULT_QUESTION_COUNT = 5
MAX_QUESTION_COUNT = 20
DEFAULT_DIFFICULTY = Difficulty.MEDIUM

# Sent verbatim to the generation service. Every line after the first carries
# a four-space indent, blank lines included.
QUIZ_SYSTEM_PROMPT = "\n    ".join([
    "You are a quiz generator for cultural heritage education. Generate "
    "{question_count} multiple choice questions about the monument described below. ",
    "",
    "Difficulty: {difficulty}",
    "",
    "Format your response as a JSON array of questions. Each question should have:",
    "- question: the question text",
    "- options: array of 4 options",
    "- correctAnswer: index of correct option (0-3)",
    "- explanation: brief explanation of the answer",
    "",
    "Example format:",
    "[",
    "  {{",
    '    "question": "When was this monument built?",',
    '    "options": ["12th century", "15th century", "18th century", "20th century"],',
    '    "correctAnswer": 1,',
    '    "explanation": "The monument was built in the 15th century during..."',
    "  }}",
    "]",
])


def format_subject_text(subject: Subject) -> str:
    return (
        f"{subject.title}\n"
        f"{subject.description}\n"
        f"Era: {subject.era}\n"
        f"Location: {subject.location}"
    )


def format_system_prompt(request: GenerationRequest) -> str:
    return QUIZ_SYSTEM_PROMPT.format(
        question_count=request.question_count,
        difficulty=request.difficulty.value,
    )


def normalize_difficulty(value: Difficulty | str | None) -> Difficulty:
    if value is None or value == "":
        return DEFAULT_DIFFICULTY
    if isinstance(value, Difficulty):
        return value
    try:
        return Difficulty(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(d.value for d in Difficulty)
        raise ValueError(f"difficulty must be one of {choices} (got {value!r})") from None


def normalize_question_count(value) -> int:
    """Clamp *value* to a usable question count.

    Anything that is not a positive integer falls back to the default;
    oversized requests are capped.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return DEFAULT_QUESTION_COUNT
    return min(value, MAX_QUESTION_COUNT)


def build_request(
    subject: Subject,
    difficulty: Difficulty | str | None = None,
    question_count: int | None = None,
) -> GenerationRequest:
    return GenerationRequest(
        subject_text=format_subject_text(subject),
        difficulty=normalize_difficulty(difficulty),
        question_count=normalize_question_count(question_count),
    )
