from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

OPTION_COUNT = 4


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass
class Subject:
    id: str
    title: str
    description: str
    era: str
    location: str
    region: str = ""
    source_file: str = ""


@dataclass(frozen=True)
class GenerationRequest:
    subject_text: str
    difficulty: Difficulty
    question_count: int


@dataclass(frozen=True)
class QuizQuestion:
    prompt: str
    options: tuple[str, ...]
    correct_index: int
    explanation: str = ""

    def __post_init__(self):
        if len(self.options) != OPTION_COUNT:
            raise ValueError(f"expected {OPTION_COUNT} options, got {len(self.options)}")
        if not 0 <= self.correct_index < OPTION_COUNT:
            raise ValueError(f"correct_index out of range: {self.correct_index}")


# Ordered, immutable once parsed
QuizSet = tuple[QuizQuestion, ...]


@dataclass(frozen=True)
class CompletionRecord:
    subject_id: str
    score: int
    total_questions: int
    user_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
