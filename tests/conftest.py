"""Shared test fixtures."""
from __future__ import annotations

import json

import pytest

from arfolk.db import Database
from arfolk.models import QuizQuestion, Subject


class FakeLLM:
    """Fake LLM returning canned responses in order (last one repeats)."""

    def __init__(self, responses=None, error=None):
        self._responses = responses or []
        self._error = error
        self.calls: list[dict] = []

    async def generate(self, prompt: str, system: str | None = None, temperature=None) -> str:
        self.calls.append({"prompt": prompt, "system": system})
        if self._error is not None:
            raise self._error
        idx = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[idx]

    def name(self) -> str:
        return "fake-llm"

    @property
    def call_count(self):
        return len(self.calls)


def make_item(question="Q", options=None, correct=0, explanation="E"):
    return {
        "question": question,
        "options": options if options is not None else ["A", "B", "C", "D"],
        "correctAnswer": correct,
        "explanation": explanation,
    }


def quiz_json(n: int = 5, correct: int = 0) -> str:
    return json.dumps([
        make_item(question=f"Question {i + 1}?", correct=correct, explanation=f"Because {i + 1}.")
        for i in range(n)
    ])


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_monuments():
    return [
        Subject(
            id="taj-mahal",
            title="Taj Mahal",
            description="A white marble mausoleum on the bank of the Yamuna.",
            era="Mughal",
            location="Agra",
            region="North India",
            source_file="catalogue.md",
        ),
        Subject(
            id="hampi",
            title="Hampi",
            description="Ruins of the capital of the Vijayanagara Empire.",
            era="Vijayanagara",
            location="Karnataka",
            region="Deccan",
            source_file="catalogue.md",
        ),
        Subject(
            id="konark-sun-temple",
            title="Konark Sun Temple",
            description="A temple built as a colossal stone chariot for the sun god.",
            era="Eastern Ganga",
            location="Odisha",
            region="East India",
            source_file="catalogue.md",
        ),
    ]


@pytest.fixture
def populated_db(tmp_db, sample_monuments):
    tmp_db.import_monuments(sample_monuments)
    return tmp_db


@pytest.fixture
def sample_questions():
    """Five questions whose correct answers are 0, 1, 2, 3, 0."""
    return tuple(
        QuizQuestion(
            prompt=f"Question {i + 1}?",
            options=("A", "B", "C", "D"),
            correct_index=i % 4,
            explanation=f"Because {i + 1}.",
        )
        for i in range(5)
    )


@pytest.fixture
def catalogue_md_content():
    """Minimal monument catalogue for parser testing."""
    return """\
# Monument Catalogue

---

## North India

| Monument | Era | Location | Description |
|----------|-----|----------|-------------|
| **Taj Mahal** | Mughal, 17th century | Agra, Uttar Pradesh | A white marble mausoleum. |
| **Qutub Minar** | Delhi Sultanate | Delhi | A 73-metre minaret of red sandstone. |

---

## Deccan

| Monument | Era | Location | Description |
|----------|-----|----------|-------------|
| **Hampi** | Vijayanagara | Karnataka | Ruins of the capital of the Vijayanagara Empire. |
"""
