"""Linear quiz session state machine.

    loading ──start──▶ ready ──select_answer──▶ answered ──advance──▶ ready (next)
       │                                           │
       └──fail──▶ failed                           └──advance (last)──▶ completed

The index only moves forward, each question is answered at most once and
the first answer is final.  Reporting a finished session is left to the
caller.
"""
from __future__ import annotations

from enum import Enum

from arfolk.errors import EmptySetError, QuizError, TransitionError
from arfolk.models import QuizQuestion, QuizSet


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ANSWERED = "answered"
    COMPLETED = "completed"
    FAILED = "failed"


class QuizSession:
    def __init__(self, subject_id: str, token: int = 0):
        self.subject_id = subject_id
        self.token = token
        self.questions: QuizSet = ()
        self.current_index = 0
        self.selected_answer: int | None = None
        self.score = 0
        self.state = SessionState.LOADING
        self.error: QuizError | None = None

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def current_question(self) -> QuizQuestion | None:
        if self.state in (SessionState.READY, SessionState.ANSWERED):
            return self.questions[self.current_index]
        return None

    @property
    def is_correct(self) -> bool | None:
        """Whether the recorded answer is right; ``None`` before answering."""
        if self.state is not SessionState.ANSWERED:
            return None
        return self.selected_answer == self.questions[self.current_index].correct_index

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise TransitionError(f"session is {self.state.value}; expected {allowed}")

    def start(self, quiz_set: QuizSet) -> None:
        self._require(SessionState.LOADING)
        if not quiz_set:
            raise EmptySetError("cannot start a quiz with zero questions")
        self.questions = tuple(quiz_set)
        self.current_index = 0
        self.selected_answer = None
        self.score = 0
        self.state = SessionState.READY

    def fail(self, error: QuizError) -> None:
        self._require(SessionState.LOADING)
        self.error = error
        self.state = SessionState.FAILED

    def select_answer(self, choice: int) -> bool:
        """Record *choice* for the current question and return whether it is right.

        Repeating the recorded choice is a no-op; a different choice for an
        already answered question is rejected.
        """
        if isinstance(choice, bool) or not isinstance(choice, int):
            raise ValueError(f"choice must be an int (got {choice!r})")
        if self.state is SessionState.ANSWERED:
            if choice != self.selected_answer:
                raise TransitionError(
                    f"question {self.current_index + 1} already answered"
                )
            return bool(self.is_correct)
        self._require(SessionState.READY)
        if not 0 <= choice < len(self.questions[self.current_index].options):
            raise ValueError(f"choice out of range: {choice}")
        self.selected_answer = choice
        self.state = SessionState.ANSWERED
        return bool(self.is_correct)

    def advance(self) -> SessionState:
        self._require(SessionState.ANSWERED)
        if self.selected_answer == self.questions[self.current_index].correct_index:
            self.score += 1
        if self.current_index + 1 < len(self.questions):
            self.current_index += 1
            self.selected_answer = None
            self.state = SessionState.READY
        else:
            self.state = SessionState.COMPLETED
        return self.state

    def result(self) -> dict:
        self._require(SessionState.COMPLETED)
        return {"score": self.score, "total": self.total}
