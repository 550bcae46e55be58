"""Drive one view's quiz: generation, answering and completion reporting.

Each view (browser tab, terminal) owns a controller.  Every ``start`` takes
a fresh token; a generation that resolves after a newer ``start`` or a
``cancel`` is discarded instead of replacing the current session.
"""
from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING

from arfolk.errors import GenerationError, ParseError, QuizError, TransitionError
from arfolk.models import Difficulty
from arfolk.prompts import normalize_difficulty
from arfolk.quiz_generator import generate_quiz
from arfolk.session import QuizSession, SessionState

if TYPE_CHECKING:
    from arfolk.db import Database
    from arfolk.quiz_generator import GenerationGateway
    from arfolk.reporter import ScoreReporter

_log = logging.getLogger("arfolk.session")


class QuizController:
    def __init__(
        self,
        db: Database,
        gateway: GenerationGateway,
        reporter: ScoreReporter,
        user_id: str | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.reporter = reporter
        self.user_id = user_id
        self.session: QuizSession | None = None
        self.reported: bool | None = None
        self._tokens = itertools.count(1)
        self._token = 0
        self._last_args: tuple[str, Difficulty | str | None, int | None] | None = None

    def _is_stale(self, token: int) -> bool:
        return token != self._token

    async def start(
        self,
        subject_id: str,
        difficulty: Difficulty | str | None = None,
        question_count: int | None = None,
    ) -> QuizSession | None:
        """Generate a quiz for *subject_id* and make it the current session.

        Returns ``None`` when the result went stale while generating.
        Failures leave the session in the ``failed`` state and propagate.
        """
        difficulty = normalize_difficulty(difficulty)
        token = next(self._tokens)
        self._token = token
        self._last_args = (subject_id, difficulty, question_count)
        session = QuizSession(subject_id, token=token)
        self.session = session
        self.reported = None

        try:
            quiz_set = await generate_quiz(
                self.gateway, self.db, subject_id, difficulty, question_count,
            )
            if self._is_stale(token):
                _log.info("Discarding stale quiz for %s (token %d)", subject_id, token)
                return None
            session.start(quiz_set)
        except QuizError as e:
            if self._is_stale(token):
                _log.info("Ignoring error from stale quiz for %s: %s", subject_id, e)
                return None
            if isinstance(e, ParseError):
                _log.warning("Quiz for %s unusable (prompt drift?): %s", subject_id, e)
            else:
                _log.warning("Quiz for %s failed to start: %s", subject_id, e)
            session.fail(e)
            raise
        except Exception as e:
            if self._is_stale(token):
                _log.info("Ignoring error from stale quiz for %s: %r", subject_id, e)
                return None
            _log.exception("Unexpected error generating quiz for %s", subject_id)
            error = GenerationError(f"quiz generation failed unexpectedly: {e!r}")
            session.fail(error)
            raise error from e

        _log.info("Quiz ready for %s: %d question(s)", subject_id, session.total)
        return session

    async def retake(self) -> QuizSession | None:
        if self._last_args is None:
            raise TransitionError("no quiz to retake")
        return await self.start(*self._last_args)

    def cancel(self) -> None:
        """Drop the current session and invalidate any generation in flight."""
        self._token = next(self._tokens)
        self.session = None
        self.reported = None

    def _current(self) -> QuizSession:
        if self.session is None:
            raise TransitionError("no active quiz")
        return self.session

    def select_answer(self, choice: int) -> bool:
        return self._current().select_answer(choice)

    async def advance(self) -> SessionState:
        session = self._current()
        state = session.advance()
        if state is SessionState.COMPLETED and self.reported is None:
            self.reported = await self.reporter.report(
                session.subject_id, session.score, session.total, user_id=self.user_id,
            )
        return state
