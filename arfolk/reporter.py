from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from arfolk.errors import ReportError
from arfolk.models import CompletionRecord

if TYPE_CHECKING:
    from arfolk.db import Database

_log = logging.getLogger("arfolk.report")


class ScoreReporter:
    """Persist completion records without ever failing the caller."""

    def __init__(self, db: Database):
        self.db = db

    def _write(self, record: CompletionRecord) -> None:
        try:
            self.db.save_completion(record)
        except sqlite3.Error as e:
            raise ReportError(f"could not save completion for {record.subject_id}: {e}") from e

    async def report(
        self,
        subject_id: str,
        score: int,
        total: int,
        user_id: str | None = None,
    ) -> bool:
        record = CompletionRecord(
            subject_id=subject_id,
            score=score,
            total_questions=total,
            user_id=user_id,
        )
        try:
            self._write(record)
        except ReportError as e:
            _log.warning("Completion not recorded: %s", e)
            return False
        _log.info("Recorded completion %s: %d/%d", subject_id, score, total)
        return True
