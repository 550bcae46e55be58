from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from arfolk.models import CompletionRecord, Subject

SCHEMA = """
CREATE TABLE IF NOT EXISTS monuments (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    era TEXT NOT NULL DEFAULT '',
    location TEXT NOT NULL DEFAULT '',
    region TEXT,
    source_file TEXT
);

CREATE TABLE IF NOT EXISTS quiz_completions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    monument_id TEXT NOT NULL,
    user_id TEXT,
    score INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    completed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS monument_views (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    monument_id TEXT NOT NULL,
    user_id TEXT,
    viewed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS file_mtimes (
    file_path TEXT PRIMARY KEY,
    mtime_ns INTEGER NOT NULL
);
"""


def row_to_subject(row: dict) -> Subject:
    return Subject(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        era=row["era"] or "",
        location=row["location"] or "",
        region=row.get("region") or "",
        source_file=row.get("source_file") or "",
    )


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Import ────────────────────────────────────────────────────────────

    def delete_monuments_by_source(self, source_file: str) -> int:
        """Remove all monuments originally imported from *source_file*."""
        cur = self.conn.execute(
            "DELETE FROM monuments WHERE source_file = ?", (source_file,)
        )
        self.conn.commit()
        return cur.rowcount

    def import_monuments(self, monuments: list[Subject]) -> int:
        count = 0
        for m in monuments:
            self.conn.execute(
                "INSERT OR REPLACE INTO monuments "
                "(id, title, description, era, location, region, source_file) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (m.id, m.title, m.description, m.era, m.location, m.region, m.source_file),
            )
            count += 1
        self.conn.commit()
        return count

    # ── File mtimes ─────────────────────────────────────────────────────

    def get_file_mtime(self, file_path: str) -> int | None:
        row = self.conn.execute(
            "SELECT mtime_ns FROM file_mtimes WHERE file_path = ?", (file_path,)
        ).fetchone()
        return row[0] if row else None

    def set_file_mtime(self, file_path: str, mtime_ns: int) -> None:
        self.conn.execute(
            "INSERT OR REPLACE INTO file_mtimes (file_path, mtime_ns) VALUES (?, ?)",
            (file_path, mtime_ns),
        )
        self.conn.commit()

    # ── Monuments ─────────────────────────────────────────────────────────

    def get_monument_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM monuments").fetchone()
        return row[0]

    def get_monument(self, monument_id: str) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM monuments WHERE id = ?", (monument_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_all_monuments(
        self, era: str | None = None, location: str | None = None
    ) -> list[dict]:
        query = "SELECT * FROM monuments"
        clauses: list[str] = []
        params: list[str] = []
        if era:
            clauses.append("era = ?")
            params.append(era)
        if location:
            clauses.append("location = ?")
            params.append(location)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY title"
        rows = self.conn.execute(query, params).fetchall()
        return [dict(r) for r in rows]

    def get_eras(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT era FROM monuments WHERE era != '' ORDER BY era"
        ).fetchall()
        return [r[0] for r in rows]

    def get_locations(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT DISTINCT location FROM monuments WHERE location != '' ORDER BY location"
        ).fetchall()
        return [r[0] for r in rows]

    # ── Views ─────────────────────────────────────────────────────────────

    def record_view(self, monument_id: str, user_id: str | None = None) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self.conn.execute(
            "INSERT INTO monument_views (monument_id, user_id, viewed_at) VALUES (?, ?, ?)",
            (monument_id, user_id, now),
        )
        self.conn.commit()

    # ── Quiz completions ──────────────────────────────────────────────────

    def save_completion(self, record: CompletionRecord) -> int:
        cur = self.conn.execute(
            "INSERT INTO quiz_completions "
            "(monument_id, user_id, score, total_questions, completed_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                record.subject_id,
                record.user_id,
                record.score,
                record.total_questions,
                record.timestamp.isoformat(),
            ),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_completions(self, monument_id: str | None = None, limit: int = 20) -> list[dict]:
        if monument_id:
            rows = self.conn.execute(
                "SELECT * FROM quiz_completions WHERE monument_id = ? "
                "ORDER BY id DESC LIMIT ?",
                (monument_id, limit),
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM quiz_completions ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [dict(r) for r in rows]

    # ── Stats ─────────────────────────────────────────────────────────────

    def get_stats(self) -> dict:
        views = self.conn.execute("SELECT COUNT(*) FROM monument_views").fetchone()[0]

        completions = self.conn.execute(
            "SELECT COUNT(*) AS cnt, "
            "AVG(CAST(score AS REAL) / total_questions * 100) AS avg_pct "
            "FROM quiz_completions WHERE total_questions > 0"
        ).fetchone()

        top = self.conn.execute(
            "SELECT v.monument_id, COALESCE(m.title, 'Unknown') AS title, "
            "COUNT(*) AS views FROM monument_views v "
            "LEFT JOIN monuments m ON m.id = v.monument_id "
            "GROUP BY v.monument_id ORDER BY views DESC, title LIMIT 5"
        ).fetchall()

        return {
            "total_monuments": self.get_monument_count(),
            "total_monument_views": views,
            "total_quiz_completions": completions["cnt"],
            "average_quiz_score": (
                round(completions["avg_pct"]) if completions["avg_pct"] is not None else 0
            ),
            "top_monuments": [dict(r) for r in top],
        }
