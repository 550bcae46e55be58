"""CLI entry point for arfolk.

Usage:
  python -m arfolk serve [--port PORT] [--host HOST] [--no-auto-import]
  python -m arfolk stop
  python -m arfolk restart [--port PORT]
  python -m arfolk status
  python -m arfolk import
  python -m arfolk play MONUMENT_ID [--difficulty easy|medium|hard] [--count N]
  python -m arfolk stats
"""
from __future__ import annotations

import asyncio
import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "restart":
        _restart(args[1:])
    elif command == "status":
        _status()
    elif command == "import":
        _import_catalogue()
    elif command == "play":
        _play(args[1:])
    elif command == "stats":
        _stats()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, restart, status, import, play, stats")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _write_pid() -> None:
    PID_FILE.write_text(str(os.getpid()))


def _remove_pid() -> None:
    PID_FILE.unlink(missing_ok=True)


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        PID_FILE.unlink(missing_ok=True)
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        PID_FILE.unlink(missing_ok=True)
        return False


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _restart(args: list[str]):
    import time
    _stop()
    time.sleep(1)
    _serve(args)


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'restart' or 'stop' first.")
        sys.exit(1)

    if "--no-auto-import" in args:
        os.environ["ARFOLK_NO_AUTO_IMPORT"] = "1"

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    _write_pid()

    print(f"Starting AR Folk on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "arfolk.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        _remove_pid()
        os.environ.pop("ARFOLK_NO_AUTO_IMPORT", None)


def _import_catalogue():
    from arfolk.config import load_settings
    from arfolk.db import Database
    from arfolk.parsers.monument_parser import parse_catalogue_file

    settings = load_settings()
    db = Database(settings.db_full_path)

    for cf in settings.resolved_catalogue_files():
        if not cf.exists():
            print(f"  Skipping (not found): {cf}")
            continue
        print(f"  Parsing: {cf.name}")
        db.delete_monuments_by_source(cf.name)
        n = db.import_monuments(parse_catalogue_file(cf))
        print(f"    {n} monuments")
        db.set_file_mtime(str(cf), cf.stat().st_mtime_ns)

    print(f"\nTotal in DB: {db.get_monument_count()} monuments")
    db.close()


def _ask_choice(n_options: int) -> int:
    labels = "ABCD"[:n_options]
    while True:
        answer = input(f"Your answer ({'/'.join(labels)}): ").strip().upper()
        if len(answer) == 1 and answer in labels:
            return labels.index(answer)
        print("  Please pick one of the letters shown.")


async def _run_quiz(ctl, monument_id: str, difficulty: str, count: int) -> None:
    from arfolk.session import SessionState

    session = await ctl.start(monument_id, difficulty=difficulty, question_count=count)
    while True:
        q = session.current_question
        print(f"\nQuestion {session.current_index + 1} of {session.total}  (score {session.score})")
        print(q.prompt)
        for i, option in enumerate(q.options):
            print(f"  {'ABCD'[i]}) {option}")
        correct = ctl.select_answer(_ask_choice(len(q.options)))
        if correct:
            print("Correct!")
        else:
            print(f"Wrong. The answer was {'ABCD'[q.correct_index]}) {q.options[q.correct_index]}")
        if q.explanation:
            print(f"Explanation: {q.explanation}")
        if await ctl.advance() is SessionState.COMPLETED:
            break

    result = session.result()
    pct = result["score"] / result["total"] * 100
    verdict = "Excellent!" if pct >= 80 else "Good job!" if pct >= 60 else "Keep learning!"
    print(f"\nQuiz complete: {result['score']}/{result['total']}  {verdict}")
    if not ctl.reported:
        print("(result could not be saved)")


PLAY_USAGE = "Usage: python -m arfolk play MONUMENT_ID [--difficulty D] [--count N]"


def _play(args: list[str]):
    if not args or args[0].startswith("--"):
        print(PLAY_USAGE)
        sys.exit(1)
    monument_id = args[0]

    from arfolk.config import load_settings
    from arfolk.controller import QuizController
    from arfolk.db import Database
    from arfolk.errors import FetchError, QuizError
    from arfolk.quiz_generator import GenerationGateway, make_llm
    from arfolk.reporter import ScoreReporter

    settings = load_settings()
    difficulty = _parse_flag(args, "--difficulty", settings.difficulty)
    try:
        count = int(_parse_flag(args, "--count", str(settings.question_count)))
    except ValueError:
        print(PLAY_USAGE)
        sys.exit(1)

    db = Database(settings.db_full_path)
    try:
        llm = make_llm(settings)
    except ValueError as e:
        print(e)
        db.close()
        sys.exit(1)

    ctl = QuizController(db, GenerationGateway(llm), ScoreReporter(db))
    print(f"Generating {count} question(s) using {llm.name()}...")
    try:
        asyncio.run(_run_quiz(ctl, monument_id, difficulty, count))
    except FetchError as e:
        print(f"Cannot start quiz: {e}")
        sys.exit(1)
    except QuizError as e:
        print(f"Quiz generation failed: {e}. Try again.")
        sys.exit(1)
    except ValueError as e:
        print(e)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        ctl.cancel()
        print("\nQuiz abandoned.")
    finally:
        db.close()


def _stats():
    from arfolk.config import load_settings
    from arfolk.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    stats = db.get_stats()

    print("AR Folk Stats")
    print("=" * 40)
    print(f"Monuments:          {stats['total_monuments']}")
    print(f"Monument views:     {stats['total_monument_views']}")
    print(f"Quiz completions:   {stats['total_quiz_completions']}")
    print(f"Average quiz score: {stats['average_quiz_score']}%")
    for m in stats["top_monuments"]:
        print(f"  {m['title']:<30} {m['views']} views")
    db.close()


if __name__ == "__main__":
    main()
