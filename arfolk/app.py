"""FastAPI application with all routes."""
from __future__ import annotations

import logging
import os
import uuid
from collections import OrderedDict

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from arfolk.config import Settings, load_settings, save_settings
from arfolk.controller import QuizController
from arfolk.db import Database
from arfolk.errors import FetchError, QuizError, TransitionError
from arfolk.parsers.monument_parser import parse_catalogue_file
from arfolk.quiz_generator import GenerationGateway, make_llm
from arfolk.reporter import ScoreReporter
from arfolk.session import SessionState

app = FastAPI(title="AR Folk")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
# view_id -> controller, least recently used first
_controllers: OrderedDict[str, QuizController] = OrderedDict()
MAX_QUIZ_VIEWS = 256


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def _get_llm():
    return make_llm(get_settings())


def _import_catalogue(db: Database, settings: Settings, only_changed: bool = False) -> int:
    log = logging.getLogger("auto-import")
    total = 0
    for cf in settings.resolved_catalogue_files():
        if not cf.exists():
            continue
        current_mtime = cf.stat().st_mtime_ns
        if only_changed and db.get_file_mtime(str(cf)) == current_mtime:
            continue
        log.info("Importing %s", cf.name)
        db.delete_monuments_by_source(cf.name)
        n = db.import_monuments(parse_catalogue_file(cf))
        log.info("  %d monuments imported", n)
        total += n
        db.set_file_mtime(str(cf), current_mtime)
    return total


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    if not os.environ.get("ARFOLK_NO_AUTO_IMPORT"):
        _import_catalogue(_db, _settings, only_changed=True)


@app.on_event("shutdown")
async def shutdown():
    _controllers.clear()
    if _db:
        _db.close()


# ── API: Monuments ────────────────────────────────────────────────────────

@app.get("/api/monuments")
async def api_monuments(era: str | None = None, location: str | None = None):
    return get_db().get_all_monuments(era=era, location=location)


@app.get("/api/monuments/filters")
async def api_monument_filters():
    db = get_db()
    return {"eras": db.get_eras(), "locations": db.get_locations()}


@app.get("/api/monuments/{monument_id}")
async def api_monument(monument_id: str, user_id: str | None = None):
    db = get_db()
    monument = db.get_monument(monument_id)
    if monument is None:
        raise HTTPException(404, "Monument not found")
    db.record_view(monument_id, user_id)
    return monument


# ── API: Stats ────────────────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


# ── API: Import ───────────────────────────────────────────────────────────

@app.post("/api/import")
async def api_import():
    db = get_db()
    n = _import_catalogue(db, get_settings())
    return {"monuments_imported": n, "total_monuments": db.get_monument_count()}


# ── API: Quiz ─────────────────────────────────────────────────────────────

def _quiz_payload(view_id: str, ctl: QuizController) -> dict:
    session = ctl.session
    if session is None:
        return {"view_id": view_id, "state": "idle"}

    payload = {
        "view_id": view_id,
        "monument_id": session.subject_id,
        "state": session.state.value,
        "score": session.score,
        "total": session.total,
        "current_index": session.current_index,
    }

    question = session.current_question
    if question is not None:
        payload["question"] = {
            "number": session.current_index + 1,
            "prompt": question.prompt,
            "options": list(question.options),
        }
        if session.state is SessionState.ANSWERED:
            payload["feedback"] = {
                "selected": session.selected_answer,
                "correct": session.is_correct,
                "correct_index": question.correct_index,
                "explanation": question.explanation,
            }
    elif session.state is SessionState.COMPLETED:
        payload["result"] = session.result()
        payload["reported"] = ctl.reported
    elif session.state is SessionState.FAILED:
        payload["error"] = str(session.error)
        payload["retryable"] = session.error.retryable
    return payload


def _get_controller(view_id: str) -> QuizController:
    ctl = _controllers.get(view_id)
    if ctl is None:
        raise HTTPException(404, "Quiz not found")
    _controllers.move_to_end(view_id)
    return ctl


def _add_controller(view_id: str, ctl: QuizController) -> None:
    _controllers[view_id] = ctl
    while len(_controllers) > MAX_QUIZ_VIEWS:
        old_id, old = _controllers.popitem(last=False)
        old.cancel()
        logging.getLogger("arfolk.session").info("Evicted idle quiz view %s", old_id)


async def _run_start(view_id: str, ctl: QuizController, start):
    try:
        session = await start
    except ValueError as e:
        raise HTTPException(400, str(e))
    except FetchError as e:
        raise HTTPException(404, str(e))
    except TransitionError as e:
        raise HTTPException(409, str(e))
    except QuizError as e:
        return JSONResponse(
            status_code=502,
            content={"detail": str(e), "retryable": e.retryable, "view_id": view_id},
        )
    if session is None:
        raise HTTPException(409, "Quiz start superseded by a newer request")
    return _quiz_payload(view_id, ctl)


@app.post("/api/quiz/start")
async def api_quiz_start(request: Request):
    body = await request.json() if await request.body() else {}
    monument_id = body.get("monument_id")
    if not monument_id:
        raise HTTPException(400, "No monument_id provided")

    s = get_settings()
    view_id = body.get("view_id") or uuid.uuid4().hex
    ctl = _controllers.get(view_id)
    if ctl is None:
        db = get_db()
        ctl = QuizController(
            db, GenerationGateway(_get_llm()), ScoreReporter(db), user_id=body.get("user_id"),
        )
        _add_controller(view_id, ctl)
    else:
        _controllers.move_to_end(view_id)
        if body.get("user_id"):
            ctl.user_id = body["user_id"]

    return await _run_start(view_id, ctl, ctl.start(
        monument_id,
        difficulty=body.get("difficulty", s.difficulty),
        question_count=body.get("question_count", s.question_count),
    ))


@app.get("/api/quiz/{view_id}")
async def api_quiz_get(view_id: str):
    return _quiz_payload(view_id, _get_controller(view_id))


@app.post("/api/quiz/{view_id}/answer")
async def api_quiz_answer(view_id: str, request: Request):
    ctl = _get_controller(view_id)
    body = await request.json()
    if "choice" not in body:
        raise HTTPException(400, "No choice provided")
    try:
        ctl.select_answer(body["choice"])
    except TransitionError as e:
        raise HTTPException(409, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _quiz_payload(view_id, ctl)


@app.post("/api/quiz/{view_id}/next")
async def api_quiz_next(view_id: str):
    ctl = _get_controller(view_id)
    try:
        await ctl.advance()
    except TransitionError as e:
        raise HTTPException(409, str(e))
    return _quiz_payload(view_id, ctl)


@app.post("/api/quiz/{view_id}/retake")
async def api_quiz_retake(view_id: str):
    ctl = _get_controller(view_id)
    return await _run_start(view_id, ctl, ctl.retake())


@app.delete("/api/quiz/{view_id}")
async def api_quiz_cancel(view_id: str):
    ctl = _get_controller(view_id)
    ctl.cancel()
    del _controllers[view_id]
    return {"view_id": view_id, "state": "cancelled"}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
