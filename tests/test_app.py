"""Tests for the FastAPI application routes."""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from arfolk import app as app_module
from arfolk.app import app
from arfolk.config import Settings
from arfolk.db import Database
from arfolk.errors import GenerationError

from conftest import FakeLLM, quiz_json


@pytest.fixture
def llm():
    # Every correct answer is index 1
    return FakeLLM(responses=[quiz_json(3, correct=1)])


@pytest.fixture
def test_app(tmp_path, llm):
    """Set up test app with temporary database and settings."""
    db = Database(tmp_path / "test.db")
    settings = Settings(db_path=str(tmp_path / "test.db"), catalogue_files=[])

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._db = db
    app_module._settings = settings
    app_module._controllers.clear()

    with patch("arfolk.app.save_settings"), \
         patch("arfolk.app._get_llm", return_value=llm):
        client = TestClient(app, raise_server_exceptions=False)
        yield client, db, settings
        client.close()

    db.close()
    app_module._db = None
    app_module._settings = None
    app_module._controllers.clear()


@pytest.fixture
def test_app_with_data(test_app, sample_monuments):
    client, db, settings = test_app
    db.import_monuments(sample_monuments)
    return client, db, settings


def start_quiz(client, monument_id="taj-mahal", **extra):
    return client.post("/api/quiz/start", json={"monument_id": monument_id, **extra})


class TestMonumentsAPI:
    def test_list(self, test_app_with_data):
        client, _, _ = test_app_with_data
        resp = client.get("/api/monuments")
        assert resp.status_code == 200
        assert [m["id"] for m in resp.json()] == ["hampi", "konark-sun-temple", "taj-mahal"]

    def test_list_filtered(self, test_app_with_data):
        client, _, _ = test_app_with_data
        resp = client.get("/api/monuments", params={"era": "Vijayanagara"})
        assert [m["id"] for m in resp.json()] == ["hampi"]

    def test_filters(self, test_app_with_data):
        client, _, _ = test_app_with_data
        data = client.get("/api/monuments/filters").json()
        assert data["eras"] == ["Eastern Ganga", "Mughal", "Vijayanagara"]
        assert "Agra" in data["locations"]

    def test_detail_records_view(self, test_app_with_data):
        client, db, _ = test_app_with_data
        resp = client.get("/api/monuments/hampi", params={"user_id": "u1"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "Hampi"
        assert db.get_stats()["total_monument_views"] == 1

    def test_detail_missing(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/monuments/atlantis").status_code == 404


class TestStatsAPI:
    def test_empty_stats(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/stats").json()
        assert data["total_monuments"] == 0
        assert data["average_quiz_score"] == 0

    def test_stats_with_data(self, test_app_with_data):
        client, _, _ = test_app_with_data
        client.get("/api/monuments/taj-mahal")
        data = client.get("/api/stats").json()
        assert data["total_monuments"] == 3
        assert data["top_monuments"][0]["monument_id"] == "taj-mahal"


class TestImportAPI:
    def test_import(self, test_app, tmp_path, catalogue_md_content):
        client, db, settings = test_app
        f = tmp_path / "india.md"
        f.write_text(catalogue_md_content)
        settings.catalogue_files = [str(f)]
        data = client.post("/api/import").json()
        assert data == {"monuments_imported": 3, "total_monuments": 3}
        assert db.get_monument("qutub-minar")["region"] == "North India"


class TestSettingsAPI:
    def test_get_settings(self, test_app):
        client, _, _ = test_app
        data = client.get("/api/settings").json()
        assert data["llm_provider"] == "gateway"
        assert data["question_count"] == 5

    def test_update_settings(self, test_app):
        client, _, settings = test_app
        resp = client.put("/api/settings", json={"difficulty": "hard", "bogus": 1})
        assert resp.status_code == 200
        assert resp.json()["difficulty"] == "hard"
        assert settings.difficulty == "hard"
        assert "bogus" not in resp.json()


class TestQuizFlow:
    def test_full_quiz(self, test_app_with_data, llm):
        client, db, _ = test_app_with_data
        resp = start_quiz(client, user_id="u1")
        assert resp.status_code == 200
        data = resp.json()
        view_id = data["view_id"]
        assert data["state"] == "ready"
        assert data["total"] == 3
        assert data["question"]["number"] == 1
        assert len(data["question"]["options"]) == 4
        assert "Difficulty: medium" in llm.calls[0]["system"]

        for choice in (1, 0, 1):
            data = client.post(f"/api/quiz/{view_id}/answer", json={"choice": choice}).json()
            assert data["state"] == "answered"
            assert data["feedback"]["correct_index"] == 1
            assert data["feedback"]["correct"] is (choice == 1)
            data = client.post(f"/api/quiz/{view_id}/next").json()

        assert data["state"] == "completed"
        assert data["result"] == {"score": 2, "total": 3}
        assert data["reported"] is True
        assert db.get_completions("taj-mahal")[0]["user_id"] == "u1"

    def test_explicit_difficulty_and_count(self, test_app_with_data, llm):
        client, _, _ = test_app_with_data
        resp = start_quiz(client, difficulty="easy", question_count=3)
        assert resp.status_code == 200
        assert "Generate 3 multiple choice questions" in llm.calls[0]["system"]
        assert "Difficulty: easy" in llm.calls[0]["system"]

    def test_get_quiz(self, test_app_with_data):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client, view_id="tab-1").json()["view_id"]
        assert view_id == "tab-1"
        data = client.get("/api/quiz/tab-1").json()
        assert data["monument_id"] == "taj-mahal"
        assert data["current_index"] == 0

    def test_missing_monument_id(self, test_app):
        client, _, _ = test_app
        assert client.post("/api/quiz/start", json={}).status_code == 400

    def test_bad_difficulty(self, test_app_with_data):
        client, _, _ = test_app_with_data
        assert start_quiz(client, difficulty="brutal").status_code == 400

    def test_unknown_monument(self, test_app_with_data):
        client, _, _ = test_app_with_data
        resp = start_quiz(client, monument_id="atlantis")
        assert resp.status_code == 404

    def test_unknown_view(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/quiz/nope").status_code == 404
        assert client.post("/api/quiz/nope/next").status_code == 404

    def test_second_answer_rejected(self, test_app_with_data):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client).json()["view_id"]
        client.post(f"/api/quiz/{view_id}/answer", json={"choice": 0})
        resp = client.post(f"/api/quiz/{view_id}/answer", json={"choice": 2})
        assert resp.status_code == 409
        data = client.get(f"/api/quiz/{view_id}").json()
        assert data["feedback"]["selected"] == 0

    def test_next_before_answer(self, test_app_with_data):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client).json()["view_id"]
        assert client.post(f"/api/quiz/{view_id}/next").status_code == 409

    def test_invalid_choice(self, test_app_with_data):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client).json()["view_id"]
        assert client.post(f"/api/quiz/{view_id}/answer", json={"choice": 7}).status_code == 400
        assert client.post(f"/api/quiz/{view_id}/answer", json={}).status_code == 400

    def test_retake(self, test_app_with_data, llm):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client).json()["view_id"]
        client.post(f"/api/quiz/{view_id}/answer", json={"choice": 1})
        data = client.post(f"/api/quiz/{view_id}/retake").json()
        assert data["state"] == "ready"
        assert data["score"] == 0
        assert data["current_index"] == 0
        assert llm.call_count == 2

    def test_cancel(self, test_app_with_data):
        client, _, _ = test_app_with_data
        view_id = start_quiz(client).json()["view_id"]
        resp = client.delete(f"/api/quiz/{view_id}")
        assert resp.json()["state"] == "cancelled"
        assert client.get(f"/api/quiz/{view_id}").status_code == 404


class TestQuizFailures:
    @pytest.fixture
    def llm(self):
        return FakeLLM(error=GenerationError("AI gateway error", status=500, body="boom"))

    def test_generation_failure(self, test_app_with_data):
        client, _, _ = test_app_with_data
        resp = start_quiz(client, view_id="tab-9")
        assert resp.status_code == 502
        data = resp.json()
        assert data["retryable"] is True
        assert "HTTP 500" in data["detail"]

        state = client.get("/api/quiz/tab-9").json()
        assert state["state"] == "failed"
        assert state["retryable"] is True

    def test_retry_after_failure(self, test_app_with_data, llm):
        client, _, _ = test_app_with_data
        start_quiz(client, view_id="tab-9")
        llm._error = None
        llm._responses = [quiz_json(2)]
        data = client.post("/api/quiz/tab-9/retake").json()
        assert data["state"] == "ready"
        assert data["total"] == 2


class TestUnparseableOutput:
    @pytest.fixture
    def llm(self):
        return FakeLLM(responses=["Sorry, I cannot help with that."])

    def test_parse_failure(self, test_app_with_data):
        client, _, _ = test_app_with_data
        resp = start_quiz(client)
        assert resp.status_code == 502
        assert resp.json()["retryable"] is True


class TestQuizViewEviction:
    def test_oldest_view_evicted(self, test_app_with_data):
        client, _, _ = test_app_with_data
        with patch("arfolk.app.MAX_QUIZ_VIEWS", 2):
            for view_id in ("a", "b", "c"):
                assert start_quiz(client, view_id=view_id).status_code == 200
            assert client.get("/api/quiz/a").status_code == 404
            assert client.get("/api/quiz/c").status_code == 200
        assert list(app_module._controllers) == ["b", "c"]

    def test_recent_use_keeps_view(self, test_app_with_data):
        client, _, _ = test_app_with_data
        with patch("arfolk.app.MAX_QUIZ_VIEWS", 2):
            start_quiz(client, view_id="a")
            start_quiz(client, view_id="b")
            client.post("/api/quiz/a/answer", json={"choice": 1})
            start_quiz(client, view_id="c")
            assert client.get("/api/quiz/a").status_code == 200
            assert client.get("/api/quiz/b").status_code == 404

    def test_views_without_id_are_bounded(self, test_app_with_data):
        client, _, _ = test_app_with_data
        with patch("arfolk.app.MAX_QUIZ_VIEWS", 3):
            for _ in range(10):
                start_quiz(client)
            assert len(app_module._controllers) == 3
