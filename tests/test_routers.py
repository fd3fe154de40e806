import json
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import FakeMatchingClient
from matchmaker.models.models import (
    ERRORS_COLLECTION, JOBS_COLLECTION, MATCHES_BY_PROJECT_COLLECTION, MATCHES_COLLECTION,
    PROFILES_COLLECTION,
)
from matchmaker.services.db import get_store
from matchmaker.services.graph import MatchmakingPipeline


@pytest.fixture
def test_app(store):
    from fastapi import FastAPI
    from matchmaker.routers import matches, matchmaking

    app = FastAPI()
    app.include_router(matchmaking.router)
    app.include_router(matches.router)
    app.dependency_overrides[get_store] = lambda: store
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


def _record(uid, project_id, score, expires_in=timedelta(days=14)):
    now = datetime.utcnow()
    return {
        "fromUid": uid, "toProjectId": project_id, "score": score, "reason": "r",
        "matchType": "ai", "createdAt": now, "expiresAt": now + expires_in,
    }


class TestMatchmakingRouter:
    """Test cases for the trigger endpoints"""

    def test_profile_creation_enqueues_job(self, client, store):
        response = client.post("/matchmaking/events", json={"collection": PROFILES_COLLECTION, "doc_id": "u1"})

        assert response.status_code == 200
        data = response.json()
        assert data["enqueued"] is True
        assert data["doc_ref"] == f"{PROFILES_COLLECTION}/u1"
        assert len(store.docs(JOBS_COLLECTION)) == 1

    def test_other_collection_is_noop(self, client, store):
        response = client.post("/matchmaking/events", json={"collection": "chats", "doc_id": "c1"})

        assert response.status_code == 200
        assert response.json()["enqueued"] is False
        assert store.docs(JOBS_COLLECTION) == []

    def test_event_validation(self, client):
        response = client.post("/matchmaking/events", json={"collection": PROFILES_COLLECTION})

        assert response.status_code == 422

    def test_run_returns_summary(self, client, test_app, seeded_store):
        response_text = json.dumps([{"fromUid": "u1", "toProjectId": "p1", "score": 0.8, "reason": "flutter"}])
        test_app.state.pipeline = MatchmakingPipeline(seeded_store, FakeMatchingClient(response_text))

        response = client.post("/matchmaking/run")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["matches_committed"] == 1
        assert data["profiles"] == 2 and data["projects"] == 1

    def test_run_rejected_while_running(self, client, test_app):
        test_app.state.pipeline = MagicMock(is_running=True, run=AsyncMock())

        response = client.post("/matchmaking/run")

        assert response.status_code == 409
        test_app.state.pipeline.run.assert_not_called()

    def test_run_without_pipeline(self, client):
        response = client.post("/matchmaking/run")

        assert response.status_code == 503


class TestMatchesRouter:
    """Test cases for reading committed matches"""

    def test_matches_for_seeker_best_first(self, client, store):
        store.insert(MATCHES_COLLECTION, "u1_p1", _record("u1", "p1", 0.5))
        store.insert(MATCHES_COLLECTION, "u1_p2", _record("u1", "p2", 0.9))
        store.insert(MATCHES_COLLECTION, "u1_p3", _record("u1", "p3", 0.7, expires_in=timedelta(days=-1)))
        store.insert(MATCHES_COLLECTION, "u2_p1", _record("u2", "p1", 0.6))

        response = client.get("/matches/seeker/u1")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [m["toProjectId"] for m in data["matches"]] == ["p2", "p1"]

    def test_matches_for_project(self, client, store):
        store.insert(MATCHES_BY_PROJECT_COLLECTION, "u1_p1", _record("u1", "p1", 0.5))

        response = client.get("/matches/project/p1")

        assert response.status_code == 200
        assert response.json()["matches"][0]["fromUid"] == "u1"

    def test_errors_most_recent_first(self, client, store):
        now = datetime.utcnow()
        store.insert(ERRORS_COLLECTION, "e1", {"error": "parse_error", "message": "old", "timestamp": now - timedelta(days=1)})
        store.insert(ERRORS_COLLECTION, "e2", {"error": "parse_error", "message": "new", "rawResponse": "x", "timestamp": now})

        response = client.get("/matches/errors?limit=1")

        assert response.status_code == 200
        [error] = response.json()
        assert error["id"] == "e2"
        assert error["rawResponse"] == "x"


class TestApplication:
    """Test cases for the assembled application"""

    def test_health(self):
        from matchmaker.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_custom_exceptions_become_json_errors(self, store):
        from matchmaker.main import app

        app.dependency_overrides[get_store] = lambda: store
        try:
            response = TestClient(app).get("/matches/seeker/%20")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["error_code"] == "VALIDATION_ERROR"
        assert "X-Request-ID" in response.headers
