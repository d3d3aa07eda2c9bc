"""
Tests for StudyMatch API routes.

Uses FastAPI TestClient over a finder wired to the in-memory stores and a
fake clock.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from studymatch.api.app import create_app
from studymatch.api.routes import router
from studymatch.core.errors import StorageError
from studymatch.core.finder import MatchFinder
from studymatch.core.models import UserProfile
from studymatch.infra.config import StudyMatchConfig
from studymatch.infra.memory_store import InMemorySnapshotStore


# ============ Test App Factory ============

def _create_test_app(directory, clock) -> FastAPI:
    """Create a FastAPI app with in-memory dependencies for testing."""
    app = FastAPI()
    app.include_router(router)

    app.state.config = StudyMatchConfig()
    app.state.finder = MatchFinder(
        directory, InMemorySnapshotStore(clock=clock), clock=clock
    )
    return app


@pytest.fixture
def app(directory, clock):
    return _create_test_app(directory, clock)


@pytest.fixture
def client(app):
    return TestClient(app)


def _find(client, user_id="alice", **body):
    return client.post(f"/api/users/{user_id}/matches", json=body)


# ============ Match Endpoints ============

class TestFindMatches:
    def test_returns_camel_case_matches(self, client):
        resp = _find(client)
        assert resp.status_code == 200
        data = resp.json()
        assert data["fromCache"] is False
        assert data["snapshotId"].startswith("match_")
        assert [m["candidateId"] for m in data["matches"]] == [
            "group:calc", "user:bob", "user:erin",
        ]

        group = data["matches"][0]
        assert group["group"] == "calc"
        assert group["matchType"] == "existing_group"
        assert group["compatibilityScore"] == 94
        assert group["matchFactors"]["subjectMatch"]["score"] == 100
        assert group["dismissed"] is False

    def test_accepts_snake_and_camel_options(self, client):
        assert [m["candidateId"] for m in _find(client, maxResults=1).json()["matches"]] == ["group:calc"]
        assert _find(client, min_score=90, refresh=True).json()["fromCache"] is False

    def test_second_request_cached(self, client):
        _find(client)
        assert _find(client).json()["fromCache"] is True

    def test_unknown_user_404(self, client):
        assert _find(client, user_id="nobody").status_code == 404

    def test_incomplete_profile_400(self, client, directory):
        directory.add_user(UserProfile("newbie", name="New"))
        resp = _find(client, user_id="newbie")
        assert resp.status_code == 400
        assert "must be completed" in resp.json()["detail"]

    def test_invalid_options_422(self, client):
        assert _find(client, maxResults=0).status_code == 422
        assert _find(client, includeUsers=False, includeGroups=False).status_code == 422

    def test_storage_failure_503(self, app, client):
        app.state.finder = AsyncMock()
        app.state.finder.find_matches = AsyncMock(side_effect=StorageError("db down"))
        assert _find(client).status_code == 503


class TestGroupSuggestions:
    def test_suggestions(self, client, directory, user_factory):
        for user_id in ("ben", "cleo"):
            directory.add_user(user_factory(user_id))
        resp = client.get("/api/users/alice/group-suggestions")
        assert resp.status_code == 200
        [suggestion] = resp.json()
        assert suggestion["subject"] == "Math"
        assert suggestion["suggestedMembers"][0] == {"userId": "alice", "name": "Alice"}
        assert suggestion["estimatedCompatibility"] > 0

    def test_invalid_sizes_422(self, client):
        resp = client.get("/api/users/alice/group-suggestions?min_size=5&max_size=4")
        assert resp.status_code == 422


# ============ Snapshot Endpoints ============

class TestSnapshots:
    def test_get_snapshot(self, client):
        snapshot_id = _find(client).json()["snapshotId"]
        resp = client.get(f"/api/snapshots/{snapshot_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["userId"] == "alice"
        assert data["status"] == "active"
        assert data["algorithmVersion"] == "2.0"
        assert data["totalCandidates"] == 4
        assert data["topMatches"] == ["group:calc", "user:bob", "user:erin"]

    def test_unknown_snapshot_404(self, client):
        assert client.get("/api/snapshots/match_missing").status_code == 404


class TestInteractions:
    def test_dismiss_hides_from_cache(self, client):
        snapshot_id = _find(client).json()["snapshotId"]
        resp = client.post(
            f"/api/snapshots/{snapshot_id}/candidates/user:bob/interactions",
            json={"action": "dismissed", "reason": "different pace", "userId": "alice"},
        )
        assert resp.status_code == 200
        assert resp.json()["dismissed"] is True
        assert resp.json()["dismissReason"] == "different pace"

        cached = _find(client).json()
        assert cached["fromCache"] is True
        assert "user:bob" not in [m["candidateId"] for m in cached["matches"]]

    def test_unknown_action_422(self, client):
        snapshot_id = _find(client).json()["snapshotId"]
        resp = client.post(
            f"/api/snapshots/{snapshot_id}/candidates/user:bob/interactions",
            json={"action": "liked"},
        )
        assert resp.status_code == 422

    def test_other_users_snapshot_404(self, client):
        snapshot_id = _find(client).json()["snapshotId"]
        resp = client.post(
            f"/api/snapshots/{snapshot_id}/candidates/user:bob/interactions",
            json={"action": "viewed", "user_id": "erin"},
        )
        assert resp.status_code == 404


class TestSweep:
    def test_sweep_counts_expired(self, client, clock):
        _find(client)
        assert client.post("/api/maintenance/sweep").json() == {"deleted": 0}

        clock.advance(days=8)
        assert client.post("/api/maintenance/sweep").json() == {"deleted": 1}


# ============ App Factory ============

class TestCreateApp:
    def test_lifespan_wires_sql_store_and_sweeper(self, directory):
        app = create_app(config=StudyMatchConfig(), directory=directory)
        with TestClient(app) as client:
            assert app.state.sweeper.is_running
            resp = _find(client)
            assert resp.status_code == 200
            snapshot_id = resp.json()["snapshotId"]
            assert client.get(f"/api/snapshots/{snapshot_id}").status_code == 200
        assert not app.state.sweeper.is_running

    def test_lifespan_loads_profiles_file(self, tmp_path):
        profile = {
            "university": "State University",
            "year": "2",
            "major": "Mathematics",
            "subjects": ["Math"],
            "studyStyle": "discussion",
            "studyGoals": ["exam-prep"],
            "availability": {"monday": {"morning": True}},
        }
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"users": [
            {"id": "alice", "name": "Alice", **profile},
            {"id": "bob", "name": "Bob", **profile},
        ]}), encoding="utf-8")

        app = create_app(config=StudyMatchConfig(profiles_file=str(path)))
        with TestClient(app) as client:
            resp = _find(client)
            assert resp.status_code == 200
            assert [m["candidateId"] for m in resp.json()["matches"]] == ["user:bob"]

    def test_without_profile_source_users_are_unknown(self):
        app = create_app(config=StudyMatchConfig())
        with TestClient(app) as client:
            assert _find(client).status_code == 404

