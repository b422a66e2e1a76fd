"""
Integration tests for the JSON API.

Requests run through FastAPI's TestClient with get_db overridden to the
test session, so every request sees (and rolls back with) the test data.
"""

import pytest
from fastapi.testclient import TestClient

from bracketeer.db.models import Bracket
from bracketeer.db.session import get_db
from bracketeer.web import main
from bracketeer.web.main import app


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def bracket_id(client, make_category):
    category = make_category(4)
    response = client.post(
        f"/api/categories/{category.id}/bracket",
        json={"bracket_type": "single_elimination", "seeding_method": "ranking"},
    )
    assert response.status_code == 201
    return response.json()["id"]


def _matches(client, bracket_id, status=None):
    params = {"status": status} if status else None
    return client.get(f"/api/brackets/{bracket_id}", params=params).json()["matches"]


class TestBracketEndpoints:
    """Tests for bracket generation and reads."""

    def test_generate(self, client, make_category):
        category = make_category(5)
        response = client.post(
            f"/api/categories/{category.id}/bracket",
            json={"bracket_type": "double_elimination", "seeding_method": "random", "seed": 9},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["bracket_type"] == "double_elimination"
        assert body["random_seed"] == 9
        assert len(body["seeding_data"]) == 5

    def test_generate_errors_map_to_status_codes(self, client, make_category, bracket_id):
        category = make_category(1, name="Tiny")
        too_few = client.post(
            f"/api/categories/{category.id}/bracket",
            json={"bracket_type": "round_robin"},
        )
        assert too_few.status_code == 400
        assert too_few.json()["error"] == "InsufficientEntrantsError"

        missing = client.post("/api/categories/999999/bracket", json={"bracket_type": "round_robin"})
        assert missing.status_code == 404

    def test_get_bracket_with_status_filter(self, client, bracket_id):
        body = client.get(f"/api/brackets/{bracket_id}").json()
        assert body["bracket_data"]["type"] == "single_elimination"
        assert len(body["matches"]) == 2

        assert _matches(client, bracket_id, status="completed") == []
        assert len(_matches(client, bracket_id, status="scheduled,bogus")) == 2

    def test_status(self, client, bracket_id):
        body = client.get(f"/api/brackets/{bracket_id}/status").json()
        assert body["total_matches"] == 2
        assert body["progress_pct"] == 0.0
        assert body["is_complete"] is False

    def test_unknown_bracket(self, client):
        response = client.get("/api/brackets/999999/status")
        assert response.status_code == 404
        assert response.json()["error"] == "BracketNotFoundError"


class TestMatchEndpoints:
    """Tests for the match lifecycle endpoints."""

    def test_play_semifinal(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]

        assert client.post(f"/api/matches/{match_id}/start").json()["status"] == "in_progress"
        response = client.post(
            f"/api/matches/{match_id}/score",
            json={"score": "6-4 6-3", "is_final": True},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["score_display"] == "6-4 6-3"
        assert body["winner_id"] == body["entrant1_id"]
        assert len(_matches(client, bracket_id)) == 3

    def test_invalid_transition_is_conflict(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]
        response = client.post(
            f"/api/matches/{match_id}/score",
            json={"score": "6-4 6-3", "is_final": True},
        )
        assert response.status_code == 409
        assert response.json()["context"]["status"] == "scheduled"

    def test_invalid_score_is_bad_request(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]
        client.post(f"/api/matches/{match_id}/start")
        response = client.post(
            f"/api/matches/{match_id}/score",
            json={"score": "6-4 4-6", "is_final": True},
        )
        assert response.status_code == 400

    def test_walkover_and_cancel(self, client, bracket_id):
        first, second = _matches(client, bracket_id)

        walkover = client.post(
            f"/api/matches/{first['id']}/walkover",
            json={"winner_id": first["entrant2_id"], "reason": "No show"},
        )
        assert walkover.json()["status"] == "walkover"

        cancelled = client.post(f"/api/matches/{second['id']}/cancel", json={"reason": "Rain"})
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancellation_reason"] == "Rain"

    def test_cancel_then_replay(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]
        client.post(f"/api/matches/{match_id}/cancel", json={"reason": "Rain"})

        response = client.post(
            f"/api/matches/{match_id}/replay",
            json={"reason": "Replay", "new_date": "2026-06-03"},
        )

        assert response.status_code == 201
        replay = response.json()
        assert replay["id"] != match_id
        assert replay["status"] == "scheduled"
        assert replay["scheduled_date"] == "2026-06-03"
        again = client.post(f"/api/matches/{match_id}/replay", json={"reason": "Again"})
        assert again.status_code == 409

    def test_schedule_and_postpone(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]

        scheduled = client.post(
            f"/api/matches/{match_id}/schedule",
            json={"venue_id": 2, "scheduled_date": "2026-06-01", "scheduled_time": "14:00:00"},
        ).json()
        assert scheduled["scheduled_date"] == "2026-06-01"

        postponed = client.post(
            f"/api/matches/{match_id}/postpone",
            json={"new_date": "2026-06-02", "new_time": "10:00:00", "reason": "Heat"},
        ).json()
        assert postponed["postponement_count"] == 1
        assert postponed["scheduled_date"] == "2026-06-02"

    def test_resolve_advancement_without_issue(self, client, bracket_id):
        match_id = _matches(client, bracket_id)[0]["id"]
        response = client.post(f"/api/matches/{match_id}/resolve-advancement")
        assert response.json() == {"match_id": match_id, "resolved": False}

    def test_unknown_match(self, client):
        assert client.get("/api/matches/999999").status_code == 404

    def test_retirement_score_string(self, client, bracket_id):
        match = _matches(client, bracket_id)[0]
        client.post(f"/api/matches/{match['id']}/start")

        response = client.post(
            f"/api/matches/{match['id']}/retirement",
            json={"retiring_id": match["entrant1_id"], "partial_score": "3-6 1-0 RET"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "retired"
        assert response.json()["winner_id"] == match["entrant2_id"]

    def test_completed_bracket_is_conflict(self, client, bracket_id, db_session):
        db_session.get(Bracket, bracket_id).is_complete = True
        match_id = _matches(client, bracket_id)[0]["id"]

        response = client.post(f"/api/matches/{match_id}/start")

        assert response.status_code == 409
        assert response.json()["error"] == "BracketCompleteError"


class TestScheduleEndpoints:
    """Tests for the order-of-play and player match endpoints."""

    def test_tournament_schedule(self, client, bracket_id):
        first, second = _matches(client, bracket_id)
        client.post(
            f"/api/matches/{second['id']}/schedule",
            json={"venue_id": 1, "scheduled_date": "2026-06-01", "scheduled_time": "09:00:00"},
        )
        client.post(
            f"/api/matches/{first['id']}/schedule",
            json={"venue_id": 1, "scheduled_date": "2026-06-01", "scheduled_time": "11:00:00"},
        )

        schedule = client.get("/api/tournaments/1/schedule", params={"date": "2026-06-01"}).json()

        assert [m["id"] for m in schedule] == [second["id"], first["id"]]
        assert client.get("/api/tournaments/1/schedule", params={"date": "2026-06-02"}).json() == []

    def test_player_matches(self, client, bracket_id):
        # Player 1000 is the top seed in the first semifinal
        first = _matches(client, bracket_id)[0]

        matches = client.get("/api/players/1000/matches", params={"tournament_id": 1}).json()

        assert [m["id"] for m in matches] == [first["id"]]
        assert client.get("/api/players/1000/matches", params={"tournament_id": 2}).json() == []


class TestRunner:
    """Tests for the uvicorn entry point."""

    def test_run_uses_settings(self, monkeypatch):
        import uvicorn

        calls = {}
        monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.update(target=target, **kwargs))
        monkeypatch.setattr(main.logging, "basicConfig", lambda **kwargs: calls.update(format=kwargs["format"]))
        monkeypatch.setattr(main.settings, "api_host", "127.0.0.1")
        monkeypatch.setattr(main.settings, "api_port", 8123)
        monkeypatch.setattr(main.settings, "api_reload", False)
        monkeypatch.setattr(main.settings, "log_format", "%(levelname)s %(message)s")

        main.run()

        assert calls == {
            "target": "bracketeer.web.main:app",
            "host": "127.0.0.1",
            "port": 8123,
            "reload": False,
            "format": "%(levelname)s %(message)s",
        }
