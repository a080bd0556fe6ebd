"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from playoff_league.api import app
from playoff_league.auth import create_access_token
from playoff_league.persistence.db import get_connection, init_db, set_db_path
from playoff_league.persistence.repositories import (
    GameRepository,
    PlayerRepository,
    RoundRepository,
    StatLineRepository,
    UserRepository,
)


@pytest.fixture(autouse=True)
def isolated_db(tmp_path):
    """Use a temporary DB for each test, seeded with users, rounds, players and games."""
    db_path = tmp_path / "test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        UserRepository().create(conn, "commish", is_admin=True, id="admin")
        UserRepository().create(conn, "alice", id="u1")
        UserRepository().create(conn, "bob", id="u2")
        RoundRepository().create(conn, 1, "Wild Card", is_current=True, id="r1")
        RoundRepository().create(conn, 2, "Divisional", id="r2")
        PlayerRepository().create(conn, "Josh Allen", "BUF", "QB", id="qb1")
        StatLineRepository().upsert(conn, "qb1", "r1", 22.0)
        later = datetime.now(timezone.utc) + timedelta(days=1)
        GameRepository().create(conn, "r1", "BUF", "DEN", kickoff_at=later, id="g1")
    finally:
        conn.close()
    yield db_path


@pytest.fixture
def client():
    return TestClient(app)


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def _finalize_g1(away: int, home: int) -> None:
    conn = get_connection()
    try:
        GameRepository().set_final(conn, "g1", away, home)
    finally:
        conn.close()


# ---------- Admin ----------


def test_recalculate_requires_token(client):
    assert client.post("/rounds/r1/recalculate").status_code == 401


def test_recalculate_rejects_bad_token(client):
    resp = client.post("/rounds/r1/recalculate", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_recalculate_requires_admin(client):
    assert client.post("/rounds/r1/recalculate", headers=_auth("u1")).status_code == 403


def test_recalculate_summary(client):
    client.put("/games/g1/predictions/u1", json={"away_score": 24, "home_score": 17}, headers=_auth("u1"))
    client.put("/games/g1/predictions/u2", json={"away_score": 17, "home_score": 24}, headers=_auth("u2"))
    client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    _finalize_g1(24, 17)
    resp = client.post("/rounds/r1/recalculate", headers=_auth("admin"))
    assert resp.status_code == 200
    data = resp.json()
    assert data["round_id"] == "r1"
    assert data["games_settled"] == 1
    assert data["predictor_rows"] == 2
    assert data["rosters_scored"] == 1
    assert data["roster_rows"] == 9


def test_recalculate_unknown_round(client):
    assert client.post("/rounds/nope/recalculate", headers=_auth("admin")).status_code == 404


def test_advance_round(client):
    resp = client.post("/rounds/advance", headers=_auth("admin"))
    assert resp.status_code == 200
    assert resp.json()["id"] == "r2"
    resp = client.post("/rounds/advance", headers=_auth("admin"))
    assert resp.status_code == 409
    assert "No next round exists" in resp.json()["detail"]


def test_lock_toggles(client):
    resp = client.post("/rounds/r1/lock", json={"locked": True}, headers=_auth("admin"))
    assert resp.status_code == 200
    assert resp.json()["is_locked"] is True
    resp = client.post("/rounds/r1/predictor-lock", json={"locked": True}, headers=_auth("admin"))
    assert resp.json()["predictor_locked"] is True
    assert client.post("/rounds/nope/lock", json={"locked": True}, headers=_auth("admin")).status_code == 404


# ---------- Submissions ----------


def test_save_roster(client):
    resp = client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    assert resp.status_code == 200
    slots = resp.json()["slots"]
    assert slots["QB"] == "qb1"
    assert slots["DEF"] is None


def test_save_roster_other_user_forbidden(client):
    resp = client.put("/rounds/r1/rosters/u2", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    assert resp.status_code == 403


def test_save_roster_invalid_slot(client):
    resp = client.put("/rounds/r1/rosters/u1", json={"slots": {"WR3": "qb1"}}, headers=_auth("u1"))
    assert resp.status_code == 422
    assert "Unknown roster slot" in resp.json()["detail"]


def test_save_roster_locked_round(client):
    client.post("/rounds/r1/lock", json={"locked": True}, headers=_auth("admin"))
    resp = client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    assert resp.status_code == 409


def test_submit_prediction(client):
    resp = client.put("/games/g1/predictions/u1", json={"away_score": 27, "home_score": 20}, headers=_auth("u1"))
    assert resp.status_code == 200
    assert resp.json() == {"game_id": "g1", "user_id": "u1", "away_score_pred": 27, "home_score_pred": 20}


def test_submit_prediction_out_of_range(client):
    resp = client.put("/games/g1/predictions/u1", json={"away_score": 100, "home_score": 20}, headers=_auth("u1"))
    assert resp.status_code == 422


def test_submit_prediction_locked(client):
    client.post("/rounds/r1/predictor-lock", json={"locked": True}, headers=_auth("admin"))
    resp = client.put("/games/g1/predictions/u1", json={"away_score": 27, "home_score": 20}, headers=_auth("u1"))
    assert resp.status_code == 409


def test_submit_prediction_unknown_game(client):
    resp = client.put("/games/nope/predictions/u1", json={"away_score": 27, "home_score": 20}, headers=_auth("u1"))
    assert resp.status_code == 404


# ---------- Reads ----------


def test_get_roster_seeds_from_previous_round(client):
    client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    resp = client.get("/rounds/r2/rosters/u1", headers=_auth("u1"))
    assert resp.status_code == 200
    assert resp.json()["slots"]["QB"] == "qb1"
    assert client.get("/rounds/r2/rosters/u1", headers=_auth("u2")).status_code == 403


def test_preview(client):
    client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    resp = client.get("/rounds/r1/rosters/u1/preview", headers=_auth("u1"))
    assert resp.status_code == 200
    slots = {s["slot"]: s for s in resp.json()["slots"]}
    assert len(slots) == 9
    assert slots["QB"]["player_name"] == "Josh Allen"
    assert slots["QB"]["multiplier"] == 1
    assert slots["QB"]["base_points"] == 22.0


def test_preview_hidden_from_others_until_lock(client):
    client.put("/rounds/r1/rosters/u1", json={"slots": {"QB": "qb1"}}, headers=_auth("u1"))
    assert client.get("/rounds/r1/rosters/u1/preview").status_code == 401
    assert client.get("/rounds/r1/rosters/u1/preview", headers=_auth("u2")).status_code == 403
    assert client.get("/rounds/r1/rosters/u1/preview", headers=_auth("admin")).status_code == 200
    client.post("/rounds/r1/lock", json={"locked": True}, headers=_auth("admin"))
    resp = client.get("/rounds/r1/rosters/u1/preview", headers=_auth("u2"))
    assert resp.status_code == 200
    assert {s["slot"]: s for s in resp.json()["slots"]}["QB"]["player_id"] == "qb1"


def test_list_predictions(client):
    client.put("/games/g1/predictions/u1", json={"away_score": 24, "home_score": 17}, headers=_auth("u1"))
    client.put("/games/g1/predictions/u2", json={"away_score": 17, "home_score": 24}, headers=_auth("u2"))
    resp = client.get("/rounds/r1/predictions/u1", headers=_auth("u1"))
    assert resp.status_code == 200
    game = resp.json()["games"][0]
    assert game["game"]["id"] == "g1"
    assert (game["away_score_pred"], game["home_score_pred"]) == (24, 17)
    assert game["weighted_points"] is None

    _finalize_g1(24, 17)
    client.post("/rounds/r1/recalculate", headers=_auth("admin"))
    game = client.get("/rounds/r1/predictions/u1", headers=_auth("u1")).json()["games"][0]
    assert game["base_points"] == 600.0
    assert game["weighted_points"] == 600.0


def test_list_predictions_hidden_from_others_until_predictor_lock(client):
    client.put("/games/g1/predictions/u1", json={"away_score": 24, "home_score": 17}, headers=_auth("u1"))
    assert client.get("/rounds/r1/predictions/u1").status_code == 401
    assert client.get("/rounds/r1/predictions/u1", headers=_auth("u2")).status_code == 403
    client.post("/rounds/r1/predictor-lock", json={"locked": True}, headers=_auth("admin"))
    resp = client.get("/rounds/r1/predictions/u1", headers=_auth("u2"))
    assert resp.status_code == 200
    assert resp.json()["games"][0]["away_score_pred"] == 24
    assert client.get("/rounds/nope/predictions/u1", headers=_auth("admin")).status_code == 404



def test_leaderboards(client):
    client.put("/games/g1/predictions/u1", json={"away_score": 24, "home_score": 17}, headers=_auth("u1"))
    client.put("/games/g1/predictions/u2", json={"away_score": 17, "home_score": 24}, headers=_auth("u2"))
    client.put("/rounds/r1/rosters/u2", json={"slots": {"QB": "qb1"}}, headers=_auth("u2"))
    _finalize_g1(24, 17)
    client.post("/rounds/r1/recalculate", headers=_auth("admin"))

    predictor = client.get("/leaderboard/predictor").json()["rows"]
    assert predictor[0]["user_id"] == "u1"
    # N=2: winner 100 + pot 100 + jackpot 400
    assert predictor[0]["total_points"] == 600.0

    fantasy = client.get("/leaderboard/fantasy", params={"round_id": "r1"}).json()["rows"]
    assert fantasy[0]["user_id"] == "u2"
    assert fantasy[0]["round_points"] == 22.0
    assert fantasy[0]["round_name"] == "Wild Card"

    net = client.get("/leaderboard/predictor/net").json()["rows"]
    assert {r["user_id"]: r["net_dollars"] for r in net} == {"u1": 4.0, "u2": -2.0, "admin": -2.0}


def test_leaderboard_unknown_round(client):
    assert client.get("/leaderboard/predictor", params={"round_id": "nope"}).status_code == 404
