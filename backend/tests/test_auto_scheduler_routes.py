"""
Auto-scheduler API: PREVIEW writes nothing, APPLY commits what PREVIEW showed.
"""

from datetime import date

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from league_scheduler.models import Game, GameType

DAY = date(2025, 3, 1)


def payload(event_id, **settings):
    body = {"event_id": event_id, "date": DAY.isoformat()}
    if settings:
        body["settings"] = settings
    return body


def test_preview_returns_plan_and_writes_nothing(client: TestClient, session: Session, league, make_game):
    a, b, c, d = league["teams"]
    final = make_game(a, b, event_id=league["event"], game_type=GameType.CHAMPIONSHIP.value)
    pool = make_game(c, d, event_id=league["event"])

    response = client.post("/api/scheduler/auto/preview", json=payload(league["event"]))

    assert response.status_code == 200
    data = response.json()
    assert [g["game_id"] for g in data["scheduled"]] == [final.id, pool.id]
    assert data["scheduled"][0]["time_slot"] == "8:00 AM"
    assert data["scheduled"][0]["court_name"] == "Court 1"
    assert data["scheduled"][0]["venue_name"] == "Main Gym"
    assert data["stats"] == {
        "total_games": 2,
        "scheduled_count": 2,
        "unscheduled_count": 0,
        # 120 booked minutes over 2 courts x 840 minutes
        "utilization_percent": 7,
    }
    assert len(data["fingerprint"]) == 64
    assert session.exec(select(Game).where(Game.court_id != None)).all() == []  # noqa: E711


def test_preview_reports_unscheduled_reason(client: TestClient, league, make_game):
    a, b, c, _ = league["teams"]
    make_game(a, b, event_id=league["event"])
    blocked = make_game(a, c, event_id=league["event"])

    response = client.post(
        "/api/scheduler/auto/preview",
        json=payload(league["event"], start_time="08:00", end_time="09:00", game_duration=60, min_rest_minutes=30),
    )

    data = response.json()
    assert [u["game_id"] for u in data["unscheduled"]] == [blocked.id]
    assert data["unscheduled"][0]["reason_code"] == "TEAM_DOUBLE_BOOKED"


def test_preview_configuration_errors(client: TestClient, league):
    no_event = client.post("/api/scheduler/auto/preview", json={"date": DAY.isoformat()})
    no_date = client.post("/api/scheduler/auto/preview", json={"event_id": league["event"]})
    unknown = client.post("/api/scheduler/auto/preview", json=payload(9999))
    bad_window = client.post(
        "/api/scheduler/auto/preview", json=payload(league["event"], start_time="12:00", end_time="09:00")
    )

    assert no_event.status_code == 400
    assert no_date.status_code == 400
    assert unknown.status_code == 404
    assert bad_window.status_code == 400


def test_preview_with_nothing_to_schedule_is_empty(client: TestClient, league):
    response = client.post("/api/scheduler/auto/preview", json=payload(league["event"]))

    assert response.status_code == 200
    assert response.json()["scheduled"] == []
    assert response.json()["stats"]["total_games"] == 0


def test_apply_matches_preview(client: TestClient, session: Session, league, make_game):
    a, b, c, d = league["teams"]
    for home, away in [(a, b), (c, d), (a, c), (b, d)]:
        make_game(home, away, event_id=league["event"])

    preview = client.post("/api/scheduler/auto/preview", json=payload(league["event"])).json()
    body = payload(league["event"])
    body["expected_fingerprint"] = preview["fingerprint"]
    response = client.post("/api/scheduler/auto/apply", json=body)

    assert response.status_code == 200
    data = response.json()
    assert data["diverged_from_preview"] is False
    assert data["rejected_games"] == []
    assert data["committed_count"] == len(preview["scheduled"])
    assert [(c["game_id"], c["court_id"], c["scheduled_at"]) for c in data["committed"]] == [
        (s["game_id"], s["court_id"], s["scheduled_at"]) for s in preview["scheduled"]
    ]

    stored = session.exec(select(Game).where(Game.court_id != None)).all()  # noqa: E711
    assert len(stored) == len(preview["scheduled"])


def confirmed(client, event_id, **settings):
    """APPLY body that confirms a fresh preview by fingerprint."""
    preview = client.post("/api/scheduler/auto/preview", json=payload(event_id, **settings)).json()
    body = payload(event_id, **settings)
    body["expected_fingerprint"] = preview["fingerprint"]
    return body


def test_apply_twice_schedules_nothing_new(client: TestClient, league, make_game):
    a, b, _, _ = league["teams"]
    make_game(a, b, event_id=league["event"])

    first = client.post("/api/scheduler/auto/apply", json=confirmed(client, league["event"])).json()
    second = client.post("/api/scheduler/auto/apply", json=confirmed(client, league["event"])).json()

    assert first["committed_count"] == 1
    assert second["committed_count"] == 0
    assert second["stats"]["total_games"] == 0


def test_date_picker_timestamp_is_accepted(client: TestClient, league):
    response = client.post(
        "/api/scheduler/auto/preview", json={"event_id": league["event"], "date": "2025-03-01T00:00:00"}
    )

    assert response.status_code == 200


def test_apply_without_a_preview_is_rejected(client: TestClient, session: Session, league, make_game):
    a, b, _, _ = league["teams"]
    make_game(a, b, event_id=league["event"])

    response = client.post("/api/scheduler/auto/apply", json=payload(league["event"]))

    assert response.status_code == 400
    assert "expected_fingerprint" in response.json()["detail"]
    assert session.exec(select(Game).where(Game.court_id != None)).all() == []  # noqa: E711


def test_apply_lists_games_committed_away_from_the_previewed_cell(
    client: TestClient, session: Session, league, make_game
):
    a, b, c, d = league["teams"]
    game = make_game(a, b, event_id=league["event"])
    preview = client.post("/api/scheduler/auto/preview", json=payload(league["event"])).json()
    cell = preview["scheduled"][0]

    # Another director takes the previewed cell with a game outside this event
    other = make_game(c, d)
    taken = client.put(
        f"/api/schedule/games/{other.id}/placement",
        json={"court_id": cell["court_id"], "scheduled_at": cell["scheduled_at"]},
    )
    assert taken.status_code == 200

    body = payload(league["event"])
    body["previewed"] = preview["scheduled"]
    data = client.post("/api/scheduler/auto/apply", json=body).json()

    assert data["committed_count"] == 1
    assert data["rejected_games"] == []
    assert data["diverged_from_preview"] is True
    assert data["changed_from_preview"] == [
        {
            "game_id": game.id,
            "change": "MOVED",
            "previewed_court_id": cell["court_id"],
            "previewed_start": "2025-03-01T08:00:00",
            "court_id": cell["court_id"],
            "scheduled_at": "2025-03-01T09:00:00",
        }
    ]
