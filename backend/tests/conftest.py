import os

# Point the app's own engine at memory before anything imports league_scheduler.config
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from league_scheduler.database import get_session  # noqa: E402
from league_scheduler.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"
GAME_DAY = date(2025, 3, 1)

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped after every test so each test starts empty
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    import league_scheduler.models  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def session_factory():
    """Independent sessions on the test database (a second operator)."""
    return lambda: Session(test_engine)


@pytest.fixture
def league(session: Session):
    """
    One event on GAME_DAY with one venue and two courts, plus four teams.

    Returns a dict of ids: event, venue, courts (natural order), teams.
    """
    from league_scheduler.models import Court, Event, EventVenueLink, Team, Venue

    venue = Venue(name="Main Gym")
    session.add(venue)
    session.commit()
    session.refresh(venue)

    # Inserted out of order on purpose; natural order is Court 1, Court 2
    court_2 = Court(venue_id=venue.id, name="Court 2")
    court_1 = Court(venue_id=venue.id, name="Court 1")
    session.add(court_2)
    session.add(court_1)

    event = Event(name="Spring Classic", start_date=GAME_DAY, end_date=date(2025, 3, 2))
    session.add(event)
    session.commit()
    session.refresh(event)
    session.refresh(court_1)
    session.refresh(court_2)

    session.add(EventVenueLink(event_id=event.id, venue_id=venue.id))

    teams = [Team(name=name) for name in ("Team A", "Team B", "Team C", "Team D")]
    for team in teams:
        session.add(team)
    session.commit()
    for team in teams:
        session.refresh(team)

    return {
        "event": event.id,
        "venue": venue.id,
        "courts": [court_1.id, court_2.id],
        "teams": [team.id for team in teams],
    }


@pytest.fixture
def make_game(session: Session):
    """Factory for games; pass court_id + scheduled_at for a placed game."""
    from league_scheduler.models import Game

    def _make(home_team_id, away_team_id, **kwargs):
        game = Game(home_team_id=home_team_id, away_team_id=away_team_id, **kwargs)
        session.add(game)
        session.commit()
        session.refresh(game)
        return game

    return _make
