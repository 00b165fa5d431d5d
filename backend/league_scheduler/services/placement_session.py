"""
Interactive Placement Session: drag-and-drop against the Schedule Mutator.

The board is the operator's local view. A drop is applied to the board at
once (optimistic), then sent to the backend:

- accepted: the board takes the canonical game the backend returned
- rejected: the board is restored to its pre-drop snapshot and the reason
  is kept in last_error for display

A board never keeps a placement the backend refused. The session holds no
lock across requests; all legality is decided by the mutator at commit.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import requests
from sqlmodel import Session

from league_scheduler.exceptions import (
    PlacementRejectedError,
    ResourceNotFoundError,
    SchedulingConfigurationError,
    SchedulingError,
)
from league_scheduler.models.game import Game
from league_scheduler.services.constraint_evaluator import ReasonCode, Violation
from league_scheduler.services.schedule_mutator import place_game, unschedule_game

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardGame:
    """A game card as the board shows it."""

    id: int
    home_team_id: int
    away_team_id: int
    home_team_name: str = ""
    away_team_name: str = ""
    court_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: int = 60
    schedule_revision: int = 0
    game_type: Optional[str] = None
    division: Optional[str] = None

    @property
    def is_scheduled(self) -> bool:
        return self.court_id is not None and self.scheduled_at is not None

    @classmethod
    def from_game(cls, game: Game) -> "BoardGame":
        return cls(
            id=game.id,
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            home_team_name=game.home_team.name if game.home_team else "",
            away_team_name=game.away_team.name if game.away_team else "",
            court_id=game.court_id,
            scheduled_at=game.scheduled_at,
            duration_minutes=game.duration_minutes,
            schedule_revision=game.schedule_revision,
            game_type=game.game_type,
            division=game.division,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardGame":
        """Parse a game summary as returned by the schedule API."""
        home = data.get("home_team") or {}
        away = data.get("away_team") or {}
        scheduled_at = data.get("scheduled_at")
        return cls(
            id=data["id"],
            home_team_id=home.get("id"),
            away_team_id=away.get("id"),
            home_team_name=home.get("name", ""),
            away_team_name=away.get("name", ""),
            court_id=data.get("court_id"),
            scheduled_at=datetime.fromisoformat(scheduled_at) if scheduled_at else None,
            duration_minutes=data.get("duration_minutes", 60),
            schedule_revision=data.get("schedule_revision", 0),
            game_type=data.get("game_type"),
            division=data.get("division"),
        )


@dataclass
class PlacementOutcome:
    accepted: bool
    game: Optional[BoardGame] = None
    reason_code: Optional[str] = None
    message: Optional[str] = None
    refresh_required: bool = False


@dataclass
class ScheduleBoard:
    unscheduled: Dict[int, BoardGame] = field(default_factory=dict)
    scheduled: Dict[int, BoardGame] = field(default_factory=dict)
    last_error: Optional[PlacementOutcome] = None

    @classmethod
    def from_games(cls, games: List[BoardGame]) -> "ScheduleBoard":
        board = cls()
        for game in games:
            board.put(game)
        return board

    def find(self, game_id: int) -> Optional[BoardGame]:
        return self.scheduled.get(game_id) or self.unscheduled.get(game_id)

    def put(self, game: BoardGame) -> None:
        self.unscheduled.pop(game.id, None)
        self.scheduled.pop(game.id, None)
        if game.is_scheduled:
            self.scheduled[game.id] = game
        else:
            self.unscheduled[game.id] = game

    def cell(self, court_id: int, start: datetime) -> List[BoardGame]:
        """Games shown starting in a (court, start) cell."""
        return [g for g in self.scheduled.values() if g.court_id == court_id and g.scheduled_at == start]

    def snapshot(self) -> Tuple[Dict[int, BoardGame], Dict[int, BoardGame]]:
        return dict(self.unscheduled), dict(self.scheduled)

    def restore(self, snapshot: Tuple[Dict[int, BoardGame], Dict[int, BoardGame]]) -> None:
        self.unscheduled, self.scheduled = dict(snapshot[0]), dict(snapshot[1])


class ScheduleBackend(Protocol):
    def place(self, game_id: int, court_id: int, start: datetime, expected_revision: Optional[int]) -> BoardGame:
        ...

    def unschedule(self, game_id: int, expected_revision: Optional[int]) -> BoardGame:
        ...


class PlacementSession:
    """One operator's drag-and-drop session over a ScheduleBoard."""

    def __init__(self, board: ScheduleBoard, backend: ScheduleBackend):
        self.board = board
        self.backend = backend

    def move(self, game_id: int, court_id: int, start: datetime) -> PlacementOutcome:
        """Drop a game onto a (court, start) cell."""
        current = self.board.find(game_id)
        if current is None:
            raise ResourceNotFoundError("Game", game_id)

        snapshot = self.board.snapshot()
        self.board.put(replace(current, court_id=court_id, scheduled_at=start))
        return self._commit(
            snapshot, lambda: self.backend.place(game_id, court_id, start, current.schedule_revision)
        )

    def remove(self, game_id: int) -> PlacementOutcome:
        """Drag a game back to the unscheduled list."""
        current = self.board.find(game_id)
        if current is None:
            raise ResourceNotFoundError("Game", game_id)

        snapshot = self.board.snapshot()
        self.board.put(replace(current, court_id=None, scheduled_at=None))
        return self._commit(snapshot, lambda: self.backend.unschedule(game_id, current.schedule_revision))

    def _commit(self, snapshot, call: Callable[[], BoardGame]) -> PlacementOutcome:
        try:
            canonical = call()
        except PlacementRejectedError as exc:
            self.board.restore(snapshot)
            outcome = PlacementOutcome(
                accepted=False,
                reason_code=exc.violation.code.value,
                message=exc.violation.message,
                refresh_required=exc.violation.refresh_required,
            )
            self.board.last_error = outcome
            logger.info("Drop reverted: %s", exc.violation.message)
            return outcome
        except Exception:
            # Transport or server failure: the board must not show an unconfirmed move
            self.board.restore(snapshot)
            raise

        self.board.put(canonical)
        self.board.last_error = None
        return PlacementOutcome(accepted=True, game=canonical)


class LocalScheduleBackend:
    """Calls the mutator in-process, one session per request."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def place(self, game_id: int, court_id: int, start: datetime, expected_revision: Optional[int]) -> BoardGame:
        with self.session_factory() as session:
            game = place_game(session, game_id, court_id, start, expected_revision=expected_revision)
            return BoardGame.from_game(game)

    def unschedule(self, game_id: int, expected_revision: Optional[int]) -> BoardGame:
        with self.session_factory() as session:
            game = unschedule_game(session, game_id, expected_revision=expected_revision)
            return BoardGame.from_game(game)


class HttpScheduleBackend:
    """Talks to the placement endpoints over HTTP."""

    def __init__(self, http: Optional[Any] = None, base_url: str = ""):
        self.http = http or requests.Session()
        self.base_url = base_url.rstrip("/")

    def _url(self, game_id: int) -> str:
        return f"{self.base_url}/api/schedule/games/{game_id}/placement"

    def place(self, game_id: int, court_id: int, start: datetime, expected_revision: Optional[int]) -> BoardGame:
        payload = {
            "court_id": court_id,
            "scheduled_at": start.isoformat(),
            "expected_revision": expected_revision,
        }
        response = self.http.put(self._url(game_id), json=payload)
        return self._parse(response, game_id)

    def unschedule(self, game_id: int, expected_revision: Optional[int]) -> BoardGame:
        params = {"expected_revision": expected_revision} if expected_revision is not None else None
        response = self.http.delete(self._url(game_id), params=params)
        return self._parse(response, game_id)

    def _parse(self, response, game_id: int) -> BoardGame:
        if response.status_code == 200:
            return BoardGame.from_dict(response.json()["game"])

        detail = response.json().get("detail")
        if response.status_code == 409 and isinstance(detail, dict):
            raise PlacementRejectedError(
                Violation(
                    code=ReasonCode(detail["reason_code"]),
                    message=detail.get("message", ""),
                    court_id=detail.get("court_id"),
                    team_id=detail.get("team_id"),
                    conflicting_game_id=detail.get("conflicting_game_id"),
                    refresh_required=detail.get("refresh_required", False),
                )
            )
        if response.status_code == 404:
            raise ResourceNotFoundError("Game", game_id)
        if response.status_code == 400:
            raise SchedulingConfigurationError(str(detail))
        raise SchedulingError(f"Placement request failed with HTTP {response.status_code}: {detail}")
