"""
Schedule Mutator: the only writer of Game.scheduled_at / Game.court_id.

Every write is one game, one transaction:

1. Load the game and court fresh (row-locked where the database supports it)
2. Rebuild the AvailabilityIndex from the database, never from a cached copy
3. Run the Constraint Evaluator; on violation write nothing
4. Conditional write: UPDATE ... WHERE id = :id AND schedule_revision = :seen
   Zero rows updated means someone else changed the game first.

Two operators racing for the same cell therefore serialize as "first commit
wins, the other is rejected with a reason". No lock is held across requests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from league_scheduler.config import DEFAULT_DAY_END, DEFAULT_DAY_START, DEFAULT_MIN_REST_MINUTES
from league_scheduler.exceptions import (
    PlacementRejectedError,
    ResourceNotFoundError,
    SchedulingConfigurationError,
    SchedulingError,
)
from league_scheduler.models.court import Court
from league_scheduler.models.game import Game, GameStatus
from league_scheduler.models.team import Team
from league_scheduler.services.availability_index import build_availability_index
from league_scheduler.services.constraint_evaluator import (
    ReasonCode,
    ScheduleWindow,
    Violation,
    check_placement,
)

if TYPE_CHECKING:
    from league_scheduler.services.assignment_planner import ProposedPlacement, SchedulingConfiguration

logger = logging.getLogger(__name__)


@dataclass
class CommittedPlacement:
    game_id: int
    court_id: int
    scheduled_at: datetime
    duration_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "court_id": self.court_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "duration_minutes": self.duration_minutes,
        }


@dataclass
class RejectedPlacement:
    game_id: int
    court_id: int
    scheduled_at: datetime
    violation: Violation

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.violation.to_dict(),
            "game_id": self.game_id,
            "court_id": self.court_id,
            "scheduled_at": self.scheduled_at.isoformat(),
        }


def _game_modified(game_id: int, court_id: Optional[int] = None, start: Optional[datetime] = None) -> Violation:
    return Violation(
        code=ReasonCode.GAME_MODIFIED,
        message=f"Game {game_id} was changed by another operator. Refresh the schedule and try again.",
        court_id=court_id,
        start=start,
        refresh_required=True,
    )


def _load_game(session: Session, game_id: int) -> Game:
    game = session.get(Game, game_id, populate_existing=True, with_for_update=True)
    if not game:
        raise ResourceNotFoundError("Game", game_id)
    return game


def _lock_teams(session: Session, team_ids: List[int]) -> Dict[int, str]:
    """Lock both teams' rows (ascending id) and return their names."""
    teams = session.exec(
        select(Team).where(col(Team.id).in_(team_ids)).order_by(Team.id).with_for_update()
    ).all()
    return {team.id: team.name for team in teams}


def _conditional_write(session: Session, game: Game, seen_revision: int, **values: Any) -> bool:
    result = session.exec(
        update(Game)
        .where(col(Game.id) == game.id, col(Game.schedule_revision) == seen_revision)
        .values(schedule_revision=seen_revision + 1, **values)
    )
    return result.rowcount == 1


def place_game(
    session: Session,
    game_id: int,
    court_id: int,
    start: datetime,
    duration_minutes: Optional[int] = None,
    window: Optional[ScheduleWindow] = None,
    min_rest_minutes: Optional[int] = None,
    expected_revision: Optional[int] = None,
) -> Game:
    """
    Place (or move) a game onto a court at a start time.

    Args:
        session: Database session
        game_id: Game to place
        court_id: Target court
        start: Start time (naive local time)
        duration_minutes: Defaults to the game's stored duration
        window: Defaults to the configured day window on start's date
        min_rest_minutes: Defaults to the configured minimum rest
        expected_revision: schedule_revision the caller last saw; a mismatch
            means the caller's view is stale

    Returns:
        The updated Game

    Raises:
        ResourceNotFoundError: Unknown game or court
        SchedulingConfigurationError: Bad input or canceled game
        PlacementRejectedError: Illegal placement or lost race; nothing written
    """
    if start is None:
        raise SchedulingConfigurationError("Start time is required to place a game")
    if start.tzinfo is not None:
        raise SchedulingConfigurationError("Start time must be a local time without a timezone offset")

    game = _load_game(session, game_id)
    court = session.get(Court, court_id, with_for_update=True)
    if not court:
        raise ResourceNotFoundError("Court", court_id)
    if game.status == GameStatus.CANCELED.value:
        raise SchedulingConfigurationError(f"Game {game_id} is canceled and cannot be scheduled")

    duration = duration_minutes if duration_minutes is not None else game.duration_minutes
    if duration is None or duration <= 0:
        raise SchedulingConfigurationError("Game duration must be a positive number of minutes")
    rest = DEFAULT_MIN_REST_MINUTES if min_rest_minutes is None else min_rest_minutes
    if rest < 0:
        raise SchedulingConfigurationError("Minimum rest cannot be negative")
    if window is None:
        window = ScheduleWindow(start.date(), DEFAULT_DAY_START, DEFAULT_DAY_END)

    seen_revision = game.schedule_revision
    if expected_revision is not None and expected_revision != seen_revision:
        session.rollback()
        logger.info("Game %d placement rejected: caller saw revision %d, now %d", game_id, expected_revision, seen_revision)
        raise PlacementRejectedError(_game_modified(game_id, court_id, start))

    team_names = _lock_teams(session, game.team_ids)
    index = build_availability_index(session, start.date(), exclude_game_id=game.id)
    index.team_names.update(team_names)

    legal, violation = check_placement(
        game, court.id, start, duration, index, window, rest, court_name=court.name
    )
    if not legal:
        session.rollback()
        logger.info(
            "Game %d placement on court %d at %s rejected: %s", game_id, court_id, start.isoformat(), violation.code.value
        )
        raise PlacementRejectedError(violation)

    if not _conditional_write(
        session, game, seen_revision, court_id=court.id, scheduled_at=start, duration_minutes=duration
    ):
        session.rollback()
        logger.warning("Game %d changed concurrently during placement; write skipped", game_id)
        raise PlacementRejectedError(_game_modified(game_id, court_id, start))

    session.commit()
    session.refresh(game)
    logger.info("Game %d placed on court %d at %s", game_id, court_id, start.isoformat())
    return game


def unschedule_game(session: Session, game_id: int, expected_revision: Optional[int] = None) -> Game:
    """
    Return a game to the unscheduled pool. Always legal; never deletes.

    Unscheduling a game that is already unscheduled is a no-op success.
    """
    game = _load_game(session, game_id)
    if game.court_id is None and game.scheduled_at is None:
        session.rollback()
        return game

    seen_revision = game.schedule_revision
    if expected_revision is not None and expected_revision != seen_revision:
        session.rollback()
        raise PlacementRejectedError(_game_modified(game_id, game.court_id, game.scheduled_at))

    if not _conditional_write(session, game, seen_revision, court_id=None, scheduled_at=None):
        session.rollback()
        current = _load_game(session, game_id)
        if current.court_id is None and current.scheduled_at is None:
            # Someone else already removed it
            session.rollback()
            return current
        raise PlacementRejectedError(_game_modified(game_id, current.court_id, current.scheduled_at))

    session.commit()
    session.refresh(game)
    logger.info("Game %d removed from schedule", game_id)
    return game


def commit_placements(
    session: Session,
    placements: Sequence["ProposedPlacement"],
    config: "SchedulingConfiguration",
) -> Tuple[List[CommittedPlacement], List[RejectedPlacement]]:
    """
    Commit planner placements one at a time, in planner order.

    A rejection never rolls back games committed before it. Every placement
    here was legal when planned, so a rejection is either a race or a failed
    database write (WRITE_FAILED); both are flagged refresh_required.
    """
    committed: List[CommittedPlacement] = []
    rejected: List[RejectedPlacement] = []

    for placement in placements:
        try:
            game = place_game(
                session,
                placement.game.id,
                placement.court.id,
                placement.start,
                duration_minutes=placement.duration_minutes,
                window=config.window,
                min_rest_minutes=config.min_rest_minutes,
                expected_revision=placement.game.schedule_revision,
            )
        except PlacementRejectedError as exc:
            exc.violation.refresh_required = True
            rejected.append(RejectedPlacement(placement.game.id, placement.court.id, placement.start, exc.violation))
            continue
        except SchedulingError as exc:
            # Game deleted, canceled or court removed since planning
            session.rollback()
            rejected.append(
                RejectedPlacement(
                    placement.game.id,
                    placement.court.id,
                    placement.start,
                    Violation(
                        code=ReasonCode.GAME_MODIFIED,
                        message=exc.message,
                        court_id=placement.court.id,
                        start=placement.start,
                        refresh_required=True,
                    ),
                )
            )
            continue
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "Batch commit: write failed for game %d on court %d at %s: %s",
                placement.game.id,
                placement.court.id,
                placement.start.isoformat(),
                exc,
                exc_info=True,
            )
            rejected.append(
                RejectedPlacement(
                    placement.game.id,
                    placement.court.id,
                    placement.start,
                    Violation(
                        code=ReasonCode.WRITE_FAILED,
                        message=f"Could not save game {placement.game.id}; try again",
                        court_id=placement.court.id,
                        start=placement.start,
                        refresh_required=True,
                    ),
                )
            )
            continue

        committed.append(CommittedPlacement(game.id, game.court_id, game.scheduled_at, game.duration_minutes))

    if rejected:
        logger.warning("Batch commit: %d committed, %d rejected at commit time", len(committed), len(rejected))
    else:
        logger.info("Batch commit: %d committed", len(committed))

    return committed, rejected
