"""
Constraint Evaluator - is (game, court, start, duration) a legal placement?

Rules are checked in order and the first one violated is reported:

1. **WINDOW**: the game must start and end inside the scheduling window.
   Ending exactly at window end is legal.
2. **COURT_CONFLICT**: [start, end) must not overlap another booking on
   the same court. Back-to-back games are legal.
3. **TEAM_DOUBLE_BOOKED**: neither team may be playing anywhere else
   during [start, end), regardless of court or rest setting.
4. **TEAM_REST**: the gap to each team's other games that day, before and
   after, must be at least min_rest_minutes.

The evaluator never touches storage. It only reads the AvailabilityIndex it
is handed, which may be the committed index or a planner's provisional one.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from league_scheduler.services.availability_index import AvailabilityIndex, BookedInterval


class ReasonCode(str, Enum):
    WINDOW = "WINDOW"
    COURT_CONFLICT = "COURT_CONFLICT"
    TEAM_REST = "TEAM_REST"
    TEAM_DOUBLE_BOOKED = "TEAM_DOUBLE_BOOKED"
    # Commit lost a race on the same game (moved or removed by someone else)
    GAME_MODIFIED = "GAME_MODIFIED"
    # Database refused the write (locked, connection lost); nothing was stored
    WRITE_FAILED = "WRITE_FAILED"


@dataclass(frozen=True)
class ScheduleWindow:
    """Start/end bound for placements on one day."""

    day: date
    start_time: time
    end_time: time

    @property
    def opens_at(self) -> datetime:
        return datetime.combine(self.day, self.start_time)

    @property
    def closes_at(self) -> datetime:
        return datetime.combine(self.day, self.end_time)

    @property
    def length_minutes(self) -> int:
        return max(0, int((self.closes_at - self.opens_at).total_seconds() // 60))

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.opens_at <= start and end <= self.closes_at


@dataclass
class Violation:
    """Why a placement is illegal, with enough context to explain it."""

    code: ReasonCode
    message: str
    court_id: Optional[int] = None
    team_id: Optional[int] = None
    conflicting_game_id: Optional[int] = None
    start: Optional[datetime] = None
    refresh_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason_code": self.code.value,
            "message": self.message,
            "court_id": self.court_id,
            "team_id": self.team_id,
            "conflicting_game_id": self.conflicting_game_id,
            "start": self.start.isoformat() if self.start else None,
            "refresh_required": self.refresh_required,
        }


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def _others(intervals: Iterable[BookedInterval], game_id: Optional[int]) -> Iterable[BookedInterval]:
    """Skip the game's own booking so a move is checked against everyone else."""
    for interval in intervals:
        if game_id is not None and interval.game_id == game_id:
            continue
        yield interval


def check_window(start: datetime, end: datetime, window: ScheduleWindow, court_id: Optional[int] = None) -> Optional[Violation]:
    if window.contains(start, end):
        return None
    return Violation(
        code=ReasonCode.WINDOW,
        message=(
            f"Game from {start:%H:%M} to {end:%H:%M} on {start:%Y-%m-%d} is outside the scheduling window "
            f"{window.opens_at:%H:%M}-{window.closes_at:%H:%M} on {window.day.isoformat()}"
        ),
        court_id=court_id,
        start=start,
    )


def check_court_conflict(
    game_id: Optional[int],
    court_id: int,
    start: datetime,
    end: datetime,
    index: AvailabilityIndex,
    court_name: Optional[str] = None,
) -> Optional[Violation]:
    for existing in _others(index.for_court(court_id), game_id):
        if existing.start >= end:
            # Sorted by start: nothing later can overlap
            break
        if existing.overlaps(start, end):
            name = court_name or index.court_name(court_id)
            return Violation(
                code=ReasonCode.COURT_CONFLICT,
                message=(
                    f"{name} is already booked from {existing.start:%H:%M} to {existing.end:%H:%M}"
                    + (f" ({existing.label})" if existing.label else "")
                ),
                court_id=court_id,
                conflicting_game_id=existing.game_id,
                start=start,
            )
    return None


def check_team_double_booking(
    game_id: Optional[int],
    team_ids: Iterable[int],
    start: datetime,
    end: datetime,
    index: AvailabilityIndex,
    court_id: Optional[int] = None,
) -> Optional[Violation]:
    for team_id in team_ids:
        for existing in _others(index.for_team(team_id), game_id):
            if existing.overlaps(start, end):
                return Violation(
                    code=ReasonCode.TEAM_DOUBLE_BOOKED,
                    message=(
                        f"{index.team_name(team_id)} is already playing from {existing.start:%H:%M} "
                        f"to {existing.end:%H:%M} on {index.court_name(existing.court_id)}"
                    ),
                    court_id=court_id,
                    team_id=team_id,
                    conflicting_game_id=existing.game_id,
                    start=start,
                )
    return None


def check_team_rest(
    game_id: Optional[int],
    team_ids: Iterable[int],
    start: datetime,
    end: datetime,
    index: AvailabilityIndex,
    min_rest_minutes: int,
    court_id: Optional[int] = None,
) -> Optional[Violation]:
    """Assumes no overlaps remain (double-booking is checked first)."""
    if min_rest_minutes <= 0:
        return None
    for team_id in team_ids:
        for existing in _others(index.for_team(team_id), game_id):
            if start >= existing.end:
                # New game starts after existing game ends
                gap = _minutes(start - existing.end)
            elif end <= existing.start:
                # New game ends before existing game starts
                gap = _minutes(existing.start - end)
            else:
                continue
            if gap < min_rest_minutes:
                return Violation(
                    code=ReasonCode.TEAM_REST,
                    message=(
                        f"{index.team_name(team_id)} would have only {gap} minutes rest next to the "
                        f"{existing.start:%H:%M} game (minimum {min_rest_minutes})"
                    ),
                    court_id=court_id,
                    team_id=team_id,
                    conflicting_game_id=existing.game_id,
                    start=start,
                )
    return None


def check_placement(
    game: Any,
    court_id: int,
    start: datetime,
    duration_minutes: int,
    index: AvailabilityIndex,
    window: ScheduleWindow,
    min_rest_minutes: int,
    court_name: Optional[str] = None,
) -> Tuple[bool, Optional[Violation]]:
    """
    Decide whether placing a game at (court, start) is legal.

    Args:
        game: Anything with id, home_team_id and away_team_id (Game or GameRef)
        court_id: Target court
        start: Proposed start
        duration_minutes: Game length
        index: Committed or provisional availability index
        window: Scheduling window for the day
        min_rest_minutes: Required gap between a team's games
        court_name: Display name for messages

    Returns:
        (is_legal, violation_if_not)
    """
    end = start + timedelta(minutes=duration_minutes)
    team_ids = [t for t in (game.home_team_id, game.away_team_id) if t is not None]

    violation = (
        check_window(start, end, window, court_id)
        or check_court_conflict(game.id, court_id, start, end, index, court_name)
        or check_team_double_booking(game.id, team_ids, start, end, index, court_id)
        or check_team_rest(game.id, team_ids, start, end, index, min_rest_minutes, court_id)
    )
    if violation is not None:
        return False, violation
    return True, None
