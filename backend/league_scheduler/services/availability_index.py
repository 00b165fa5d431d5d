"""
Availability Index - read-only view of who is booked where on one day.

Two lookups are kept, both sorted by start time:

- court_id -> intervals booked on that court
- team_id  -> intervals the team plays, across every court (a team can only
  be in one place at a time)

The same structure serves as the planner's provisional index: copy() it and
add provisional bookings as the pass places games.
"""

from bisect import insort
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlmodel import Session, col, select

from league_scheduler.models.court import Court
from league_scheduler.models.game import Game, GameStatus
from league_scheduler.models.team import Team


@dataclass(frozen=True, order=True)
class BookedInterval:
    """One game's half-open [start, end) occupancy."""

    start: datetime
    end: datetime
    game_id: int
    court_id: int = field(compare=False)
    team_ids: Tuple[int, ...] = field(default=(), compare=False)
    label: str = field(default="", compare=False)
    provisional: bool = field(default=False, compare=False)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # [start1, end1) overlaps [start2, end2) if start1 < end2 AND start2 < end1
        return self.start < end and start < self.end

    def to_dict(self) -> Dict:
        return {
            "game_id": self.game_id,
            "court_id": self.court_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
            "provisional": self.provisional,
        }


class AvailabilityIndex:
    """Occupancy of courts and teams for a single day."""

    def __init__(self, day: date):
        self.day = day
        self.court_intervals: Dict[int, List[BookedInterval]] = {}
        self.team_intervals: Dict[int, List[BookedInterval]] = {}
        self.team_names: Dict[int, str] = {}
        self.court_names: Dict[int, str] = {}

    def add_booking(
        self,
        game_id: int,
        court_id: int,
        team_ids: Iterable[int],
        start: datetime,
        end: datetime,
        label: str = "",
        provisional: bool = False,
    ) -> BookedInterval:
        """Record a booking on its court and for each of its teams."""
        teams = tuple(t for t in team_ids if t is not None)
        interval = BookedInterval(
            start=start,
            end=end,
            game_id=game_id,
            court_id=court_id,
            team_ids=teams,
            label=label,
            provisional=provisional,
        )
        insort(self.court_intervals.setdefault(court_id, []), interval)
        for team_id in set(teams):
            insort(self.team_intervals.setdefault(team_id, []), interval)
        return interval

    def for_court(self, court_id: int) -> List[BookedInterval]:
        return self.court_intervals.get(court_id, [])

    def for_team(self, team_id: int) -> List[BookedInterval]:
        return self.team_intervals.get(team_id, [])

    def team_name(self, team_id: int) -> str:
        return self.team_names.get(team_id) or f"Team {team_id}"

    def court_name(self, court_id: int) -> str:
        return self.court_names.get(court_id) or f"Court {court_id}"

    @property
    def is_empty(self) -> bool:
        return not self.court_intervals and not self.team_intervals

    def occupied_cells(self) -> List[Tuple[int, datetime]]:
        """(court_id, start) for every court booking, court then time order."""
        return [
            (court_id, interval.start)
            for court_id in sorted(self.court_intervals)
            for interval in self.court_intervals[court_id]
        ]

    def booked_minutes(self, court_ids: Optional[Set[int]] = None) -> int:
        total = 0
        for court_id, intervals in self.court_intervals.items():
            if court_ids is not None and court_id not in court_ids:
                continue
            total += sum(int((i.end - i.start).total_seconds() // 60) for i in intervals)
        return total

    def copy(self) -> "AvailabilityIndex":
        """Independent copy; intervals are immutable so lists are copied shallowly."""
        clone = AvailabilityIndex(self.day)
        clone.court_intervals = {k: list(v) for k, v in self.court_intervals.items()}
        clone.team_intervals = {k: list(v) for k, v in self.team_intervals.items()}
        clone.team_names = dict(self.team_names)
        clone.court_names = dict(self.court_names)
        return clone


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[midnight, next midnight) for a date."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def build_availability_index(
    session: Session,
    day: date,
    exclude_game_id: Optional[int] = None,
) -> AvailabilityIndex:
    """
    Build the index from every committed game on a day.

    Nothing is filtered by venue, event or division: a court booked by any
    event is unavailable to all of them.

    Rows are always re-read from the database (populate_existing), so a check
    made right before a commit never runs against a stale identity map.

    Args:
        session: Database session
        day: Date to index
        exclude_game_id: Leave this game out entirely (it is being moved)

    Returns:
        AvailabilityIndex; empty if nothing is scheduled that day
    """
    index = AvailabilityIndex(day)
    start_of_day, end_of_day = day_bounds(day)

    rows = session.exec(
        select(Game, Court)
        .join(Court, Game.court_id == Court.id)
        .where(
            col(Game.scheduled_at) >= start_of_day,
            col(Game.scheduled_at) < end_of_day,
            Game.status != GameStatus.CANCELED.value,
        )
        .order_by(Game.scheduled_at, Game.id)
        .execution_options(populate_existing=True)
    ).all()

    if not rows:
        return index

    team_ids = {t for game, _ in rows for t in game.team_ids}
    teams = session.exec(select(Team).where(col(Team.id).in_(team_ids))).all()
    index.team_names.update({team.id: team.name for team in teams})

    for game, court in rows:
        if exclude_game_id is not None and game.id == exclude_game_id:
            continue
        index.court_names[court.id] = court.name
        index.add_booking(
            game_id=game.id,
            court_id=court.id,
            team_ids=game.team_ids,
            start=game.scheduled_at,
            end=game.ends_at,
            label=f"{index.team_name(game.home_team_id)} vs {index.team_name(game.away_team_id)}",
        )

    return index
