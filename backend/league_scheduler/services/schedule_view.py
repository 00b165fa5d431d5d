"""
Read model behind the drag-and-drop schedule screen.

One call returns everything the board needs for a day: the unscheduled
list, the games already on the grid, venues with their courts, the events
and divisions for the filters, and the grid time slots.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from league_scheduler.models.court import Court
from league_scheduler.models.event import Event
from league_scheduler.models.game import Game, GameStatus
from league_scheduler.models.venue import Venue
from league_scheduler.services.availability_index import day_bounds
from league_scheduler.utils.courts import natural_sort_key
from league_scheduler.utils.time_slots import TimeSlot, grid_time_slots


@dataclass
class VenueCourts:
    venue: Venue
    courts: List[Court] = field(default_factory=list)


@dataclass
class ScheduleView:
    day: date
    unscheduled_games: List[Game] = field(default_factory=list)
    scheduled_games: List[Game] = field(default_factory=list)
    venues: List[VenueCourts] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    divisions: List[str] = field(default_factory=list)
    time_slots: List[TimeSlot] = field(default_factory=list)


def _game_query(event_id: Optional[int], division: Optional[str]):
    query = (
        select(Game)
        .where(Game.status != GameStatus.CANCELED.value)
        .options(selectinload(Game.home_team), selectinload(Game.away_team), selectinload(Game.court))
    )
    if event_id is not None:
        query = query.where(Game.event_id == event_id)
    if division:
        query = query.where(Game.division == division)
    return query


def get_schedule_view(
    session: Session,
    day: date,
    event_id: Optional[int] = None,
    division: Optional[str] = None,
) -> ScheduleView:
    """Load the board for one day, optionally narrowed to an event and division."""
    start_of_day, end_of_day = day_bounds(day)

    unscheduled = session.exec(
        _game_query(event_id, division).where(col(Game.court_id).is_(None)).order_by(Game.id)
    ).all()

    scheduled = session.exec(
        _game_query(event_id, division)
        .where(col(Game.scheduled_at) >= start_of_day, col(Game.scheduled_at) < end_of_day)
        .order_by(Game.scheduled_at, Game.id)
    ).all()

    venues = session.exec(select(Venue).options(selectinload(Venue.courts))).all()
    venue_courts = [
        VenueCourts(venue=venue, courts=sorted(venue.courts, key=lambda c: (natural_sort_key(c.name), c.id)))
        for venue in sorted(venues, key=lambda v: (natural_sort_key(v.name), v.id))
    ]

    events = session.exec(select(Event).where(Event.is_active == True).order_by(Event.start_date, Event.id)).all()  # noqa: E712

    division_rows = session.exec(select(Game.division).where(col(Game.division).is_not(None)).distinct()).all()
    divisions = sorted({d for d in division_rows if d}, key=natural_sort_key)

    return ScheduleView(
        day=day,
        unscheduled_games=list(unscheduled),
        scheduled_games=list(scheduled),
        venues=venue_courts,
        events=list(events),
        divisions=divisions,
        time_slots=grid_time_slots(day),
    )
