from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from league_scheduler.models.event_venue_link import EventVenueLink

if TYPE_CHECKING:
    from league_scheduler.models.game import Game
    from league_scheduler.models.venue import Venue


class Event(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    start_date: date
    end_date: date
    is_active: bool = Field(default=True)
    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow, sa_type=DateTime(timezone=False))

    # Relationships
    venues: List["Venue"] = Relationship(back_populates="events", link_model=EventVenueLink)
    games: List["Game"] = Relationship(back_populates="event")

    def covers(self, day: date) -> bool:
        """True if the day falls inside the event's date range (inclusive)."""
        return self.start_date <= day <= self.end_date
