from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from league_scheduler.models.event_venue_link import EventVenueLink

if TYPE_CHECKING:
    from league_scheduler.models.court import Court
    from league_scheduler.models.event import Event


class Venue(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    address: Optional[str] = None
    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow, sa_type=DateTime(timezone=False))

    # Relationships
    courts: List["Court"] = Relationship(back_populates="venue")
    events: List["Event"] = Relationship(back_populates="venues", link_model=EventVenueLink)
