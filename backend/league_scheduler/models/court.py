from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.venue import Venue


class Court(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("venue_id", "name", name="uq_venue_court_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    venue_id: int = Field(foreign_key="venue.id", index=True)
    name: str  # Display label, e.g. "Court 1"

    # Relationships (games reference courts; courts do not own games)
    venue: "Venue" = Relationship(back_populates="courts")
