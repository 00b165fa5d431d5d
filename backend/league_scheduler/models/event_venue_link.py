from sqlmodel import Field, SQLModel


class EventVenueLink(SQLModel, table=True):
    """Venues an event plays at. Auto-scheduling only uses these venues' courts."""

    __tablename__ = "event_venue_link"

    event_id: int = Field(foreign_key="event.id", primary_key=True)
    venue_id: int = Field(foreign_key="venue.id", primary_key=True)
