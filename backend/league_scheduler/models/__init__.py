from league_scheduler.models.court import Court
from league_scheduler.models.event import Event
from league_scheduler.models.event_venue_link import EventVenueLink
from league_scheduler.models.game import Game, GameStatus, GameType
from league_scheduler.models.team import Team
from league_scheduler.models.venue import Venue

__all__ = [
    "Venue",
    "Court",
    "Event",
    "EventVenueLink",
    "Team",
    "Game",
    "GameType",
    "GameStatus",
]
