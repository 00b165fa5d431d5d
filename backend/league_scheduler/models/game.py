from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pydantic import NaiveDatetime
from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.court import Court
    from league_scheduler.models.event import Event
    from league_scheduler.models.team import Team


class GameType(str, Enum):
    POOL = "POOL"
    BRACKET = "BRACKET"
    CONSOLATION = "CONSOLATION"
    CHAMPIONSHIP = "CHAMPIONSHIP"
    EXHIBITION = "EXHIBITION"


class GameStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    FINAL = "FINAL"
    CANCELED = "CANCELED"


class Game(SQLModel, table=True):
    __table_args__ = (
        # A placement is both fields or neither
        CheckConstraint(
            "(court_id IS NULL AND scheduled_at IS NULL) OR (court_id IS NOT NULL AND scheduled_at IS NOT NULL)",
            name="ck_game_placement_pair",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: Optional[int] = Field(default=None, foreign_key="event.id", index=True)
    home_team_id: int = Field(foreign_key="team.id", index=True)
    away_team_id: int = Field(foreign_key="team.id", index=True)

    # Placement (written only by the schedule mutator)
    scheduled_at: Optional[NaiveDatetime] = Field(default=None, index=True, sa_type=DateTime(timezone=False))
    court_id: Optional[int] = Field(default=None, foreign_key="court.id", index=True)
    duration_minutes: int = Field(default=60)
    schedule_revision: int = Field(default=0)  # Bumped on every placement write

    # Classification (filters / planner hints only)
    division: Optional[str] = Field(default=None, index=True)
    age_group: Optional[str] = Field(default=None)
    game_type: str = Field(default=GameType.POOL.value)  # GameType value
    bracket_round: Optional[int] = Field(default=None)
    bracket_position: Optional[int] = Field(default=None)

    status: str = Field(default=GameStatus.SCHEDULED.value)  # GameStatus value
    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow, sa_type=DateTime(timezone=False))

    # Relationships
    event: Optional["Event"] = Relationship(back_populates="games")
    court: Optional["Court"] = Relationship()
    home_team: "Team" = Relationship(
        back_populates="home_games", sa_relationship_kwargs={"foreign_keys": "Game.home_team_id"}
    )
    away_team: "Team" = Relationship(
        back_populates="away_games", sa_relationship_kwargs={"foreign_keys": "Game.away_team_id"}
    )

    @property
    def is_scheduled(self) -> bool:
        return self.court_id is not None and self.scheduled_at is not None

    @property
    def ends_at(self) -> Optional[datetime]:
        if self.scheduled_at is None:
            return None
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def team_ids(self) -> List[int]:
        return [self.home_team_id, self.away_team_id]
