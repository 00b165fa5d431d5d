from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.game import Game


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str  # Team name (required in practice)
    created_at: NaiveDatetime = Field(default_factory=datetime.utcnow, sa_type=DateTime(timezone=False))

    # Relationships
    home_games: List["Game"] = Relationship(
        back_populates="home_team", sa_relationship_kwargs={"foreign_keys": "Game.home_team_id"}
    )
    away_games: List["Game"] = Relationship(
        back_populates="away_team", sa_relationship_kwargs={"foreign_keys": "Game.away_team_id"}
    )
