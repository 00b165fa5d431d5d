"""
Schedule board endpoints: the day view and single-game placement.
"""

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session

from league_scheduler.database import get_session
from league_scheduler.exceptions import SchedulingError
from league_scheduler.models.game import Game
from league_scheduler.services.schedule_mutator import place_game, unschedule_game
from league_scheduler.services.schedule_view import get_schedule_view
from league_scheduler.utils.time_slots import format_time_label

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class TeamInfo(BaseModel):
    id: int
    name: str


class CourtInfo(BaseModel):
    id: int
    name: str


class VenueInfo(BaseModel):
    id: int
    name: str
    courts: List[CourtInfo]


class EventInfo(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date


class GameSummary(BaseModel):
    id: int
    event_id: Optional[int] = None
    home_team: TeamInfo
    away_team: TeamInfo
    court_id: Optional[int] = None
    court_name: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    time_label: Optional[str] = None
    duration_minutes: int
    schedule_revision: int
    game_type: str
    division: Optional[str] = None
    age_group: Optional[str] = None
    status: str

    @classmethod
    def from_game(cls, game: Game) -> "GameSummary":
        return cls(
            id=game.id,
            event_id=game.event_id,
            home_team=TeamInfo(id=game.home_team_id, name=game.home_team.name if game.home_team else ""),
            away_team=TeamInfo(id=game.away_team_id, name=game.away_team.name if game.away_team else ""),
            court_id=game.court_id,
            court_name=game.court.name if game.court else None,
            scheduled_at=game.scheduled_at,
            ends_at=game.ends_at,
            time_label=(
                format_time_label(game.scheduled_at.hour, game.scheduled_at.minute) if game.scheduled_at else None
            ),
            duration_minutes=game.duration_minutes,
            schedule_revision=game.schedule_revision,
            game_type=game.game_type,
            division=game.division,
            age_group=game.age_group,
            status=game.status,
        )


class GridTimeSlot(BaseModel):
    hour: int
    minute: int
    label: str
    starts_at: datetime


class ScheduleViewResponse(BaseModel):
    day: date
    unscheduled_games: List[GameSummary]
    scheduled_games: List[GameSummary]
    venues: List[VenueInfo]
    events: List[EventInfo]
    divisions: List[str]
    time_slots: List[GridTimeSlot]


class PlaceGameRequest(BaseModel):
    """court_id=None returns the game to the unscheduled list."""

    model_config = ConfigDict(extra="forbid")

    court_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    min_rest_minutes: Optional[int] = None
    expected_revision: Optional[int] = None

    @field_validator("scheduled_at")
    @classmethod
    def validate_local_time(cls, v):
        if v is not None and v.tzinfo is not None:
            raise ValueError("scheduled_at must be a local time without a timezone offset")
        return v

    @model_validator(mode="after")
    def validate_placement(self):
        if self.court_id is not None and self.scheduled_at is None:
            raise ValueError("scheduled_at is required when court_id is set")
        return self


class PlacementResponse(BaseModel):
    game: GameSummary


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/schedule", response_model=ScheduleViewResponse)
def read_schedule(
    day: date = Query(..., alias="date"),
    event_id: Optional[int] = Query(None),
    division: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Everything the board shows for one day."""
    view = get_schedule_view(session, day, event_id=event_id, division=division)
    return ScheduleViewResponse(
        day=view.day,
        unscheduled_games=[GameSummary.from_game(g) for g in view.unscheduled_games],
        scheduled_games=[GameSummary.from_game(g) for g in view.scheduled_games],
        venues=[
            VenueInfo(
                id=vc.venue.id,
                name=vc.venue.name,
                courts=[CourtInfo(id=c.id, name=c.name) for c in vc.courts],
            )
            for vc in view.venues
        ],
        events=[EventInfo(id=e.id, name=e.name, start_date=e.start_date, end_date=e.end_date) for e in view.events],
        divisions=view.divisions,
        time_slots=[GridTimeSlot(**slot.to_dict()) for slot in view.time_slots],
    )


@router.put("/schedule/games/{game_id}/placement", response_model=PlacementResponse)
def put_game_placement(game_id: int, request: PlaceGameRequest, session: Session = Depends(get_session)):
    """
    Place or move a game.

    409 detail: {reason_code, message, court_id, team_id, conflicting_game_id,
    refresh_required}. Nothing is written on a 409.
    """
    try:
        if request.court_id is None:
            game = unschedule_game(session, game_id, expected_revision=request.expected_revision)
        else:
            game = place_game(
                session,
                game_id,
                request.court_id,
                request.scheduled_at,
                duration_minutes=request.duration_minutes,
                min_rest_minutes=request.min_rest_minutes,
                expected_revision=request.expected_revision,
            )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return PlacementResponse(game=GameSummary.from_game(game))


@router.delete("/schedule/games/{game_id}/placement", response_model=PlacementResponse)
def delete_game_placement(
    game_id: int,
    expected_revision: Optional[int] = Query(None),
    session: Session = Depends(get_session),
):
    """Return a game to the unscheduled list. Never deletes the game."""
    try:
        game = unschedule_game(session, game_id, expected_revision=expected_revision)
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return PlacementResponse(game=GameSummary.from_game(game))
