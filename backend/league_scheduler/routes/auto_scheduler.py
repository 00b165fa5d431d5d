"""
Auto-scheduler endpoints: PREVIEW (no writes) and APPLY.

Both run the same planner. APPLY plans again from fresh data and commits
each placement through the mutator. APPLY must name the preview it confirms
(its fingerprint, its scheduled list, or both); games that land somewhere
else come back in changed_from_preview.
"""

from datetime import date, datetime, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from league_scheduler.config import (
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    DEFAULT_GAME_DURATION_MINUTES,
    DEFAULT_MIN_REST_MINUTES,
)
from league_scheduler.database import get_session
from league_scheduler.exceptions import SchedulingError
from league_scheduler.services.assignment_planner import (
    PreviewedPlacement,
    SchedulingConfiguration,
    apply_auto_schedule,
    preview_auto_schedule,
)

router = APIRouter()


class SchedulerSettingsPayload(BaseModel):
    start_time: time = DEFAULT_DAY_START
    end_time: time = DEFAULT_DAY_END
    game_duration: int = DEFAULT_GAME_DURATION_MINUTES
    min_rest_minutes: int = DEFAULT_MIN_REST_MINUTES


class PreviewedPlacementIn(BaseModel):
    """A scheduled entry from the preview response; extra keys are ignored."""

    game_id: int
    court_id: int
    scheduled_at: datetime

    @field_validator("scheduled_at")
    @classmethod
    def validate_local_time(cls, v):
        if v.tzinfo is not None:
            raise ValueError("scheduled_at must be a local time without a timezone offset")
        return v


class AutoScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: Optional[int] = None
    schedule_date: Optional[date] = Field(default=None, alias="date")
    settings: SchedulerSettingsPayload = Field(default_factory=SchedulerSettingsPayload)
    expected_fingerprint: Optional[str] = None
    # APPLY only: the preview being confirmed (fingerprint, placements, or both)
    previewed: Optional[List[PreviewedPlacementIn]] = None

    @field_validator("schedule_date", mode="before")
    @classmethod
    def date_only(cls, v):
        # Accept "2025-03-01T00:00:00" from date pickers; keep the date part
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        if isinstance(v, datetime):
            return v.date()
        return v

    def to_configuration(self) -> SchedulingConfiguration:
        return SchedulingConfiguration(
            day=self.schedule_date,
            start_time=self.settings.start_time,
            end_time=self.settings.end_time,
            game_duration_minutes=self.settings.game_duration,
            min_rest_minutes=self.settings.min_rest_minutes,
        )

    def previewed_placements(self) -> Optional[List[PreviewedPlacement]]:
        if self.previewed is None:
            return None
        return [
            PreviewedPlacement(game_id=p.game_id, court_id=p.court_id, start=p.scheduled_at)
            for p in self.previewed
        ]


class ScheduledGameOut(BaseModel):
    game_id: int
    court_id: int
    court_name: str
    venue_name: str
    scheduled_at: datetime
    ends_at: datetime
    time_slot: str
    home_team: str
    away_team: str
    game_type: str
    division: Optional[str] = None
    age_group: Optional[str] = None


class UnscheduledGameOut(BaseModel):
    game_id: int
    home_team: str
    away_team: str
    game_type: str
    reason_code: str
    reason: str
    team_id: Optional[int] = None
    conflicting_game_id: Optional[int] = None


class StatsOut(BaseModel):
    total_games: int
    scheduled_count: int
    unscheduled_count: int
    utilization_percent: int


class PreviewResponse(BaseModel):
    scheduled: List[ScheduledGameOut]
    unscheduled: List[UnscheduledGameOut]
    stats: StatsOut
    fingerprint: str


class CommittedOut(BaseModel):
    game_id: int
    court_id: int
    scheduled_at: datetime
    duration_minutes: int


class RejectedOut(BaseModel):
    game_id: int
    court_id: int
    scheduled_at: datetime
    reason_code: str
    message: str
    team_id: Optional[int] = None
    conflicting_game_id: Optional[int] = None
    refresh_required: bool


class ChangedOut(BaseModel):
    game_id: int
    change: str
    previewed_court_id: Optional[int] = None
    previewed_start: Optional[datetime] = None
    court_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None


class ApplyResponse(BaseModel):
    committed_count: int
    committed: List[CommittedOut]
    rejected_games: List[RejectedOut]
    changed_from_preview: List[ChangedOut]
    unscheduled: List[UnscheduledGameOut]
    stats: StatsOut
    fingerprint: str
    diverged_from_preview: bool


@router.post("/scheduler/auto/preview", response_model=PreviewResponse)
def preview(request: AutoScheduleRequest, session: Session = Depends(get_session)):
    """Plan unscheduled games for one event and day. Writes nothing."""
    try:
        result = preview_auto_schedule(session, request.event_id, request.to_configuration())
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return result.to_dict()


@router.post("/scheduler/auto/apply", response_model=ApplyResponse)
def apply(request: AutoScheduleRequest, session: Session = Depends(get_session)):
    """
    Plan and commit. Partial commits are reported, never rolled back.

    Send expected_fingerprint and/or previewed (the preview's scheduled list);
    without either the request is rejected with 400.
    """
    try:
        result = apply_auto_schedule(
            session,
            request.event_id,
            request.to_configuration(),
            expected_fingerprint=request.expected_fingerprint,
            previewed=request.previewed_placements(),
        )
    except SchedulingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return result.to_dict()
