"""
Assignment Planner: greedy, deterministic game-to-(court, start) placement.

Algorithm (first-fit, no backtracking):

1. Order games by game-type priority (CHAMPIONSHIP → CONSOLATION → BRACKET →
   POOL → EXHIBITION), then bracket round, bracket position, game id
2. Order courts by venue name → court name (natural) → id
3. For each game scan courts in order and, per court, start times ascending
   from window start in game-duration steps; take the first candidate the
   Constraint Evaluator accepts against the provisional index
4. Games with no legal candidate are reported with the most specific reason
   seen across all candidates

Same inputs → same outputs. PREVIEW and APPLY both call plan_assignments(),
so what the director previews is what APPLY tries to commit; APPLY then
re-validates every placement at commit time and reports any that a
concurrent change made illegal, plus every game committed to a cell other
than the one the preview showed.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, col, select

from league_scheduler.config import (
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    DEFAULT_GAME_DURATION_MINUTES,
    DEFAULT_MIN_REST_MINUTES,
)
from league_scheduler.exceptions import ResourceNotFoundError, SchedulingConfigurationError
from league_scheduler.models.court import Court
from league_scheduler.models.event import Event
from league_scheduler.models.event_venue_link import EventVenueLink
from league_scheduler.models.game import Game, GameStatus, GameType
from league_scheduler.models.team import Team
from league_scheduler.models.venue import Venue
from league_scheduler.services.availability_index import AvailabilityIndex, build_availability_index
from league_scheduler.services.constraint_evaluator import (
    ReasonCode,
    ScheduleWindow,
    Violation,
    check_placement,
)
from league_scheduler.services.schedule_mutator import (
    CommittedPlacement,
    RejectedPlacement,
    commit_placements,
)
from league_scheduler.utils.courts import court_sort_key
from league_scheduler.utils.time_slots import candidate_start_times, format_time_label

logger = logging.getLogger(__name__)

# Higher = scheduled first (harder to move later)
GAME_TYPE_PRIORITY = {
    GameType.CHAMPIONSHIP.value: 5,
    GameType.CONSOLATION.value: 4,
    GameType.BRACKET.value: 3,
    GameType.POOL.value: 2,
    GameType.EXHIBITION.value: 1,
}

# Higher = more actionable explanation for an unscheduled game
REASON_SPECIFICITY = {
    ReasonCode.TEAM_DOUBLE_BOOKED: 4,
    ReasonCode.TEAM_REST: 3,
    ReasonCode.COURT_CONFLICT: 2,
    ReasonCode.WINDOW: 1,
}


# ── Inputs ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GameRef:
    """Storage-free snapshot of a game for planning."""

    id: int
    home_team_id: int
    away_team_id: int
    home_team_name: str = ""
    away_team_name: str = ""
    game_type: str = GameType.POOL.value
    event_id: Optional[int] = None
    division: Optional[str] = None
    age_group: Optional[str] = None
    bracket_round: Optional[int] = None
    bracket_position: Optional[int] = None
    schedule_revision: Optional[int] = None

    @classmethod
    def from_game(cls, game: Game, team_names: Optional[Dict[int, str]] = None) -> "GameRef":
        names = team_names or {}
        return cls(
            id=game.id,
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            home_team_name=names.get(game.home_team_id, ""),
            away_team_name=names.get(game.away_team_id, ""),
            game_type=game.game_type,
            event_id=game.event_id,
            division=game.division,
            age_group=game.age_group,
            bracket_round=game.bracket_round,
            bracket_position=game.bracket_position,
            schedule_revision=game.schedule_revision,
        )

    @property
    def label(self) -> str:
        return f"{self.home_team_name or self.home_team_id} vs {self.away_team_name or self.away_team_id}"


@dataclass(frozen=True)
class CourtRef:
    id: int
    name: str
    venue_id: Optional[int] = None
    venue_name: str = ""

    @classmethod
    def from_court(cls, court: Court, venue: Optional[Venue] = None) -> "CourtRef":
        return cls(id=court.id, name=court.name, venue_id=court.venue_id, venue_name=venue.name if venue else "")


@dataclass(frozen=True)
class SchedulingConfiguration:
    """Per-run planning input. Never persisted."""

    day: Optional[date]
    start_time: time = DEFAULT_DAY_START
    end_time: time = DEFAULT_DAY_END
    game_duration_minutes: int = DEFAULT_GAME_DURATION_MINUTES
    min_rest_minutes: int = DEFAULT_MIN_REST_MINUTES

    def validate(self) -> None:
        """Raise SchedulingConfigurationError before any planning work starts."""
        if self.day is None:
            raise SchedulingConfigurationError("Date is required")
        if self.start_time >= self.end_time:
            raise SchedulingConfigurationError(
                f"Start time {self.start_time:%H:%M} must be before end time {self.end_time:%H:%M}"
            )
        if self.game_duration_minutes <= 0:
            raise SchedulingConfigurationError("Game duration must be a positive number of minutes")
        if self.min_rest_minutes < 0:
            raise SchedulingConfigurationError("Minimum rest cannot be negative")

    @property
    def window(self) -> ScheduleWindow:
        return ScheduleWindow(self.day, self.start_time, self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day.isoformat() if self.day else None,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "game_duration": self.game_duration_minutes,
            "min_rest_minutes": self.min_rest_minutes,
        }


# ── Outputs ────────────────────────────────────────────────────────────


@dataclass
class ProposedPlacement:
    game: GameRef
    court: CourtRef
    start: datetime
    duration_minutes: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def time_label(self) -> str:
        return format_time_label(self.start.hour, self.start.minute)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game.id,
            "court_id": self.court.id,
            "court_name": self.court.name,
            "venue_name": self.court.venue_name or "Unknown Venue",
            "scheduled_at": self.start.isoformat(),
            "ends_at": self.end.isoformat(),
            "time_slot": self.time_label,
            "home_team": self.game.home_team_name,
            "away_team": self.game.away_team_name,
            "game_type": self.game.game_type,
            "division": self.game.division,
            "age_group": self.game.age_group,
        }


@dataclass
class UnscheduledGame:
    game: GameRef
    violation: Violation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game.id,
            "home_team": self.game.home_team_name,
            "away_team": self.game.away_team_name,
            "game_type": self.game.game_type,
            "reason_code": self.violation.code.value,
            "reason": self.violation.message,
            "team_id": self.violation.team_id,
            "conflicting_game_id": self.violation.conflicting_game_id,
        }


@dataclass
class PlacementStats:
    total_games: int = 0
    scheduled_count: int = 0
    unscheduled_count: int = 0
    utilization_percent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_games": self.total_games,
            "scheduled_count": self.scheduled_count,
            "unscheduled_count": self.unscheduled_count,
            "utilization_percent": self.utilization_percent,
        }


@dataclass
class PlacementResult:
    scheduled: List[ProposedPlacement] = field(default_factory=list)
    unscheduled: List[UnscheduledGame] = field(default_factory=list)
    stats: PlacementStats = field(default_factory=PlacementStats)

    def fingerprint(self) -> str:
        """SHA-256 over the canonical plan; equal plans have equal fingerprints."""
        canonical = {
            "scheduled": [[p.game.id, p.court.id, p.start.isoformat(), p.duration_minutes] for p in self.scheduled],
            "unscheduled": [[u.game.id, u.violation.code.value] for u in self.unscheduled],
        }
        canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheduled": [p.to_dict() for p in self.scheduled],
            "unscheduled": [u.to_dict() for u in self.unscheduled],
            "stats": self.stats.to_dict(),
            "fingerprint": self.fingerprint(),
        }


@dataclass(frozen=True)
class PreviewedPlacement:
    """One (game, court, start) the user saw in PREVIEW."""

    game_id: int
    court_id: int
    start: datetime

    @classmethod
    def from_proposed(cls, placement: ProposedPlacement) -> "PreviewedPlacement":
        return cls(game_id=placement.game.id, court_id=placement.court.id, start=placement.start)


class PreviewChange(str, Enum):
    MOVED = "MOVED"  # Committed on a different court or start
    ADDED = "ADDED"  # Committed but not in the preview
    NOT_COMMITTED = "NOT_COMMITTED"  # Previewed but left unscheduled or rejected


@dataclass
class ChangedPlacement:
    game_id: int
    change: PreviewChange
    previewed_court_id: Optional[int] = None
    previewed_start: Optional[datetime] = None
    court_id: Optional[int] = None
    start: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "change": self.change.value,
            "previewed_court_id": self.previewed_court_id,
            "previewed_start": self.previewed_start.isoformat() if self.previewed_start else None,
            "court_id": self.court_id,
            "scheduled_at": self.start.isoformat() if self.start else None,
        }


def compare_with_preview(
    previewed: Sequence[PreviewedPlacement], committed: Sequence[CommittedPlacement]
) -> List[ChangedPlacement]:
    """Every game whose committed cell differs from the previewed one, in game id order."""
    seen = {p.game_id: p for p in previewed}
    done = {c.game_id: c for c in committed}
    changes: List[ChangedPlacement] = []

    for game_id in sorted(set(seen) | set(done)):
        before = seen.get(game_id)
        after = done.get(game_id)
        if before is None:
            changes.append(
                ChangedPlacement(game_id, PreviewChange.ADDED, court_id=after.court_id, start=after.scheduled_at)
            )
        elif after is None:
            changes.append(
                ChangedPlacement(
                    game_id, PreviewChange.NOT_COMMITTED, previewed_court_id=before.court_id, previewed_start=before.start
                )
            )
        elif (before.court_id, before.start) != (after.court_id, after.scheduled_at):
            changes.append(
                ChangedPlacement(
                    game_id,
                    PreviewChange.MOVED,
                    previewed_court_id=before.court_id,
                    previewed_start=before.start,
                    court_id=after.court_id,
                    start=after.scheduled_at,
                )
            )
    return changes


@dataclass
class ApplyResult:
    plan: PlacementResult
    committed: List[CommittedPlacement] = field(default_factory=list)
    rejected: List[RejectedPlacement] = field(default_factory=list)
    changed: List[ChangedPlacement] = field(default_factory=list)
    expected_fingerprint: Optional[str] = None

    @property
    def committed_count(self) -> int:
        return len(self.committed)

    @property
    def diverged_from_preview(self) -> bool:
        """True if APPLY did not commit exactly what the previewed plan showed."""
        if self.rejected or self.changed:
            return True
        return self.expected_fingerprint is not None and self.expected_fingerprint != self.plan.fingerprint()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "committed_count": self.committed_count,
            "committed": [c.to_dict() for c in self.committed],
            "rejected_games": [r.to_dict() for r in self.rejected],
            "changed_from_preview": [c.to_dict() for c in self.changed],
            "unscheduled": [u.to_dict() for u in self.plan.unscheduled],
            "stats": self.plan.stats.to_dict(),
            "fingerprint": self.plan.fingerprint(),
            "diverged_from_preview": self.diverged_from_preview,
        }


# ── Ordering ───────────────────────────────────────────────────────────


def get_game_sort_key(game: GameRef) -> Tuple:
    """
    Deterministic planning order.

    Order: game-type priority (desc) → bracket_round → bracket_position → id
    """
    priority = GAME_TYPE_PRIORITY.get(game.game_type, 0)
    return (
        -priority,
        game.bracket_round if game.bracket_round is not None else 999,
        game.bracket_position if game.bracket_position is not None else 999,
        game.id,
    )


def get_court_sort_key(court: CourtRef) -> Tuple:
    return court_sort_key(court.venue_name, court.name, court.id)


def _more_specific(current: Optional[Violation], candidate: Optional[Violation]) -> Optional[Violation]:
    """Keep the first violation seen at the highest specificity."""
    if candidate is None:
        return current
    if current is None or REASON_SPECIFICITY.get(candidate.code, 0) > REASON_SPECIFICITY.get(current.code, 0):
        return candidate
    return current


def _utilization_percent(scheduled_minutes: int, court_count: int, window_minutes: int) -> int:
    capacity = court_count * window_minutes
    if capacity <= 0:
        return 0
    # Round half up
    return (200 * scheduled_minutes + capacity) // (2 * capacity)


# ── Planning ───────────────────────────────────────────────────────────


def plan_assignments(
    games: Sequence[GameRef],
    courts: Sequence[CourtRef],
    config: SchedulingConfiguration,
    index: Optional[AvailabilityIndex] = None,
) -> PlacementResult:
    """
    Plan placements without touching storage.

    Args:
        games: Unscheduled games to place
        courts: Courts the run may use
        config: Window, duration and rest settings
        index: Committed availability for config.day (not modified)

    Returns:
        PlacementResult with scheduled, unscheduled and stats
    """
    config.validate()
    window = config.window
    duration = config.game_duration_minutes

    provisional = index.copy() if index is not None else AvailabilityIndex(config.day)
    for game in games:
        if game.home_team_name:
            provisional.team_names.setdefault(game.home_team_id, game.home_team_name)
        if game.away_team_name:
            provisional.team_names.setdefault(game.away_team_id, game.away_team_name)
    for court in courts:
        provisional.court_names.setdefault(court.id, court.name)

    ordered_games = sorted(games, key=get_game_sort_key)
    ordered_courts = sorted(courts, key=get_court_sort_key)
    starts = list(candidate_start_times(window.opens_at, window.closes_at, duration))

    result = PlacementResult()

    for game in ordered_games:
        placement: Optional[ProposedPlacement] = None
        best_violation: Optional[Violation] = None

        for court in ordered_courts:
            for start in starts:
                legal, violation = check_placement(
                    game, court.id, start, duration, provisional, window, config.min_rest_minutes, court_name=court.name
                )
                if legal:
                    placement = ProposedPlacement(game=game, court=court, start=start, duration_minutes=duration)
                    break
                best_violation = _more_specific(best_violation, violation)
            if placement is not None:
                break

        if placement is not None:
            provisional.add_booking(
                game_id=game.id,
                court_id=placement.court.id,
                team_ids=(game.home_team_id, game.away_team_id),
                start=placement.start,
                end=placement.end,
                label=game.label,
                provisional=True,
            )
            result.scheduled.append(placement)
            continue

        if best_violation is None:
            # No candidate existed at all (no courts, or window shorter than a game)
            best_violation = Violation(
                code=ReasonCode.WINDOW,
                message=(
                    f"No available time slots: a {duration}-minute game does not fit between "
                    f"{window.opens_at:%H:%M} and {window.closes_at:%H:%M} on any court"
                ),
            )
        result.unscheduled.append(UnscheduledGame(game=game, violation=best_violation))

    scheduled_minutes = sum(p.duration_minutes for p in result.scheduled)
    result.stats = PlacementStats(
        total_games=len(games),
        scheduled_count=len(result.scheduled),
        unscheduled_count=len(result.unscheduled),
        utilization_percent=_utilization_percent(scheduled_minutes, len(courts), window.length_minutes),
    )

    logger.info(
        "Planned %s: %d games, %d scheduled, %d unscheduled, %d%% utilization",
        config.day.isoformat(),
        result.stats.total_games,
        result.stats.scheduled_count,
        result.stats.unscheduled_count,
        result.stats.utilization_percent,
    )
    return result


def load_planning_inputs(
    session: Session, event_id: Optional[int], config: SchedulingConfiguration
) -> Tuple[Event, List[GameRef], List[CourtRef]]:
    """
    Load and validate everything a run needs before any planning work.

    Raises:
        SchedulingConfigurationError: Missing event/date, bad settings, date
            outside the event, or no courts linked to the event
        ResourceNotFoundError: Unknown event
    """
    if event_id is None:
        raise SchedulingConfigurationError("Event ID is required")
    config.validate()

    event = session.get(Event, event_id)
    if not event:
        raise ResourceNotFoundError("Event", event_id)
    if not event.covers(config.day):
        raise SchedulingConfigurationError(
            f"{config.day.isoformat()} is outside event dates "
            f"{event.start_date.isoformat()} to {event.end_date.isoformat()}"
        )

    court_rows = session.exec(
        select(Court, Venue)
        .join(Venue, Court.venue_id == Venue.id)
        .join(EventVenueLink, EventVenueLink.venue_id == Venue.id)
        .where(EventVenueLink.event_id == event_id)
    ).all()
    courts = [CourtRef.from_court(court, venue) for court, venue in court_rows]
    if not courts:
        raise SchedulingConfigurationError(
            "No courts available for this event. Add venues with courts to the event first."
        )

    games = session.exec(
        select(Game)
        .where(
            Game.event_id == event_id,
            col(Game.court_id).is_(None),
            Game.status != GameStatus.CANCELED.value,
        )
        .order_by(Game.id)
        .execution_options(populate_existing=True)
    ).all()

    team_ids = {t for game in games for t in game.team_ids}
    team_names: Dict[int, str] = {}
    if team_ids:
        teams = session.exec(select(Team).where(col(Team.id).in_(team_ids))).all()
        team_names = {team.id: team.name for team in teams}

    return event, [GameRef.from_game(game, team_names) for game in games], courts


def preview_auto_schedule(session: Session, event_id: Optional[int], config: SchedulingConfiguration) -> PlacementResult:
    """PREVIEW: plan against the current committed schedule. Writes nothing."""
    _, games, courts = load_planning_inputs(session, event_id, config)
    index = build_availability_index(session, config.day)
    return plan_assignments(games, courts, config, index)


def apply_auto_schedule(
    session: Session,
    event_id: Optional[int],
    config: SchedulingConfiguration,
    expected_fingerprint: Optional[str] = None,
    previewed: Optional[Sequence[PreviewedPlacement]] = None,
) -> ApplyResult:
    """
    APPLY: plan again from fresh data, then commit placement by placement.

    The caller must say which preview it is confirming, by fingerprint,
    by the previewed placements, or both. Anything committed differently
    from the previewed placements is listed in ApplyResult.changed.

    Args:
        session: Database session
        event_id: Event whose unscheduled games are planned
        config: Same settings the preview used
        expected_fingerprint: Fingerprint of the preview the user approved;
            a mismatch is reported as diverged_from_preview
        previewed: The placements the preview showed

    Returns:
        ApplyResult; partial commits are expected and reported

    Raises:
        SchedulingConfigurationError: Neither fingerprint nor placements given
    """
    if expected_fingerprint is None and previewed is None:
        raise SchedulingConfigurationError(
            "Apply needs the preview it confirms: send expected_fingerprint or the previewed placements"
        )

    plan = preview_auto_schedule(session, event_id, config)
    committed, rejected = commit_placements(session, plan.scheduled, config)
    changed = compare_with_preview(previewed, committed) if previewed is not None else []
    result = ApplyResult(
        plan=plan, committed=committed, rejected=rejected, changed=changed, expected_fingerprint=expected_fingerprint
    )

    if result.diverged_from_preview:
        logger.warning(
            "Auto-schedule apply for event %s on %s diverged from preview: %d committed, %d rejected, %d changed",
            event_id,
            config.day.isoformat(),
            len(committed),
            len(rejected),
            len(changed),
        )
    else:
        logger.info(
            "Auto-schedule apply for event %s on %s committed %d games", event_id, config.day.isoformat(), len(committed)
        )
    return result
