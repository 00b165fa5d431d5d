"""
Constraint Evaluator rules and their boundaries.

Rule order: WINDOW → COURT_CONFLICT → TEAM_DOUBLE_BOOKED → TEAM_REST.
Intervals are half-open, so back-to-back games on a court are legal.
"""

from datetime import date, datetime, time

import pytest

from league_scheduler.services.assignment_planner import GameRef
from league_scheduler.services.availability_index import AvailabilityIndex
from league_scheduler.services.constraint_evaluator import (
    ReasonCode,
    ScheduleWindow,
    check_placement,
)

DAY = date(2025, 3, 1)
WINDOW = ScheduleWindow(DAY, time(8, 0), time(22, 0))
COURT_1 = 1
COURT_2 = 2
A, B, C, D = 101, 102, 103, 104


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(DAY, time(hour, minute))


@pytest.fixture
def index():
    idx = AvailabilityIndex(DAY)
    idx.team_names.update({A: "Team A", B: "Team B", C: "Team C", D: "Team D"})
    idx.court_names.update({COURT_1: "Court 1", COURT_2: "Court 2"})
    # Game 1: A vs B on Court 1, 10:00-11:00
    idx.add_booking(1, COURT_1, (A, B), at(10), at(11), label="Team A vs Team B")
    return idx


def test_empty_court_inside_window_is_legal(index):
    ok, violation = check_placement(GameRef(id=2, home_team_id=C, away_team_id=D), COURT_2, at(10), 60, index, WINDOW, 60)

    assert ok is True
    assert violation is None


def test_game_ending_exactly_at_window_end_is_legal(index):
    ok, _ = check_placement(GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(21), 60, index, WINDOW, 60)

    assert ok is True


def test_game_running_past_window_end_is_window(index):
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(21, 30), 60, index, WINDOW, 60
    )

    assert ok is False
    assert violation.code == ReasonCode.WINDOW


def test_game_before_window_start_is_window(index):
    ok, violation = check_placement(GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(7, 30), 60, index, WINDOW, 0)

    assert ok is False
    assert violation.code == ReasonCode.WINDOW


def test_overlap_on_same_court_is_court_conflict(index):
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(10, 30), 60, index, WINDOW, 60
    )

    assert ok is False
    assert violation.code == ReasonCode.COURT_CONFLICT
    assert violation.court_id == COURT_1
    assert violation.conflicting_game_id == 1
    assert "Court 1" in violation.message


def test_back_to_back_on_same_court_is_legal(index):
    ok, _ = check_placement(GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(11), 60, index, WINDOW, 60)

    assert ok is True


def test_team_on_another_court_at_same_time_is_double_booked(index):
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=A, away_team_id=C), COURT_2, at(10, 30), 60, index, WINDOW, 0
    )

    assert ok is False
    assert violation.code == ReasonCode.TEAM_DOUBLE_BOOKED
    assert violation.team_id == A
    assert violation.conflicting_game_id == 1


def test_away_team_is_checked_for_double_booking(index):
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=C, away_team_id=B), COURT_2, at(10), 60, index, WINDOW, 0
    )

    assert ok is False
    assert violation.code == ReasonCode.TEAM_DOUBLE_BOOKED
    assert violation.team_id == B


def test_court_conflict_reported_before_double_booking(index):
    # Same court and same team: court rule comes first
    ok, violation = check_placement(GameRef(id=2, home_team_id=A, away_team_id=C), COURT_1, at(10), 60, index, WINDOW, 60)

    assert ok is False
    assert violation.code == ReasonCode.COURT_CONFLICT


def test_short_gap_after_previous_game_is_team_rest(index):
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=A, away_team_id=C), COURT_2, at(11, 30), 60, index, WINDOW, 60
    )

    assert ok is False
    assert violation.code == ReasonCode.TEAM_REST
    assert violation.team_id == A
    assert "30 minutes" in violation.message


def test_short_gap_before_next_game_is_team_rest(index):
    # 08:30-09:30 then Team B plays at 10:00: 30 minute gap
    ok, violation = check_placement(
        GameRef(id=2, home_team_id=C, away_team_id=B), COURT_2, at(8, 30), 60, index, WINDOW, 60
    )

    assert ok is False
    assert violation.code == ReasonCode.TEAM_REST
    assert violation.team_id == B


def test_gap_equal_to_minimum_rest_is_legal(index):
    ok, _ = check_placement(GameRef(id=2, home_team_id=A, away_team_id=C), COURT_2, at(12), 60, index, WINDOW, 60)

    assert ok is True


def test_zero_rest_allows_back_to_back_for_a_team(index):
    ok, _ = check_placement(GameRef(id=2, home_team_id=A, away_team_id=C), COURT_2, at(11), 60, index, WINDOW, 0)

    assert ok is True


def test_moving_a_game_ignores_its_own_booking(index):
    # Game 1 shifted 30 minutes on its own court: only conflicts with itself
    ok, _ = check_placement(GameRef(id=1, home_team_id=A, away_team_id=B), COURT_1, at(10, 30), 60, index, WINDOW, 60)

    assert ok is True


def test_violation_to_dict_shape(index):
    _, violation = check_placement(
        GameRef(id=2, home_team_id=C, away_team_id=D), COURT_1, at(10), 60, index, WINDOW, 60
    )

    detail = violation.to_dict()
    assert detail["reason_code"] == "COURT_CONFLICT"
    assert detail["refresh_required"] is False
    assert set(detail) >= {"message", "court_id", "team_id", "conflicting_game_id"}
