import pytest
from datetime import datetime, timedelta

from coach.models import AppData, AppMetadata, Exercise, ExerciseLog, RecommendationType, WeightUnit
from coach.storage import default_app_data
from coach.units import parse_timestamp
from coach.workout_service import (
    RepRangeRequired,
    accept_deload,
    log_set,
    validate_app_data,
    validate_rep_range,
    validate_set,
)

NOW = datetime(2024, 5, 15, 12, 0).astimezone()


def log_sessions(data, *sets, name='Bench Press', min_reps=6, goal_reps=8):
    """Logs (weight, reps) pairs one day apart, ending at NOW."""
    result = None
    for i, (weight, reps) in enumerate(sets):
        moment = NOW - timedelta(days=len(sets) - 1 - i)
        data, result = log_set(data, name, weight, 'lbs', reps, min_reps=min_reps, goal_reps=goal_reps, now=moment)
    return data, result


def test_new_exercise_needs_rep_range():
    with pytest.raises(RepRangeRequired) as excinfo:
        log_set(default_app_data(), 'Bench Press', 100, 'lbs', 8, now=NOW)
    assert excinfo.value.exercise_name == 'Bench Press'


@pytest.mark.parametrize("min_reps, goal_reps", [(0, 8), (8, 8), (10, 8), ('six', 8)])
def test_invalid_rep_range(min_reps, goal_reps):
    with pytest.raises(ValueError):
        validate_rep_range(min_reps, goal_reps)


@pytest.mark.parametrize("weight, unit, reps", [
    (0, 'lbs', 8),
    (-5, 'lbs', 8),
    ('heavy', 'lbs', 8),
    (100, 'lbs', 0),
    (100, 'stone', 8),
])
def test_invalid_set(weight, unit, reps):
    with pytest.raises(ValueError):
        validate_set(weight, unit, reps)


def test_validate_set_coerces_types():
    assert validate_set('102.5', 'kg', '8') == (102.5, WeightUnit.KG, 8)


def test_first_log_creates_exercise_and_sets_first_log_date():
    data, result = log_set(default_app_data(), ' Bench Press ', 100, 'lbs', 8, min_reps=6, goal_reps=8, now=NOW)
    assert result.type == RecommendationType.INSUFFICIENT_DATA
    assert result.message == "Log 2 more sessions to get personalized recommendations."
    assert len(data.exercises) == 1
    exercise = data.exercises[0]
    assert exercise.name == 'Bench Press'
    assert (exercise.min_reps, exercise.goal_reps) == (6, 8)
    assert len(exercise.logs) == 1
    assert parse_timestamp(exercise.logs[0].timestamp) == NOW
    assert data.metadata.first_log_date == exercise.logs[0].timestamp


def test_existing_exercise_matched_case_insensitively():
    data, _ = log_set(default_app_data(), 'Bench Press', 100, 'lbs', 8, min_reps=6, goal_reps=8, now=NOW)
    data, _ = log_set(data, 'bench press', 100, 'lbs', 7, now=NOW)
    assert len(data.exercises) == 1
    assert len(data.exercises[0].logs) == 2


def test_third_session_gets_personalised_recommendation():
    data, result = log_sessions(default_app_data(), (100, 7), (100, 7), (100, 9))
    assert result.type == RecommendationType.PROGRESSIVE_OVERLOAD
    assert result.suggested_weight == 105
    assert data.exercises[0].logs[-1].recommendation == RecommendationType.PROGRESSIVE_OVERLOAD
    assert [log.recommendation for log in data.exercises[0].logs[:2]] == [RecommendationType.INSUFFICIENT_DATA] * 2


def test_acute_deload_flow():
    _, result = log_sessions(default_app_data(), (100, 7), (100, 5), (100, 4))
    assert result.type == RecommendationType.ACUTE_DELOAD
    assert result.suggested_weight == 90


def test_acclimation_flow():
    _, result = log_sessions(default_app_data(), (100, 6), (100, 7), (100, 6))
    assert result.type == RecommendationType.ACCLIMATION


def test_scheduled_deload_and_accepting_it():
    start = AppData(metadata=AppMetadata(first_log_date=(NOW - timedelta(weeks=5)).isoformat()))
    data, result = log_sessions(start, (100, 7), (100, 7), (100, 7))
    assert result.type == RecommendationType.SCHEDULED_DELOAD
    assert result.suggested_weight == 90

    data = accept_deload(data, now=NOW)
    assert parse_timestamp(data.metadata.last_deload_date) == NOW
    _, result = log_set(data, 'Bench Press', 110, 'lbs', 7, now=NOW + timedelta(hours=1))
    assert result.type == RecommendationType.MAINTAIN


def test_log_set_does_not_mutate_input():
    original = default_app_data()
    log_set(original, 'Bench Press', 100, 'lbs', 8, min_reps=6, goal_reps=8, now=NOW)
    assert original == default_app_data()


def test_log_set_rejects_non_string_name():
    with pytest.raises(ValueError, match="exercise_name"):
        log_set(default_app_data(), 5, 100, 'lbs', 8, min_reps=6, goal_reps=8, now=NOW)


@pytest.mark.parametrize("weight", [float('nan'), float('inf')])
def test_validate_set_rejects_non_finite_weight(weight):
    with pytest.raises(ValueError):
        validate_set(weight, 'lbs', 8)


def imported(min_reps=5, goal_reps=8, weight=60.0, reps=6, timestamp="2024-05-13T10:00:00.000Z", metadata=None):
    return AppData(
        exercises=(Exercise(id='ex-1', name='Squat', min_reps=min_reps, goal_reps=goal_reps, logs=(
            ExerciseLog(id='l1', weight=weight, unit=WeightUnit.KG, reps=reps, timestamp=timestamp),
        )),),
        metadata=metadata or AppMetadata(first_log_date="2024-05-13T10:00:00.000Z"),
    )


def test_validate_app_data_accepts_clean_export():
    data = imported()
    assert validate_app_data(data) is data


@pytest.mark.parametrize("data, message", [
    (imported(timestamp="yesterday"), "timestamp"),
    (imported(min_reps=8, goal_reps=6), "goal_reps"),
    (imported(weight=-50), "weight"),
    (imported(weight=float('nan')), "weight"),
    (imported(reps=0), "reps"),
    (imported(metadata=AppMetadata(first_log_date="2024-05-13", last_deload_date="soon")), "last_deload_date"),
])
def test_validate_app_data_rejects(data, message):
    with pytest.raises(ValueError, match=message):
        validate_app_data(data)


def test_validate_app_data_rejects_duplicate_names():
    data = imported()
    twin = Exercise(id='ex-2', name=' SQUAT', min_reps=5, goal_reps=8)
    with pytest.raises(ValueError, match="Duplicate"):
        validate_app_data(AppData(exercises=data.exercises + (twin,)))
