"""Logging a set end to end: validate, classify against prior history, append."""

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Optional, Tuple

from coach.models import AppData, Exercise, ExerciseLog, RecommendationResult, RecommendationType, WeightUnit
from coach.recommendations import analyze_performance
from coach.storage import add_exercise, add_log_to_exercise, generate_id, get_exercise_by_name, record_deload
from coach.units import local_now, parse_timestamp, to_iso

logger = logging.getLogger(__name__)


class RepRangeRequired(ValueError):
    """Raised when a set is logged for a new exercise without a rep range."""

    def __init__(self, exercise_name: str):
        super().__init__(f"'{exercise_name}' is a new exercise; 'min_reps' and 'goal_reps' are required.")
        self.exercise_name = exercise_name


def validate_rep_range(min_reps, goal_reps) -> Tuple[int, int]:
    try:
        min_reps = int(min_reps)
        goal_reps = int(goal_reps)
    except (TypeError, ValueError, OverflowError):
        raise ValueError("'min_reps' and 'goal_reps' must be integers.")
    if min_reps <= 0:
        raise ValueError("'min_reps' must be greater than 0.")
    if goal_reps <= min_reps:
        raise ValueError("'goal_reps' must be greater than 'min_reps'.")
    return min_reps, goal_reps


def validate_set(weight, unit, reps) -> Tuple[float, WeightUnit, int]:
    try:
        weight = float(weight)
        reps = int(reps)
    except (TypeError, ValueError, OverflowError):
        raise ValueError("'weight' must be a number and 'reps' an integer.")
    if not math.isfinite(weight) or weight <= 0:
        raise ValueError("'weight' must be positive.")
    if reps < 1:
        raise ValueError("'reps' must be 1 or greater.")
    try:
        weight_unit = unit if isinstance(unit, WeightUnit) else WeightUnit(unit)
    except ValueError:
        raise ValueError(f"Invalid unit '{unit}'. Expected 'lbs' or 'kg'.")
    return weight, weight_unit, reps


def validate_timestamp(value, field_name: str = 'timestamp') -> str:
    try:
        parse_timestamp(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{field_name}' must be an ISO-8601 timestamp, got '{value}'.")
    return value


def validate_app_data(data: AppData) -> AppData:
    """
    Applies the checks logging a set enforces to a whole imported document:
    named exercises with unique names and a valid rep range, positive weights,
    reps of 1 or more, and parseable timestamps and metadata dates.

    Raises:
        ValueError: naming the offending exercise or field.
    """
    seen_names = set()
    for exercise in data.exercises:
        if not isinstance(exercise.name, str) or not exercise.name.strip():
            raise ValueError("Every exercise needs a non-empty 'name'.")
        key = exercise.name.strip().lower()
        if key in seen_names:
            raise ValueError(f"Duplicate exercise '{exercise.name}'.")
        seen_names.add(key)
        try:
            validate_rep_range(exercise.min_reps, exercise.goal_reps)
            for log in exercise.logs:
                validate_set(log.weight, log.unit, log.reps)
                validate_timestamp(log.timestamp)
        except ValueError as e:
            raise ValueError(f"Exercise '{exercise.name}': {e}") from e

    for field_name in ('first_log_date', 'last_deload_date'):
        value = getattr(data.metadata, field_name)
        if value is not None:
            validate_timestamp(value, field_name)
    return data


def log_set(
    data: AppData,
    exercise_name: str,
    weight,
    unit,
    reps,
    min_reps=None,
    goal_reps=None,
    now: Optional[datetime] = None,
) -> Tuple[AppData, RecommendationResult]:
    """
    Records one completed set and returns the updated data with the recommendation.

    A new exercise (matched case-insensitively by name) is created first and
    needs a valid rep range. The set is classified against the history logged
    before it, tagged with the result, then appended.

    Raises:
        RepRangeRequired: new exercise without a rep range.
        ValueError: invalid weight, reps, unit or rep range.
    """
    if not isinstance(exercise_name, str) or not exercise_name.strip():
        raise ValueError("'exercise_name' must be a non-empty string.")
    name = exercise_name.strip()
    weight, weight_unit, reps = validate_set(weight, unit, reps)
    now = parse_timestamp(now) if now else local_now()

    exercise = get_exercise_by_name(data, name)
    if exercise is None:
        if min_reps is None or goal_reps is None:
            raise RepRangeRequired(name)
        min_reps, goal_reps = validate_rep_range(min_reps, goal_reps)
        exercise = Exercise(id=generate_id(), name=name, min_reps=min_reps, goal_reps=goal_reps)
        data = add_exercise(data, exercise)
        logger.info(f"Created exercise '{name}' ({exercise.id}) with rep range {min_reps}-{goal_reps}.")

    log = ExerciseLog(
        id=generate_id(),
        weight=weight,
        unit=weight_unit,
        reps=reps,
        timestamp=to_iso(now),
        recommendation=RecommendationType.INSUFFICIENT_DATA,
    )
    result = analyze_performance(exercise, log, data.metadata, now=now)
    log = replace(log, recommendation=result.type)
    data = add_log_to_exercise(data, exercise.id, log)
    logger.info(
        f"Logged {weight:g} {weight_unit.value} x {reps} on '{exercise.name}': {result.type.value}"
        + (f" (suggested {result.suggested_weight})" if result.suggested_weight is not None else "")
    )
    return data, result


def accept_deload(data: AppData, now: Optional[datetime] = None) -> AppData:
    """Marks the scheduled deload as taken, restarting the four-week count."""
    now = parse_timestamp(now) if now else local_now()
    return record_deload(data, to_iso(now))
