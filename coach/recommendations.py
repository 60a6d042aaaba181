"""Rule-based progression recommendations for a single logged set."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence

from coach.constants import (
    ACCLIMATION_WINDOW,
    DELOAD_FACTOR,
    DELOAD_INTERVAL_WEEKS,
    MIN_LOGS_FOR_RECOMMENDATION,
    OVERLOAD_HIGH_FACTOR,
    OVERLOAD_LOW_FACTOR,
    SAME_WEIGHT_TOLERANCE,
    SESSIONS_FOR_FULL_HISTORY,
)
from coach.models import AppMetadata, Exercise, ExerciseLog, RecommendationResult, RecommendationType
from coach.units import format_weight, local_now, parse_timestamp, round_half_up

logger = logging.getLogger(__name__)

ONE_WEEK = timedelta(weeks=1)

# Icon, headline and list label per category. Keyed by every RecommendationType member.
RECOMMENDATION_BADGES: Dict[RecommendationType, Dict[str, str]] = {
    RecommendationType.INSUFFICIENT_DATA: {'icon': '📊', 'headline': 'Great start!', 'label': 'Building baseline'},
    RecommendationType.SCHEDULED_DELOAD: {'icon': '🔄', 'headline': 'Deload week!', 'label': 'Deload week'},
    RecommendationType.PROGRESSIVE_OVERLOAD: {'icon': '🎯', 'headline': 'Ready to progress!', 'label': 'Increase weight'},
    RecommendationType.ACUTE_DELOAD: {'icon': '⚠️', 'headline': 'Time to deload', 'label': 'Deload'},
    RecommendationType.ACCLIMATION: {'icon': '💪', 'headline': "You've adapted!", 'label': 'Adapted'},
    RecommendationType.MAINTAIN: {'icon': '✅', 'headline': 'On track!', 'label': 'Maintain'},
}

# The below-minimum fallback reuses MAINTAIN with its own copy.
BELOW_MINIMUM_ICON = '💪'
BELOW_MINIMUM_HEADLINE = 'Keep pushing!'


def weeks_since(moment: Optional[str], now: datetime) -> int:
    """Whole weeks elapsed between an ISO timestamp and now; 0 when unset."""
    if not moment:
        return 0
    return (parse_timestamp(now) - parse_timestamp(moment)) // ONE_WEEK


def should_schedule_deload(metadata: AppMetadata, now: Optional[datetime] = None) -> bool:
    now = parse_timestamp(now) if now else local_now()
    if weeks_since(metadata.first_log_date, now) < DELOAD_INTERVAL_WEEKS:
        return False
    if not metadata.last_deload_date:
        return True
    return weeks_since(metadata.last_deload_date, now) >= DELOAD_INTERVAL_WEEKS


def _result(recommendation_type: RecommendationType, message: str,
            suggested_weight: Optional[int] = None) -> RecommendationResult:
    badge = RECOMMENDATION_BADGES[recommendation_type]
    return RecommendationResult(
        type=recommendation_type,
        icon=badge['icon'],
        headline=badge['headline'],
        message=message,
        suggested_weight=suggested_weight,
    )


def _increase_range(weight: float) -> tuple[int, int]:
    return round_half_up(weight * OVERLOAD_LOW_FACTOR), round_half_up(weight * OVERLOAD_HIGH_FACTOR)


def _is_acclimated(recent: Sequence[ExerciseLog], current: ExerciseLog, min_reps: int, goal_reps: int) -> bool:
    if len(recent) != ACCLIMATION_WINDOW:
        return False
    same_weight = all(abs(log.weight - current.weight) < SAME_WEIGHT_TOLERANCE for log in recent)
    in_range = all(min_reps <= log.reps <= goal_reps for log in recent)
    return same_weight and in_range


def analyze_performance(
    exercise: Exercise,
    current_log: ExerciseLog,
    metadata: AppMetadata,
    now: Optional[datetime] = None,
) -> RecommendationResult:
    """
    Classifies a freshly completed set and suggests what to do next time.

    `exercise.logs` is the history *before* `current_log`; the caller appends
    the classified log afterwards. Rules are checked in priority order and the
    first match wins:

        insufficient data -> scheduled deload -> progressive overload ->
        acute deload -> acclimation -> maintain -> below-minimum fallback

    Args:
        exercise: The exercise with its prior logs and target rep band.
        current_log: The set just completed.
        metadata: App-wide first-log / last-deload dates.
        now: Evaluation time for the scheduled-deload check (defaults to now).

    Returns:
        A RecommendationResult. Never raises for validated input.
    """
    logs = exercise.logs
    min_reps, goal_reps = exercise.min_reps, exercise.goal_reps
    unit = current_log.unit.value
    weight = current_log.weight
    reps = current_log.reps

    if len(logs) < MIN_LOGS_FOR_RECOMMENDATION:
        remaining = SESSIONS_FOR_FULL_HISTORY - len(logs) - 1
        plural = 's' if remaining > 1 else ''
        return _result(
            RecommendationType.INSUFFICIENT_DATA,
            f"Log {remaining} more session{plural} to get personalized recommendations.",
        )

    if should_schedule_deload(metadata, now):
        logger.debug(f"Scheduled deload triggered for exercise {exercise.id}.")
        return _result(
            RecommendationType.SCHEDULED_DELOAD,
            "You've trained hard for 4+ weeks. Take a recovery week - "
            "decrease weight by 5-10% on all exercises.",
            round_half_up(weight * DELOAD_FACTOR),
        )

    if reps >= goal_reps:
        low, high = _increase_range(weight)
        return _result(
            RecommendationType.PROGRESSIVE_OVERLOAD,
            f"You hit your goal of {goal_reps} reps. Increase weight by 5-10% next time "
            f"({low}-{high} {unit}).",
            low,
        )

    previous = logs[-1]
    if reps < min_reps and previous.reps < min_reps:
        suggested = round_half_up(weight * DELOAD_FACTOR)
        return _result(
            RecommendationType.ACUTE_DELOAD,
            f"You're not strong enough at this weight yet. Decrease to {suggested} {unit} "
            f"and aim for 10 good reps with perfect form.",
            suggested,
        )

    recent = (list(logs[-ACCLIMATION_WINDOW:]) + [current_log])[-ACCLIMATION_WINDOW:]
    if _is_acclimated(recent, current_log, min_reps, goal_reps):
        low, high = _increase_range(weight)
        return _result(
            RecommendationType.ACCLIMATION,
            f"Same weight for 3 sessions. Try increasing 5-10% to {low}-{high} {unit} "
            f"and expect lower reps.",
            low,
        )

    if min_reps <= reps <= goal_reps:
        return _result(
            RecommendationType.MAINTAIN,
            f"Keep this weight ({format_weight(weight)} {unit}) for your next session. "
            f"You're in your target range of {min_reps}-{goal_reps} reps.",
        )

    return RecommendationResult(
        type=RecommendationType.MAINTAIN,
        icon=BELOW_MINIMUM_ICON,
        headline=BELOW_MINIMUM_HEADLINE,
        message=f"Work towards hitting {min_reps} reps at this weight before progressing.",
    )


__all__ = [
    "RECOMMENDATION_BADGES",
    "analyze_performance",
    "should_schedule_deload",
    "weeks_since",
]
