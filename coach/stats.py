"""Lifetime workout statistics and the recently-used exercise list."""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional

from coach.models import AppData
from coach.units import as_local, day_key, local_now, parse_timestamp, round_half_up, to_lbs


@dataclass(frozen=True)
class WorkoutStats:
    total_sets: int
    total_volume: float
    current_streak: int
    most_trained_exercise: Optional[str]

    def to_dict(self):
        result = asdict(self)
        result['total_volume_display'] = format_volume(self.total_volume)
        return result


@dataclass(frozen=True)
class PreviousExercise:
    name: str
    last_weight: float
    last_reps: int
    last_unit: str
    last_used: str

    def to_dict(self):
        return asdict(self)


def current_streak(timestamps: List[str], now: Optional[datetime] = None) -> int:
    """
    Consecutive distinct workout days ending today or yesterday.
    A gap of more than one day before the latest workout breaks the streak.
    """
    if not timestamps:
        return 0
    today = as_local(now).date() if now else local_now().date()
    days = sorted({date(*day_key(ts)) for ts in timestamps}, reverse=True)
    if days[0] not in (today, today - timedelta(days=1)):
        return 0
    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


def calculate_workout_stats(data: AppData, now: Optional[datetime] = None) -> WorkoutStats:
    named_logs = [(exercise.name, log) for exercise in data.exercises for log in exercise.logs]
    total_volume = sum(to_lbs(log.weight, log.unit) * log.reps for _, log in named_logs)
    counts = Counter(name for name, _ in named_logs)
    most_trained = counts.most_common(1)[0][0] if counts else None
    return WorkoutStats(
        total_sets=len(named_logs),
        total_volume=total_volume,
        current_streak=current_streak([log.timestamp for _, log in named_logs], now),
        most_trained_exercise=most_trained,
    )


def format_volume(volume: float) -> str:
    if volume >= 1_000_000:
        return f"{volume / 1_000_000:.1f}M"
    if volume >= 1000:
        return f"{volume / 1000:.1f}K"
    return f"{round_half_up(volume):,}"


def previous_exercises(data: AppData) -> List[PreviousExercise]:
    """Latest set of every logged exercise, most recently used first."""
    entries = []
    for exercise in data.exercises:
        if not exercise.logs:
            continue
        latest = max(exercise.logs, key=lambda log: parse_timestamp(log.timestamp))
        entries.append(PreviousExercise(
            name=exercise.name,
            last_weight=latest.weight,
            last_reps=latest.reps,
            last_unit=latest.unit.value,
            last_used=latest.timestamp,
        ))
    entries.sort(key=lambda entry: parse_timestamp(entry.last_used), reverse=True)
    return entries
