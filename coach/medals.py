"""Progress metrics and tiered achievements derived from the full training history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from coach.constants import (
    BRONZE_WORKOUT_DAYS_TARGET,
    DIAMOND_LOOKBACK_DAYS,
    DIAMOND_STREAK_WEEKS,
    DIAMOND_VOLUME_INCREASE_TARGET,
    GOLD_MONTHLY_PR_TARGET,
    SILVER_VOLUME_INCREASE_TARGET,
    WEEKLY_SET_GOAL,
)
from coach.models import AppData, ExerciseLog, MedalData, MedalTier, ProgressMetric
from coach.units import (
    as_local,
    day_key,
    local_midnight,
    local_now,
    parse_timestamp,
    round_half_up,
    shift_local_days,
    to_iso,
    to_lbs,
)


@dataclass(frozen=True)
class TimeWindows:
    now: datetime
    start_of_week: datetime
    last_week_start: datetime
    start_of_month: datetime


def time_windows(now: Optional[datetime] = None) -> TimeWindows:
    """Week starts on Sunday at local midnight; month on the 1st at local midnight."""
    now = as_local(now) if now else local_now()
    days_since_sunday = (now.weekday() + 1) % 7
    start_of_week = local_midnight(shift_local_days(now, -days_since_sunday))
    start_of_month = local_midnight(shift_local_days(now, 1 - now.day))
    return TimeWindows(
        now=now,
        start_of_week=start_of_week,
        last_week_start=shift_local_days(start_of_week, -7),
        start_of_month=start_of_month,
    )


def _all_logs(data: AppData) -> List[ExerciseLog]:
    return [log for exercise in data.exercises for log in exercise.logs]


def _in_window(log: ExerciseLog, start: datetime, end: Optional[datetime] = None) -> bool:
    moment = parse_timestamp(log.timestamp)
    if moment < start:
        return False
    return end is None or moment < end


def _volume(logs: Iterable[ExerciseLog]) -> float:
    return sum(to_lbs(log.weight, log.unit) * log.reps for log in logs)


def _workout_days(logs: Iterable[ExerciseLog]) -> int:
    return len({day_key(log.timestamp) for log in logs})


def _percent_change(current: float, baseline: float) -> float:
    if baseline > 0:
        return (current - baseline) / baseline * 100
    return 100 if current > 0 else 0


def _max_lbs(logs: Sequence[ExerciseLog]) -> float:
    return max(to_lbs(log.weight, log.unit) for log in logs)


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


# --- Progress metrics ---

def _weekly_text(value: int) -> str:
    if value >= 100:
        return "Goal crushed 🎉"
    if value >= 80:
        return "Almost there"
    if value >= 50:
        return "Keep pushing"
    return "Let's go"


def _volume_text(change: int) -> str:
    if change > 0:
        return f"+{change}% stronger"
    if change == 0:
        return "Holding steady"
    return "Push harder"


def _consistency_text(value: int) -> str:
    if value >= 80:
        return "On fire 🔥"
    if value >= 50:
        return "Building momentum"
    return "Every day counts"


def _pr_text(value: int) -> str:
    if value >= 50:
        return "PR machine"
    if value >= 25:
        return "Making gains"
    return "New PRs await"


def _has_latest_pr(logs: Sequence[ExerciseLog]) -> bool:
    if len(logs) < 2:
        return False
    ordered = sorted(logs, key=lambda log: parse_timestamp(log.timestamp), reverse=True)
    return to_lbs(ordered[0].weight, ordered[0].unit) > _max_lbs(ordered[1:])


def calculate_progress_metrics(data: AppData, now: Optional[datetime] = None) -> List[ProgressMetric]:
    """
    Computes the four dashboard percentages: weekly set goal, week-over-week
    volume, monthly consistency and PR rate.

    The volume metric's displayed value is the clamped magnitude; its sign only
    shows up in the description and motivational text. Consistency is not
    clamped.
    """
    windows = time_windows(now)
    all_logs = _all_logs(data)

    this_week = [log for log in all_logs if _in_window(log, windows.start_of_week)]
    last_week = [log for log in all_logs if _in_window(log, windows.last_week_start, windows.start_of_week)]

    sets_this_week = len(this_week)
    weekly_progress = min(round_half_up(sets_this_week / WEEKLY_SET_GOAL * 100), 100)

    volume_change = round_half_up(_percent_change(_volume(this_week), _volume(last_week)))
    volume_description = (
        f"+{volume_change}% vs last week" if volume_change >= 0 else f"{volume_change}% vs last week"
    )

    days_elapsed = windows.now.day
    month_days = _workout_days(log for log in all_logs if _in_window(log, windows.start_of_month))
    consistency = round_half_up(month_days / days_elapsed * 100) if days_elapsed > 0 else 0

    exercise_count = len(data.exercises)
    pr_exercises = sum(1 for exercise in data.exercises if _has_latest_pr(exercise.logs))
    pr_rate = round_half_up(pr_exercises / exercise_count * 100) if exercise_count > 0 else 0

    return [
        ProgressMetric(
            key='weekly',
            label='Weekly Goal',
            value=weekly_progress,
            description=f"{sets_this_week}/{WEEKLY_SET_GOAL} sets",
            icon='target',
            motivational_text=_weekly_text(weekly_progress),
        ),
        ProgressMetric(
            key='volume',
            label='Volume',
            value=min(abs(volume_change), 100),
            description=volume_description,
            icon='trending-up',
            motivational_text=_volume_text(volume_change),
        ),
        ProgressMetric(
            key='consistency',
            label='Consistency',
            value=consistency,
            description=f"{month_days} days this month",
            icon='flame',
            motivational_text=_consistency_text(consistency),
        ),
        ProgressMetric(
            key='pr',
            label='PR Rate',
            value=pr_rate,
            description=f"{pr_exercises}/{exercise_count} exercises",
            icon='trophy',
            motivational_text=_pr_text(pr_rate),
        ),
    ]


# --- Medals ---

def _monthly_prs(data: AppData, start_of_month: datetime) -> int:
    prs = 0
    for exercise in data.exercises:
        before = [log for log in exercise.logs if parse_timestamp(log.timestamp) < start_of_month]
        during = [log for log in exercise.logs if parse_timestamp(log.timestamp) >= start_of_month]
        if not before:
            # First month with this exercise: any set this month is a record.
            if during:
                prs += 1
            continue
        this_month_max = _max_lbs(during) if during else 0
        if this_month_max > _max_lbs(before):
            prs += 1
    return prs


def _most_recent_timestamp(logs: Sequence[ExerciseLog], now: datetime) -> str:
    if not logs:
        return to_iso(now)
    return max(logs, key=lambda log: parse_timestamp(log.timestamp)).timestamp


def calculate_medals(data: AppData, now: Optional[datetime] = None) -> List[MedalData]:
    """
    Evaluates the bronze, silver, gold and diamond achievements.

    Every medal is recomputed from scratch; nothing is remembered between calls,
    so a medal earned last week shows as unearned once its window rolls over.
    """
    windows = time_windows(now)
    now = windows.now
    now_iso = to_iso(now)
    all_logs = _all_logs(data)

    this_week = [log for log in all_logs if _in_window(log, windows.start_of_week)]
    last_week = [log for log in all_logs if _in_window(log, windows.last_week_start, windows.start_of_week)]

    # Bronze: Consistency Builder
    workout_days_this_week = _workout_days(this_week)
    bronze_earned = workout_days_this_week >= BRONZE_WORKOUT_DAYS_TARGET
    bronze_left = BRONZE_WORKOUT_DAYS_TARGET - workout_days_this_week

    # Silver: Volume Chaser
    this_week_volume = _volume(this_week)
    volume_increase = _percent_change(this_week_volume, _volume(last_week))
    silver_earned = volume_increase >= SILVER_VOLUME_INCREASE_TARGET
    silver_progress = max(0, min(round_half_up(volume_increase), SILVER_VOLUME_INCREASE_TARGET))

    # Gold: PR Crusher
    prs_this_month = _monthly_prs(data, windows.start_of_month)
    gold_earned = prs_this_month >= GOLD_MONTHLY_PR_TARGET
    gold_left = GOLD_MONTHLY_PR_TARGET - prs_this_month

    # Diamond: Elite Athlete
    weekly_days = []
    for weeks_back in range(DIAMOND_STREAK_WEEKS):
        week_start = shift_local_days(windows.start_of_week, -7 * weeks_back)
        week_end = shift_local_days(week_start, 7)
        weekly_days.append(_workout_days(log for log in all_logs if _in_window(log, week_start, week_end)))
    has_streak = all(days >= 1 for days in weekly_days)

    lookback_end = shift_local_days(now, -DIAMOND_LOOKBACK_DAYS)
    lookback_start = shift_local_days(lookback_end, -7)
    lookback_volume = _volume(log for log in all_logs if _in_window(log, lookback_start, lookback_end))
    volume_goal_met = _percent_change(this_week_volume, lookback_volume) >= DIAMOND_VOLUME_INCREASE_TARGET
    diamond_earned = has_streak and volume_goal_met
    diamond_progress = int(has_streak) + int(volume_goal_met)

    if diamond_earned:
        diamond_text = "You've reached elite status!"
    elif has_streak:
        diamond_text = "Keep pushing volume! Almost there! ⚡"
    else:
        diamond_text = "Build your streak first! 📈"

    return [
        MedalData(
            id='bronze',
            tier=MedalTier.BRONZE,
            icon='🥉',
            title='Consistency Builder',
            description='Work out 3+ times this week',
            current=workout_days_this_week,
            target=BRONZE_WORKOUT_DAYS_TARGET,
            earned=bronze_earned,
            earned_date=_most_recent_timestamp(this_week, now) if bronze_earned else None,
            motivational_text=(
                "You're building unstoppable habits!" if bronze_earned
                else f"{bronze_left} more {_plural(bronze_left, 'workout')} to unlock! 💪"
            ),
        ),
        MedalData(
            id='silver',
            tier=MedalTier.SILVER,
            icon='🥈',
            title='Volume Chaser',
            description='Lift 10% more than last week',
            current=silver_progress,
            target=SILVER_VOLUME_INCREASE_TARGET,
            earned=silver_earned,
            earned_date=now_iso if silver_earned else None,
            motivational_text=(
                "Your strength is skyrocketing!" if silver_earned
                else f"Push {SILVER_VOLUME_INCREASE_TARGET - silver_progress}% more volume! 🔥"
            ),
        ),
        MedalData(
            id='gold',
            tier=MedalTier.GOLD,
            icon='🥇',
            title='PR Crusher',
            description='Hit 5+ personal records this month',
            current=prs_this_month,
            target=GOLD_MONTHLY_PR_TARGET,
            earned=gold_earned,
            earned_date=now_iso if gold_earned else None,
            motivational_text=(
                "You're a record-breaking machine!" if gold_earned
                else f"{gold_left} more {_plural(gold_left, 'PR')} to go! 🏆"
            ),
        ),
        MedalData(
            id='diamond',
            tier=MedalTier.DIAMOND,
            icon='💎',
            title='Elite Athlete',
            description='4 week streak + 20% volume increase',
            current=diamond_progress,
            target=2,
            earned=diamond_earned,
            earned_date=now_iso if diamond_earned else None,
            motivational_text=diamond_text,
        ),
    ]


__all__ = [
    "TimeWindows",
    "time_windows",
    "calculate_progress_metrics",
    "calculate_medals",
]
