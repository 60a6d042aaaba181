"""Data model shared by the recommendation engine, the aggregator and the storage layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class WeightUnit(Enum):
    LBS = 'lbs'
    KG = 'kg'


class RecommendationType(Enum):
    PROGRESSIVE_OVERLOAD = 'progressive_overload'
    ACCLIMATION = 'acclimation'
    MAINTAIN = 'maintain'
    ACUTE_DELOAD = 'acute_deload'
    SCHEDULED_DELOAD = 'scheduled_deload'
    INSUFFICIENT_DATA = 'insufficient_data'


class MedalTier(Enum):
    BRONZE = 'bronze'
    SILVER = 'silver'
    GOLD = 'gold'
    DIAMOND = 'diamond'


def _pick(raw: Dict[str, Any], snake: str, camel: str, default=None):
    # Browser exports use camelCase keys.
    if snake in raw:
        return raw[snake]
    return raw.get(camel, default)


@dataclass(frozen=True)
class ExerciseLog:
    id: str
    weight: float
    unit: WeightUnit
    reps: int
    timestamp: str
    recommendation: RecommendationType = RecommendationType.INSUFFICIENT_DATA

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'weight': self.weight,
            'unit': self.unit.value,
            'reps': self.reps,
            'timestamp': self.timestamp,
            'recommendation': self.recommendation.value,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ExerciseLog':
        return cls(
            id=str(raw['id']),
            weight=float(raw['weight']),
            unit=WeightUnit(raw.get('unit', WeightUnit.LBS.value)),
            reps=int(raw['reps']),
            timestamp=str(raw['timestamp']),
            recommendation=RecommendationType(
                raw.get('recommendation') or RecommendationType.INSUFFICIENT_DATA.value
            ),
        )


@dataclass(frozen=True)
class Exercise:
    id: str
    name: str
    min_reps: int
    goal_reps: int
    logs: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'min_reps': self.min_reps,
            'goal_reps': self.goal_reps,
            'logs': [log.to_dict() for log in self.logs],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'Exercise':
        return cls(
            id=str(raw['id']),
            name=raw['name'],
            min_reps=int(_pick(raw, 'min_reps', 'minReps')),
            goal_reps=int(_pick(raw, 'goal_reps', 'goalReps')),
            logs=tuple(ExerciseLog.from_dict(log) for log in raw.get('logs', [])),
        )


@dataclass(frozen=True)
class UserPreferences:
    default_unit: WeightUnit = WeightUnit.LBS
    has_seen_welcome: bool = False
    has_completed_onboarding: bool = False
    user_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'default_unit': self.default_unit.value,
            'has_seen_welcome': self.has_seen_welcome,
            'has_completed_onboarding': self.has_completed_onboarding,
            'user_name': self.user_name,
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'UserPreferences':
        raw = raw or {}
        return cls(
            default_unit=WeightUnit(_pick(raw, 'default_unit', 'defaultUnit', WeightUnit.LBS.value)),
            has_seen_welcome=bool(_pick(raw, 'has_seen_welcome', 'hasSeenWelcome', False)),
            has_completed_onboarding=bool(
                _pick(raw, 'has_completed_onboarding', 'hasCompletedOnboarding', False)
            ),
            user_name=_pick(raw, 'user_name', 'userName'),
        )


@dataclass(frozen=True)
class AppMetadata:
    first_log_date: Optional[str] = None
    last_deload_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'AppMetadata':
        raw = raw or {}
        return cls(
            first_log_date=_pick(raw, 'first_log_date', 'firstLogDate'),
            last_deload_date=_pick(raw, 'last_deload_date', 'lastDeloadDate'),
        )


@dataclass(frozen=True)
class AppData:
    exercises: tuple = ()
    user_preferences: UserPreferences = field(default_factory=UserPreferences)
    metadata: AppMetadata = field(default_factory=AppMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'exercises': [exercise.to_dict() for exercise in self.exercises],
            'user_preferences': self.user_preferences.to_dict(),
            'metadata': self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'AppData':
        raw = raw or {}
        return cls(
            exercises=tuple(Exercise.from_dict(e) for e in raw.get('exercises', [])),
            user_preferences=UserPreferences.from_dict(_pick(raw, 'user_preferences', 'userPreferences')),
            metadata=AppMetadata.from_dict(raw.get('metadata')),
        )


@dataclass(frozen=True)
class RecommendationResult:
    type: RecommendationType
    icon: str
    headline: str
    message: str
    suggested_weight: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'type': self.type.value,
            'icon': self.icon,
            'headline': self.headline,
            'message': self.message,
        }
        if self.suggested_weight is not None:
            result['suggested_weight'] = self.suggested_weight
        return result


@dataclass(frozen=True)
class MedalData:
    id: str
    tier: MedalTier
    icon: str
    title: str
    description: str
    current: int
    target: int
    earned: bool
    motivational_text: str
    earned_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['tier'] = self.tier.value
        return result


@dataclass(frozen=True)
class ProgressMetric:
    key: str
    label: str
    value: int
    description: str
    icon: str
    motivational_text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FriendshipStatus(Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'


@dataclass(frozen=True)
class Profile:
    user_id: str
    slug: str
    username: Optional[str] = None
    last_active: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Friendship:
    """A request from `user_id` to `friend_id`; accepted friendships work both ways."""
    id: str
    user_id: str
    friend_id: str
    status: FriendshipStatus
    created_at: str

    def other(self, user_id: str) -> str:
        return self.friend_id if self.user_id == user_id else self.user_id

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_id, self.friend_id)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['status'] = self.status.value
        return result


@dataclass(frozen=True)
class Activity:
    id: str
    user_id: str
    workout_type: str
    summary: str
    created_at: str
    duration: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "WeightUnit",
    "RecommendationType",
    "MedalTier",
    "ExerciseLog",
    "Exercise",
    "UserPreferences",
    "AppMetadata",
    "AppData",
    "RecommendationResult",
    "MedalData",
    "ProgressMetric",
    "FriendshipStatus",
    "Profile",
    "Friendship",
    "Activity",
]
