# Standalone training calculators: estimated 1RM, barbell plate loading,
# session volume, a quick overload check and unit conversion.
# Weights are in the unit the caller supplies; plate math assumes lbs plates.

import math

from coach.constants import (
    BAR_WEIGHT_LBS,
    CALCULATOR_DECREASE_STEP,
    CALCULATOR_KG_TO_LBS,
    CALCULATOR_MAINTAIN_WINDOW_REPS,
    CALCULATOR_OVERLOAD_FACTOR,
    ONE_REP_MAX_PERCENTAGES,
    STANDARD_PLATES_LBS,
)
from coach.units import VALID_UNITS, UNIT_KG, round_half_up


def _require_positive_weight(weight: float, name: str = 'weight') -> None:
    if weight <= 0:
        raise ValueError(f"'{name}' must be positive.")


def _require_reps(reps: int, name: str = 'reps') -> None:
    if reps < 1:
        raise ValueError(f"'{name}' must be 1 or greater.")


def one_rep_max(weight: float, reps: int) -> dict:
    """
    Epley estimate: 1RM = w * (1 + r / 30), rounded to a whole number,
    plus the training-weight table from 100% down to 60%.
    """
    _require_positive_weight(weight)
    _require_reps(reps)
    estimated = round_half_up(weight * (1 + reps / 30.0))
    return {
        'one_rep_max': estimated,
        'percentages': [
            {'percent': percent, 'weight': round_half_up(estimated * percent / 100)}
            for percent in ONE_REP_MAX_PERCENTAGES
        ],
    }


def plate_breakdown(
    target_weight: float,
    bar_weight: float = BAR_WEIGHT_LBS,
    plates: tuple = STANDARD_PLATES_LBS,
) -> dict | None:
    """
    Greedy per-side plate loading for a barbell.

    Returns None when the target is lighter than the empty bar. The achievable
    weight can fall short of the target when the smallest plate cannot close
    the gap.
    """
    if target_weight < bar_weight:
        return None
    weight_per_side = (target_weight - bar_weight) / 2
    remaining = weight_per_side
    loaded = []
    for plate in sorted(plates, reverse=True):
        count = int(remaining // plate)
        if count > 0:
            loaded.append({'weight': plate, 'count': count})
            remaining -= count * plate
    return {
        'target_weight': target_weight,
        'bar_weight': bar_weight,
        'plates_per_side': loaded,
        'achievable_weight': bar_weight + (weight_per_side - remaining) * 2,
    }


def _parse_set(entry: dict) -> tuple[float, int] | None:
    if not entry.get('weight') or not entry.get('reps'):
        return None
    try:
        weight = float(entry['weight'])
        reps = int(float(entry['reps']))
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(weight):
        return None
    return weight, reps


def volume_summary(sets: list[dict]) -> dict | None:
    """Totals for a list of {'weight', 'reps'} entries; incomplete or non-numeric entries are skipped."""
    complete = [parsed for parsed in (_parse_set(s) for s in sets) if parsed is not None]
    if not complete:
        return None
    total_volume = sum(weight * reps for weight, reps in complete)
    total_reps = sum(reps for _, reps in complete)
    total_weight = sum(weight for weight, _ in complete)
    return {
        'total_volume': round_half_up(total_volume),
        'total_sets': len(complete),
        'total_reps': total_reps,
        'avg_weight': round_half_up(total_weight / len(complete)),
    }


def overload_check(weight: float, target_reps: int, reps_completed: int) -> dict:
    _require_positive_weight(weight)
    _require_reps(target_reps, 'target_reps')
    if reps_completed < 0:
        raise ValueError("'reps_completed' cannot be negative.")

    if reps_completed >= target_reps:
        return {
            'status': 'increase',
            'message': 'Ready to progress',
            'new_weight': round_half_up(weight * CALCULATOR_OVERLOAD_FACTOR),
            'percent_change': round((CALCULATOR_OVERLOAD_FACTOR - 1) * 100, 1),
        }
    if reps_completed >= target_reps - CALCULATOR_MAINTAIN_WINDOW_REPS:
        return {'status': 'maintain', 'message': 'Keep current weight', 'new_weight': weight}
    return {
        'status': 'decrease',
        'message': 'Focus on form',
        'new_weight': max(weight - CALCULATOR_DECREASE_STEP, 0),
    }


def convert_weight(weight: float, from_unit: str, to_unit: str) -> float:
    """Calculator-screen conversion (factor 2.205, whole numbers)."""
    for unit in (from_unit, to_unit):
        if unit not in VALID_UNITS:
            raise ValueError(f"Unknown unit '{unit}'. Expected one of {', '.join(VALID_UNITS)}.")
    if from_unit == to_unit:
        return weight
    if to_unit == UNIT_KG:
        return round_half_up(weight / CALCULATOR_KG_TO_LBS)
    return round_half_up(weight * CALCULATOR_KG_TO_LBS)
