"""Weight normalisation, rounding and timestamp helpers shared by the engine and aggregator."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Tuple

KG_TO_LBS = 2.20462

UNIT_LBS = 'lbs'
UNIT_KG = 'kg'
VALID_UNITS = (UNIT_LBS, UNIT_KG)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (94.5 -> 95, -94.5 -> -94)."""
    return int(math.floor(value + 0.5))


def to_lbs(weight: float, unit) -> float:
    unit_value = getattr(unit, 'value', unit)
    return weight * KG_TO_LBS if unit_value == UNIT_KG else weight


def parse_timestamp(value) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Accepts a trailing 'Z', an explicit offset, or a naive value which is read
    as local wall-clock time. datetime objects pass through (naive ones are
    localised the same way).
    """
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def local_now() -> datetime:
    return datetime.now().astimezone()


def as_local(moment: datetime) -> datetime:
    return parse_timestamp(moment).astimezone()


def shift_local_days(moment: datetime, days: int) -> datetime:
    """Move a moment by whole calendar days in local wall-clock time."""
    wall = as_local(moment).replace(tzinfo=None) + timedelta(days=days)
    return wall.astimezone()


def local_midnight(moment: datetime) -> datetime:
    wall = as_local(moment).replace(tzinfo=None)
    return wall.replace(hour=0, minute=0, second=0, microsecond=0).astimezone()


def day_key(moment) -> Tuple[int, int, int]:
    local = as_local(moment)
    return local.year, local.month, local.day


def to_iso(moment: datetime) -> str:
    return parse_timestamp(moment).isoformat()


def format_weight(weight: float) -> str:
    """Render 100.0 as '100' and 102.5 as '102.5'."""
    return f"{weight:g}"
