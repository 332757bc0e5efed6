"""Trigger predicate evaluator.

Decides whether a single reminder should fire given the current context.
The evaluator is pure: no I/O, no clock reads beyond the default for `now`,
and it never raises on malformed records. Anything it cannot interpret is
a non-match.

Expected `details` payloads per trigger type:
    time       {"time": "2024-01-01T10:00:00Z"}
    location   {"location": {"latitude": 0.0, "longitude": 0.0, "radius_meters": 500}}
    condition  {"condition": {"kind": "weather", "label": "rain"}}
"""

import enum
from datetime import datetime, timezone
from typing import Any, Optional

from geo import Position, distance_meters


class TriggerType(str, enum.Enum):
    """Closed set of trigger kinds"""
    TIME = "time"
    LOCATION = "location"
    CONDITION = "condition"


def parse_instant(value: Any) -> Optional[datetime]:
    """Coerce a stored instant to an aware UTC datetime, or None if unusable."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _details_part(reminder, key: str) -> Optional[dict]:
    details = getattr(reminder, 'details', None)
    if not isinstance(details, dict):
        return None
    part = details.get(key)
    if key == 'time':
        return {'time': part} if part is not None else None
    return part if isinstance(part, dict) else None


def _time_matches(reminder, now: datetime) -> bool:
    part = _details_part(reminder, 'time')
    if part is None:
        return False
    due = parse_instant(part['time'])
    if due is None:
        return False
    return now >= due


def _location_matches(reminder, position: Optional[Position]) -> bool:
    if position is None:
        return False
    fence = _details_part(reminder, 'location')
    if fence is None:
        return False
    try:
        latitude = float(fence['latitude'])
        longitude = float(fence['longitude'])
        radius = float(fence['radius_meters'])
    except (KeyError, TypeError, ValueError):
        return False
    distance = distance_meters(position.latitude, position.longitude, latitude, longitude)
    return distance <= radius


def _condition_matches(reminder, weather: Optional[str]) -> bool:
    if not weather:
        return False
    condition = _details_part(reminder, 'condition')
    if condition is None:
        return False
    if condition.get('kind', 'weather') != 'weather':
        return False
    label = condition.get('label')
    if not isinstance(label, str) or not label:
        return False
    return weather.lower() == label.lower()


def should_trigger(
    reminder,
    position: Optional[Position],
    weather: Optional[str],
    now: Optional[datetime] = None
) -> bool:
    """Return True if the reminder's trigger condition holds right now.

    Args:
        reminder: Any object with `trigger_type` and `details` attributes
        position: Current device position, or None when unavailable
        weather: Current weather label, or None/"" when unknown
        now: Evaluation instant (default: current UTC time)

    Returns:
        bool: True on match. Unknown trigger types and malformed
        details never match.
    """
    trigger_type = getattr(reminder, 'trigger_type', None)

    if trigger_type == TriggerType.TIME:
        now = parse_instant(now) if now is not None else datetime.now(timezone.utc)
        return now is not None and _time_matches(reminder, now)
    if trigger_type == TriggerType.LOCATION:
        return _location_matches(reminder, position)
    if trigger_type == TriggerType.CONDITION:
        return _condition_matches(reminder, weather)
    return False
