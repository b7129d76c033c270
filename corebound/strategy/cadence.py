"""Decision cadence normalization and tick timing.

A strategy's cadence is stored as a single ``cadenceSeconds`` value inside
its filters, while clients edit it as three fields (hours, minutes,
seconds). The seconds field doubles as the "minimum 60" placeholder when
hours and minutes are both zero, so it is ignored once either of them is
set. Without that rule "1 minute" plus the placeholder "60 seconds" would
be saved as 120 seconds.

Example:
    >>> total_cadence_seconds(0, 1, 60)
    60
    >>> split_cadence(90)
    CadenceParts(hours=0, minutes=1, seconds=30)
    >>> format_cadence(1, 5, 0)
    '1 hour 5 minutes'
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional, Union

from ..validation import ValidationError

logger = logging.getLogger(__name__)

MIN_CADENCE_SECONDS = 60
DEFAULT_SESSION_CADENCE_SECONDS = 30

FieldValue = Union[int, float, str, None]


@dataclass
class CadenceParts:
    """Cadence expressed as form fields."""

    hours: int
    minutes: int
    seconds: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _field(value: FieldValue) -> int:
    """Read a form field, treating blank, None and non-numbers as 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0
        try:
            value = float(value)
        except ValueError:
            return 0
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return int(value)


def total_cadence_seconds(hours: FieldValue, minutes: FieldValue, seconds: FieldValue) -> int:
    """Combine cadence form fields into seconds.

    Args:
        hours: Hours field (blank counts as 0)
        minutes: Minutes field (blank counts as 0)
        seconds: Seconds field, ignored when hours or minutes are set

    Returns:
        Total cadence in seconds, at least 60 when hours and minutes are 0

    Examples:
        >>> total_cadence_seconds(0, 1, 60)
        60
        >>> total_cadence_seconds("", "", 30)
        60
        >>> total_cadence_seconds(1, 5, 30)
        3900
    """
    h = _field(hours)
    m = _field(minutes)
    s = _field(seconds)

    if h > 0 or m > 0:
        s = 0

    if h == 0 and m == 0 and s < MIN_CADENCE_SECONDS:
        s = MIN_CADENCE_SECONDS

    return h * 3600 + m * 60 + s


def split_cadence(cadence_seconds: Optional[Union[int, float]]) -> CadenceParts:
    """Decompose a stored cadence into form fields.

    A missing or sub-minute cadence loads as 60 seconds.

    Examples:
        >>> split_cadence(None)
        CadenceParts(hours=0, minutes=1, seconds=0)
        >>> split_cadence(3661)
        CadenceParts(hours=1, minutes=1, seconds=1)
    """
    value = _field(cadence_seconds) or MIN_CADENCE_SECONDS
    if value < MIN_CADENCE_SECONDS:
        value = MIN_CADENCE_SECONDS

    hours = value // 3600
    remaining = value % 3600
    minutes = remaining // 60
    seconds = remaining % 60

    if seconds > 0 and minutes > 0:
        # fold whole minutes out of the seconds part
        minutes += seconds // 60
        seconds = seconds % 60
        return CadenceParts(hours, minutes, seconds)

    if hours == 0 and minutes == 0:
        seconds = max(seconds, MIN_CADENCE_SECONDS)

    return CadenceParts(hours, minutes, seconds)


def clamp_seconds_field(value: FieldValue, hours: FieldValue, minutes: FieldValue) -> int:
    """Clamp an edited seconds field against the other two fields.

    With hours or minutes set the field is limited to 0..59, otherwise it
    is pinned to the 60 second minimum.
    """
    if _field(hours) == 0 and _field(minutes) == 0:
        return MIN_CADENCE_SECONDS
    return max(0, min(59, _field(value)))


def format_cadence(hours: FieldValue, minutes: FieldValue, seconds: FieldValue) -> str:
    """Human readable cadence, e.g. "2 minutes 30 seconds"."""
    parts = []
    for amount, unit in ((_field(hours), "hour"), (_field(minutes), "minute"), (_field(seconds), "second")):
        if amount > 0:
            parts.append(f"{amount} {unit}{'s' if amount != 1 else ''}")
    return " ".join(parts) if parts else "0 seconds"


def should_tick(now_ms: int, last_tick_at_ms: Optional[int], cadence_seconds: int) -> bool:
    """Decide whether a running session is due for its next decision.

    A session that never ticked is always due. Otherwise it is due once a
    full cadence has elapsed since the last tick, so a late run ticks
    immediately and an early run waits without shifting the schedule.

    Args:
        now_ms: Current time in epoch milliseconds
        last_tick_at_ms: Last tick in epoch milliseconds, None or 0 if never
        cadence_seconds: Session cadence

    Returns:
        True when the session should tick now
    """
    if not last_tick_at_ms:
        return True
    return now_ms - last_tick_at_ms >= cadence_seconds * 1000


def coerce_cadence_seconds(value: Any) -> Optional[Union[int, float]]:
    """Read a submitted cadenceSeconds value as a number.

    Numeric strings such as ``"120"`` are converted. An empty value means
    no cadence is configured.

    Raises:
        ValidationError: If the value is set but is not a finite number
    """
    if value is None or value == "" or value is False:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as e:
            raise ValidationError("cadenceSeconds must be a number", field="cadenceSeconds") from e
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError("cadenceSeconds must be a number", field="cadenceSeconds")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def with_numeric_cadence(filters: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of filters with cadenceSeconds stored as a number."""
    if not filters or "cadenceSeconds" not in filters:
        return filters
    return {**filters, "cadenceSeconds": coerce_cadence_seconds(filters["cadenceSeconds"])}


def check_minimum_cadence(filters: Optional[Mapping[str, Any]]) -> None:
    """Reject filters whose configured cadence is below one minute.

    Raises:
        ValidationError: If cadenceSeconds is not a number, or is set and below 60
    """
    if not filters:
        return
    cadence = coerce_cadence_seconds(filters.get("cadenceSeconds"))
    if cadence and cadence < MIN_CADENCE_SECONDS:
        logger.warning(f"Rejected cadence below minimum: {cadence}s")
        raise ValidationError(
            "Minimum AI cadence is 60 seconds (1 minute). The system checks for decisions every minute.",
            field="cadenceSeconds",
        )


def session_cadence(filters: Optional[Mapping[str, Any]]) -> int:
    """Cadence a new session runs at, 30 seconds when none is configured."""
    cadence = (filters or {}).get("cadenceSeconds")
    if isinstance(cadence, bool) or not isinstance(cadence, int) or cadence <= 0:
        return DEFAULT_SESSION_CADENCE_SECONDS
    return cadence
