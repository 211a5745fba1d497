"""Numeric input coercion shared by progress and feedback."""

from __future__ import annotations

import math

from edgate.errors import ValidationError


def clamp_to_int(value: object, field: str, low: int, high: int) -> int:
    """Clamp a number into ``[low, high]`` and round half up.

    Out-of-range numbers are clamped, not rejected. Non-numbers, booleans and
    NaN raise ValidationError.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, float) and math.isnan(value):
        raise ValidationError(f"{field} must not be NaN", field=field)
    clamped = min(max(value, low), high)
    return int(math.floor(clamped + 0.5))
