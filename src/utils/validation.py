"""
Validation Utilities
====================
Common validation and clamping helpers for the session core.

This module provides:
- Numeric range validation
- Duration validation for timer targets
- Clamping helpers used at the sensor boundary

Validators raise ValueError with descriptive messages on failure; the
clamp helpers never raise.

Usage:
    from utils.validation import validate_range, validate_duration, clamp01

    interval = validate_range(value, 1, 600, "checkpoint interval")
    target = validate_duration(300)
    amplitude = clamp01(reading)

Module: utils.validation
Version: 1.0.0
"""

import math


def validate_range(
    value, min_value, max_value, name="value"
):
    """
    Validate that a numeric value is within specified range.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive)
        name: Name of value for error message

    Returns:
        The validated value (unchanged)

    Raises:
        ValueError: If value is outside range

    Example:
        interval = validate_range(30, 1, 600, "checkpoint interval")
        # interval = 30

        interval = validate_range(0, 1, 600, "checkpoint interval")
        # Raises: ValueError: checkpoint interval must be between 1 and 600, got 0
    """
    if not (min_value <= value <= max_value):
        raise ValueError(
            f"{name} must be between {min_value} and {max_value}, got {value}"
        )
    return value


def validate_duration(duration_seconds, name="duration"):
    """
    Validate a timer target duration.

    None is accepted and means "no target" (count-up mode).

    Args:
        duration_seconds: Whole seconds, or None
        name: Name of value for error message

    Returns:
        The validated duration (unchanged)

    Raises:
        ValueError: If duration is negative or not an integer
    """
    if duration_seconds is None:
        return None

    if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
        raise ValueError(f"{name} must be whole seconds, got {duration_seconds!r}")

    if duration_seconds < 0:
        raise ValueError(f"{name} cannot be negative, got {duration_seconds}")

    return duration_seconds


def clamp(value, min_value, max_value):
    """Clamp value into [min_value, max_value]."""
    return max(min_value, min(max_value, value))


def clamp01(value):
    """
    Clamp value into [0, 1].

    NaN maps to 0.0 and infinities map to the nearest bound.
    """
    if math.isnan(value):
        return 0.0
    return clamp(value, 0.0, 1.0)
