"""
Utils Module
============
Common utility functions for the kasina session core.

This module provides reusable utilities for:
- Validation helpers for durations and numeric ranges
- Clamping helpers for sensor input

Modules:
    validation: Common validation and clamping functions

Example:
    from utils.validation import validate_duration, clamp01

    target = validate_duration(600)
    amplitude = clamp01(raw_reading)

Module: utils
Version: 1.0.0
"""

from utils.validation import (
    validate_range,
    validate_duration,
    clamp,
    clamp01,
)

__all__ = [
    # Validation
    "validate_range",
    "validate_duration",
    "clamp",
    "clamp01",
]

__version__ = "1.0.0"
