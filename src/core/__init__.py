"""
Core Module
===========
Core type definitions and constants for the kasina session core.

This module provides the foundational types, enums, and constants used
by the timer, the presence mapper and the session components.

Exports:
    Types:
        - SessionState: Session state machine states
        - StopReason: Why a session ended
        - BreathSample: Breath amplitude reading
        - PresenceMappingProfile: Breath-to-size configuration
        - PresenceResult: Presence mapper output
        - SessionRecord: Session on its way to the backend
        - SessionInfo: Active session snapshot

    Constants:
        - PACKAGE_VERSION
        - Timer: TICK_INTERVAL_MS, DRIFT_TOLERANCE_SEC, STALL_THRESHOLD_MS
        - Sessions: CHECKPOINT_INTERVAL_SEC, FRESHNESS_WINDOW_MS,
          EMERGENCY_FRESHNESS_WINDOW_MS, MINIMUM_SESSION_SEC
        - Retry queue: RETRY_QUEUE_MAX
        - Presence: HARD_SIZE_CEILING, BACKGROUND_INTENSITY_FLOOR
        - Storage keys

Module: core
Version: 1.0.0
"""

from core.types import (
    SessionState,
    StopReason,
    BreathSample,
    PresenceMappingProfile,
    PresenceResult,
    SessionRecord,
    SessionInfo,
)

from core.constants import (
    PACKAGE_VERSION,

    # Timer
    TICK_INTERVAL_MS,
    DRIFT_TOLERANCE_SEC,
    STALL_THRESHOLD_MS,

    # Sessions
    CHECKPOINT_INTERVAL_SEC,
    FRESHNESS_WINDOW_MS,
    EMERGENCY_FRESHNESS_WINDOW_MS,
    MINIMUM_SESSION_SEC,

    # Retry queue
    RETRY_QUEUE_MAX,

    # Presence
    HARD_SIZE_CEILING,
    BACKGROUND_INTENSITY_FLOOR,

    # Storage keys
    ACTIVE_SESSION_KEY,
    FAILED_SESSION_QUEUE_KEY,
    TIMER_TARGET_KEY,
)

__all__ = [
    # Types
    "SessionState",
    "StopReason",
    "BreathSample",
    "PresenceMappingProfile",
    "PresenceResult",
    "SessionRecord",
    "SessionInfo",

    # Constants
    "PACKAGE_VERSION",
    "TICK_INTERVAL_MS",
    "DRIFT_TOLERANCE_SEC",
    "STALL_THRESHOLD_MS",
    "CHECKPOINT_INTERVAL_SEC",
    "FRESHNESS_WINDOW_MS",
    "EMERGENCY_FRESHNESS_WINDOW_MS",
    "MINIMUM_SESSION_SEC",
    "RETRY_QUEUE_MAX",
    "HARD_SIZE_CEILING",
    "BACKGROUND_INTENSITY_FLOOR",
    "ACTIVE_SESSION_KEY",
    "FAILED_SESSION_QUEUE_KEY",
    "TIMER_TARGET_KEY",
]

__version__ = PACKAGE_VERSION
