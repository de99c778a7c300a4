"""
Core Constants
==============
System-wide constants for the kasina session core.

This module defines the tunables shared by the timer, the session
checkpoint store, the retry queue and the presence mapper:

- Package version information
- Timer tick and drift-correction parameters
- Session checkpoint and recovery windows
- Retry queue bounds
- Presence mapping limits
- Persisted storage keys

All constants are defined at module level for easy import and use. Hosts
override the session tunables through settings.json (see config.py).

Module: core.constants
Version: 1.0.0
"""

# ============================================================================
# Package Version
# ============================================================================

PACKAGE_VERSION = "1.0.0"
"""
Current version of the session core.

Logged when KasinaSessionApp starts and reported by its get_status().
"""

# ============================================================================
# Timer Constants
# ============================================================================

TICK_INTERVAL_MS = 1000
"""
Nominal timer tick cadence in milliseconds (1 second).

KasinaSessionApp.run() ticks the session at this rate. The timer never
trusts the cadence: elapsed time is always recomputed from timestamps.
"""

DRIFT_TOLERANCE_SEC = 2
"""
Maximum disagreement between the naive tick count and the timestamp-derived
elapsed value before a correction event is reported.

Differences at or below this tolerance are normal jitter of the host
scheduler and are not logged.
"""

STALL_THRESHOLD_MS = 5000
"""
Time without an observed tick after which validate() forces a recomputation.

Background tabs and suspended processes may stop delivering ticks
entirely; validate() is called on visibility regain and on its own
cadence to catch this.
"""

# ============================================================================
# Session Checkpoint Constants
# ============================================================================

CHECKPOINT_INTERVAL_SEC = 30
"""
Interval between session checkpoints in seconds.

Bounds the amount of meditation time that can be lost when the process
dies without warning.
"""

FRESHNESS_WINDOW_MS = 120000
"""
Maximum age of a regular checkpoint that is still trusted for recovery (2 minutes).

Older records are discarded rather than resurrected with a fabricated
duration.
"""

EMERGENCY_FRESHNESS_WINDOW_MS = 300000
"""
Maximum age of an emergency checkpoint that is still trusted for recovery (5 minutes).

Emergency checkpoints are written on an abrupt exit (page hidden,
fullscreen exit) and carry the exact duration at that moment.
"""

MINIMUM_SESSION_SEC = 60
"""
Shortest session that is submitted to the backend (one whole minute).

Durations are rounded down to whole minutes before this check, so a
59 second session is treated as an accidental activation.
"""

# ============================================================================
# Retry Queue Constants
# ============================================================================

RETRY_QUEUE_MAX = 10
"""
Maximum number of failed session records kept for retry.

When full, the oldest record is dropped first.
"""

# ============================================================================
# Presence Mapping Constants
# ============================================================================

HARD_SIZE_CEILING = 1800.0
"""
Upper bound on presence size shared by every profile, in pixel-like units.

Caps worst-case rendering cost regardless of profile and user multiplier.
"""

BACKGROUND_INTENSITY_FLOOR = 0.1
"""
Lowest background intensity reported to the renderer.
"""

# ============================================================================
# Persisted Storage Keys
# ============================================================================

ACTIVE_SESSION_KEY = "active-session-record"
FAILED_SESSION_QUEUE_KEY = "failed-session-queue"
TIMER_TARGET_KEY = "timer-target-duration"
