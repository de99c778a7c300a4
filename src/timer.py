"""
Drift-Corrected Timer
=====================
Countdown or count-up meditation timer that survives throttled hosts.

The host calls tick() on a nominal one-second cadence, but the timer never
counts ticks. Every tick recomputes elapsed and remaining time from the
absolute timestamps of the current run segment, so delayed, batched or
dropped ticks (background tabs, suspended laptops) cannot make the
displayed time drift from the wall clock.

State is split in two:
- TimerSettings: the target duration, the only persisted value
- TimerRuntime: timestamps, running flag and derived values, never persisted

A reload therefore never resumes a stale countdown with fabricated
elapsed time.

Classes:
    TimerSettings: Persisted target duration
    TimerRuntime: Transient run state
    TimerUpdate: Result of every timer operation that reads the clock
    DriftCorrectedTimer: The timer

Module: timer
Version: 1.0.0
"""

import json
import logging
from dataclasses import dataclass

from core.constants import DRIFT_TOLERANCE_SEC, STALL_THRESHOLD_MS, TIMER_TARGET_KEY
from utils.validation import validate_duration

logger = logging.getLogger(__name__)


# ============================================================================
# Timer State
# ============================================================================

class TimerSettings:
    """
    Persisted timer configuration.

    Attributes:
        target_duration_seconds: Countdown target in whole seconds, or None
            for count-up mode
    """

    def __init__(self, target_duration_seconds=None):
        self.target_duration_seconds = validate_duration(
            target_duration_seconds, "target_duration_seconds"
        )

    @property
    def duration_in_minutes(self):
        """Target rounded to the nearest minute for labels, or None."""
        if self.target_duration_seconds is None:
            return None
        return int(round(self.target_duration_seconds / 60))

    def to_dict(self):
        return {"target_duration_seconds": self.target_duration_seconds}

    @classmethod
    def from_dict(cls, data):
        return cls(data.get("target_duration_seconds"))

    def save(self, store):
        """
        Persist settings under the timer target key.

        Raises:
            OSError: If the store write fails
        """
        store.set(TIMER_TARGET_KEY, json.dumps(self.to_dict()))

    @classmethod
    def load(cls, store):
        """
        Load settings from the store.

        Missing or unreadable values fall back to count-up mode.
        """
        raw = store.get(TIMER_TARGET_KEY)
        if raw is None:
            return cls()

        try:
            return cls.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"[Timer] Ignoring unreadable persisted target {raw!r}: {e}")
            return cls()


class TimerRuntime:
    """
    Transient timer state. Never persisted.

    Attributes:
        is_running: True while a run segment is active
        started_at_ms: Start of the current run segment (epoch ms)
        expected_end_ms: Deadline of the current run segment, None in count-up mode
        carried_elapsed_ms: Time accumulated by earlier run segments
        last_tick_ms: When tick() or validate() last recomputed
        elapsed_seconds: Floor of elapsed time at the last recomputation
        remaining_seconds: Ceiling of remaining time, None in count-up mode
        completion_fired: True once the current run has reported completion
    """

    def __init__(self, remaining_seconds=None):
        self.is_running = False
        self.started_at_ms = None
        self.expected_end_ms = None
        self.carried_elapsed_ms = 0
        self.last_tick_ms = None
        self.elapsed_seconds = 0
        self.remaining_seconds = remaining_seconds
        self.completion_fired = False


@dataclass(frozen=True)
class TimerUpdate:
    """
    Timer values after an operation.

    Attributes:
        elapsed_seconds: Elapsed time, floor-rounded
        remaining_seconds: Remaining time, ceiling-rounded, None when counting up
        is_running: Whether the timer is still running
        completed: True only on the single update that completed the run
        drift_correction_seconds: Recomputed minus naive elapsed, when the
            difference exceeded the drift tolerance; otherwise 0
        stall_recovered: True when validate() forced the recomputation
    """
    elapsed_seconds: int
    remaining_seconds: object
    is_running: bool
    completed: bool = False
    drift_correction_seconds: int = 0
    stall_recovered: bool = False


# ============================================================================
# Timer
# ============================================================================

class DriftCorrectedTimer:
    """
    Meditation timer driven by ticks but computed from timestamps.

    Usage:
        timer = DriftCorrectedTimer(SystemClock(), store)
        timer.set_target(600)
        timer.start()

        # every second
        update = timer.tick()
        if update.completed:
            end_session()

        # on visibility regain
        timer.validate()
    """

    def __init__(
        self,
        clock,
        store=None,
        target_duration_seconds=None,
        drift_tolerance_sec=DRIFT_TOLERANCE_SEC,
        stall_threshold_ms=STALL_THRESHOLD_MS,
    ):
        """
        Initialize a stopped timer.

        Args:
            clock: ClockSource providing epoch milliseconds
            store: Optional KeyValueStore used to persist the target
            target_duration_seconds: Initial target, None for count-up
            drift_tolerance_sec: Tick disagreement reported as a correction
            stall_threshold_ms: Silence after which validate() recomputes
        """
        self._clock = clock
        self._store = store
        self._drift_tolerance_sec = drift_tolerance_sec
        self._stall_threshold_ms = stall_threshold_ms
        self._settings = TimerSettings(target_duration_seconds)
        self._runtime = TimerRuntime(self._settings.target_duration_seconds)

    @classmethod
    def restore(cls, clock, store, **kwargs):
        """
        Rebuild a stopped timer from the persisted target.

        Only the target survives a restart; elapsed time starts at zero.
        """
        settings = TimerSettings.load(store)
        logger.info(f"[Timer] Restored target: {settings.target_duration_seconds}")
        return cls(clock, store, settings.target_duration_seconds, **kwargs)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def settings(self):
        return self._settings

    @property
    def target_duration_seconds(self):
        return self._settings.target_duration_seconds

    @property
    def is_running(self):
        return self._runtime.is_running

    @property
    def elapsed_seconds(self):
        return self._runtime.elapsed_seconds

    @property
    def remaining_seconds(self):
        return self._runtime.remaining_seconds

    @property
    def is_complete(self):
        return self._runtime.completion_fired

    def snapshot(self):
        """Current values as a TimerUpdate, without reading the clock."""
        rt = self._runtime
        return TimerUpdate(
            elapsed_seconds=rt.elapsed_seconds,
            remaining_seconds=rt.remaining_seconds,
            is_running=rt.is_running,
        )

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def set_target(self, duration_seconds):
        """
        Set the countdown target.

        Args:
            duration_seconds: Whole seconds, or None for count-up mode

        Returns:
            True if the target was set, False if the timer is running

        Raises:
            ValueError: If duration is negative or not whole seconds
        """
        validate_duration(duration_seconds, "target duration")

        if self._runtime.is_running:
            logger.warning("[Timer] Cannot change target while running")
            return False

        self._settings = TimerSettings(duration_seconds)
        self._runtime = TimerRuntime(duration_seconds)
        self._persist_settings()
        return True

    def start(self):
        """
        Start or resume the timer.

        A countdown that already completed is reset before starting again.

        Returns:
            True if the timer started, False if it was already running
        """
        rt = self._runtime
        if rt.is_running:
            return False

        target = self._settings.target_duration_seconds
        if rt.completion_fired or (target is not None and rt.remaining_seconds == 0):
            rt = self._runtime = TimerRuntime(target)

        now = self._clock.now_ms()
        rt.is_running = True
        rt.started_at_ms = now
        rt.last_tick_ms = now
        if target is not None:
            rt.expected_end_ms = now + target * 1000 - rt.carried_elapsed_ms

        logger.info(
            f"[Timer] Started at {now} (target={target}, carried={rt.carried_elapsed_ms}ms)"
        )
        return True

    def stop(self):
        """
        Stop the timer.

        Displayed values stay at the last computed tick; the real elapsed
        time of this run segment is carried into the next start().

        Returns:
            True if the timer stopped, False if it was not running
        """
        rt = self._runtime
        if not rt.is_running:
            return False

        now = self._clock.now_ms()
        rt.carried_elapsed_ms += max(0, now - rt.started_at_ms)
        rt.is_running = False
        rt.started_at_ms = None
        rt.expected_end_ms = None
        rt.last_tick_ms = None

        logger.info(f"[Timer] Stopped at {rt.elapsed_seconds}s elapsed")
        return True

    def reset(self):
        """Stop the timer and restore elapsed 0 / remaining target."""
        self._runtime = TimerRuntime(self._settings.target_duration_seconds)
        return True

    # ------------------------------------------------------------------
    # Clock-driven updates
    # ------------------------------------------------------------------

    def tick(self):
        """
        Recompute elapsed and remaining time from timestamps.

        Returns:
            TimerUpdate; completed is True exactly once per run
        """
        if not self._runtime.is_running:
            return self.snapshot()

        return self._recompute(self._clock.now_ms(), stall_recovered=False)

    def validate(self):
        """
        Recover from a host that stopped delivering ticks.

        If the timer is running but no tick was observed for longer than the
        stall threshold, recompute from timestamps now, completing the run
        if its deadline has already passed.

        Returns:
            TimerUpdate; stall_recovered is True when a recomputation was forced
        """
        rt = self._runtime
        if not rt.is_running:
            return self.snapshot()

        now = self._clock.now_ms()
        silence_ms = now - rt.last_tick_ms
        if silence_ms <= self._stall_threshold_ms:
            return self.snapshot()

        logger.info(f"[Timer] No tick for {silence_ms}ms, forcing recomputation")
        return self._recompute(now, stall_recovered=True)

    def _recompute(self, now, stall_recovered):
        rt = self._runtime
        target = self._settings.target_duration_seconds

        elapsed_ms = rt.carried_elapsed_ms + max(0, now - rt.started_at_ms)
        authoritative = elapsed_ms // 1000
        naive = rt.elapsed_seconds + 1

        correction = 0
        if abs(authoritative - naive) > self._drift_tolerance_sec:
            correction = authoritative - naive
            logger.info(
                f"[Timer] Drift corrected: naive={naive}s, actual={authoritative}s "
                f"({correction:+d}s)"
            )

        rt.last_tick_ms = now

        if target is not None and now >= rt.expected_end_ms:
            return self._complete(target, correction, stall_recovered)

        rt.elapsed_seconds = authoritative
        if target is not None:
            # ceiling of (expected_end - now) / 1000
            rt.remaining_seconds = max(0, -((now - rt.expected_end_ms) // 1000))

        return TimerUpdate(
            elapsed_seconds=rt.elapsed_seconds,
            remaining_seconds=rt.remaining_seconds,
            is_running=True,
            drift_correction_seconds=correction,
            stall_recovered=stall_recovered,
        )

    def _complete(self, target, correction, stall_recovered):
        rt = self._runtime
        rt.is_running = False
        rt.started_at_ms = None
        rt.expected_end_ms = None
        rt.carried_elapsed_ms = target * 1000
        rt.elapsed_seconds = target
        rt.remaining_seconds = 0

        fired = not rt.completion_fired
        rt.completion_fired = True
        if fired:
            logger.info(f"[Timer] Completed {target}s countdown")

        return TimerUpdate(
            elapsed_seconds=target,
            remaining_seconds=0,
            is_running=False,
            completed=fired,
            drift_correction_seconds=correction,
            stall_recovered=stall_recovered,
        )

    def _persist_settings(self):
        if self._store is None:
            return
        try:
            self._settings.save(self._store)
        except OSError as e:
            logger.error(f"[Timer] Failed to persist target: {e}")
