"""
Core Type Definitions
=====================
Type definitions for the kasina session core.

This module defines the enums and data classes shared by the timer, the
presence mapper and the session components.

Types:
    - SessionState: Session state machine states (Enum)
    - StopReason: Why a session ended (Enum)
    - BreathSample: A single breath amplitude reading (Class)
    - PresenceMappingProfile: Immutable breath-to-size configuration (Class)
    - PresenceResult: Output of the presence mapper (Class)
    - SessionRecord: A meditation session on its way to the backend (Class)
    - SessionInfo: Snapshot of the active session (Class)

Module: core.types
Version: 1.0.0
"""

from dataclasses import dataclass
from enum import Enum


class SessionState(Enum):
    """
    Session state machine states.

    State transitions:
        IDLE -> RUNNING <-> PAUSED -> STOPPING -> IDLE

    States:
        IDLE: No active session
        RUNNING: Timer advancing, checkpoints being written
        PAUSED: Timer stopped, session still open
        STOPPING: Session being finalized and handed off
    """
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"

    def is_active(self):
        """Check if state represents an active session (running or paused)."""
        return self in (SessionState.RUNNING, SessionState.PAUSED)

    def can_start(self):
        """Check if a session can be started from this state."""
        return self == SessionState.IDLE

    def can_pause(self):
        """Check if the session can be paused from this state."""
        return self == SessionState.RUNNING

    def can_resume(self):
        """Check if the session can be resumed from this state."""
        return self == SessionState.PAUSED


class StopReason(Enum):
    """
    Reason a session ended.

    Reasons:
        COMPLETED: Countdown reached its target
        USER: User ended the session
        RECOVERED: Finalized from a checkpoint after an interrupted run
    """
    COMPLETED = "COMPLETED"
    USER = "USER"
    RECOVERED = "RECOVERED"


class BreathSample:
    """
    Single breath amplitude reading.

    Attributes:
        amplitude: Normalized amplitude, nominally in [0, 1]
        timestamp_ms: Epoch milliseconds when the sample was taken
    """

    def __init__(self, amplitude, timestamp_ms):
        self.amplitude = amplitude
        self.timestamp_ms = timestamp_ms

    def __repr__(self):
        return f"BreathSample(amplitude={self.amplitude!r}, timestamp_ms={self.timestamp_ms})"


@dataclass(frozen=True)
class PresenceMappingProfile:
    """
    Breath-to-presence mapping configuration for one visual profile.

    Profiles are loaded once by the profile registry and never mutated.

    Attributes:
        profile_id: Visual profile identifier (e.g. "blue", "fire")
        min_size: Presence size at zero amplitude
        max_size: Presence size at full amplitude, before the user multiplier
        size_multiplier_range: (low, high) bounds for the user size multiplier
        immersion_threshold: Size where background immersion starts
        max_immersion: Size where background immersion is complete
        smoothing_factor: EMA coefficient applied to the previous amplitude
    """
    profile_id: str
    min_size: float
    max_size: float
    size_multiplier_range: tuple
    immersion_threshold: float
    max_immersion: float
    smoothing_factor: float

    def to_dict(self):
        """
        Convert profile to dictionary.

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        return {
            "profile_id": self.profile_id,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "size_multiplier_range": list(self.size_multiplier_range),
            "immersion_threshold": self.immersion_threshold,
            "max_immersion": self.max_immersion,
            "smoothing_factor": self.smoothing_factor,
        }

    @classmethod
    def from_dict(cls, data):
        """
        Create profile from dictionary.

        Raises:
            KeyError: If required fields are missing
        """
        low, high = data["size_multiplier_range"]
        return cls(
            profile_id=data["profile_id"],
            min_size=float(data["min_size"]),
            max_size=float(data["max_size"]),
            size_multiplier_range=(float(low), float(high)),
            immersion_threshold=float(data["immersion_threshold"]),
            max_immersion=float(data["max_immersion"]),
            smoothing_factor=float(data["smoothing_factor"]),
        )

    def validate(self):
        """
        Validate profile configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.profile_id:
            errors.append("Profile id cannot be empty")

        if self.min_size < 0:
            errors.append(f"min_size must be >= 0, got {self.min_size}")

        if self.max_size < self.min_size:
            errors.append(
                f"max_size ({self.max_size}) must be >= min_size ({self.min_size})"
            )

        low, high = self.size_multiplier_range
        if low <= 0 or high < low:
            errors.append(
                f"size_multiplier_range must satisfy 0 < low <= high, got ({low}, {high})"
            )

        if self.max_immersion <= self.immersion_threshold:
            errors.append(
                f"max_immersion ({self.max_immersion}) must be greater than "
                f"immersion_threshold ({self.immersion_threshold})"
            )

        if not (0.0 <= self.smoothing_factor < 1.0):
            errors.append(
                f"smoothing_factor must be in [0, 1), got {self.smoothing_factor}"
            )

        return errors

    def is_valid(self):
        """Check if profile is valid."""
        return len(self.validate()) == 0


@dataclass(frozen=True)
class PresenceResult:
    """Renderer-facing output of the presence mapper."""
    size: float
    immersion_level: float
    smoothed_amplitude: float
    background_intensity: float


class SessionRecord:
    """
    Record of a meditation session.

    The same record is checkpointed while the session runs, handed to the
    submission service when it ends, and parked in the retry queue when
    submission fails.

    Attributes:
        session_id: Opaque identifier, the backend's idempotency key
        profile_type: Most used visual profile in the session
        duration_seconds: Meditated time in whole seconds
        started_at_ms: Epoch milliseconds when the session started
        last_update_ms: Epoch milliseconds of the latest checkpoint
        completed_at_ms: Epoch milliseconds when finalized, or None
        profile_breakdown: Seconds attributed to each profile used
        exit_reason: Set when the latest checkpoint was an emergency checkpoint
        failed_at_ms: Set when the record entered the retry queue
    """

    def __init__(
        self,
        session_id,
        profile_type,
        duration_seconds,
        started_at_ms,
        last_update_ms,
        completed_at_ms=None,
        profile_breakdown=None,
        exit_reason=None,
        failed_at_ms=None,
    ):
        self.session_id = session_id
        self.profile_type = profile_type
        self.duration_seconds = duration_seconds
        self.started_at_ms = started_at_ms
        self.last_update_ms = last_update_ms
        self.completed_at_ms = completed_at_ms
        self.profile_breakdown = dict(profile_breakdown or {profile_type: duration_seconds})
        self.exit_reason = exit_reason
        self.failed_at_ms = failed_at_ms

    def __repr__(self):
        return (
            f"SessionRecord({self.session_id}, {self.profile_type}, "
            f"{self.duration_seconds}s)"
        )

    def __eq__(self, other):
        if not isinstance(other, SessionRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def duration_minutes(self):
        """Duration rounded down to whole minutes."""
        return self.duration_seconds // 60

    def is_reportable(self, minimum_seconds=60):
        """
        Check if the session is long enough to be submitted.

        The duration is rounded down to whole minutes first, so with the
        default minimum a 119 second session counts as one minute and a
        59 second session is not reportable.
        """
        return self.duration_minutes * 60 >= minimum_seconds

    def copy(self):
        """Return an independent copy of this record."""
        return SessionRecord.from_dict(self.to_dict())

    def to_dict(self):
        """
        Convert record to dictionary.

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        return {
            "session_id": self.session_id,
            "profile_type": self.profile_type,
            "duration_seconds": self.duration_seconds,
            "started_at_ms": self.started_at_ms,
            "last_update_ms": self.last_update_ms,
            "completed_at_ms": self.completed_at_ms,
            "profile_breakdown": dict(self.profile_breakdown),
            "exit_reason": self.exit_reason,
            "failed_at_ms": self.failed_at_ms,
        }

    @classmethod
    def from_dict(cls, data):
        """
        Create record from dictionary.

        Raises:
            KeyError: If required fields are missing
            ValueError: If numeric fields are invalid
        """
        return cls(
            session_id=str(data["session_id"]),
            profile_type=str(data["profile_type"]),
            duration_seconds=int(data["duration_seconds"]),
            started_at_ms=int(data["started_at_ms"]),
            last_update_ms=int(data["last_update_ms"]),
            completed_at_ms=data.get("completed_at_ms"),
            profile_breakdown=data.get("profile_breakdown"),
            exit_reason=data.get("exit_reason"),
            failed_at_ms=data.get("failed_at_ms"),
        )


class SessionInfo:
    """
    Snapshot of the active session.

    Attributes:
        session_id: Unique session identifier
        profile_type: Currently active visual profile
        started_at_ms: Session start timestamp (epoch milliseconds)
        target_duration_seconds: Countdown target, or None when counting up
        elapsed_seconds: Elapsed time in seconds (excluding pauses)
        remaining_seconds: Remaining time in seconds, or None when counting up
        state: Current SessionState
    """
    def __init__(
        self,
        session_id,
        profile_type,
        started_at_ms,
        target_duration_seconds,
        elapsed_seconds,
        remaining_seconds,
        state,
    ):
        self.session_id = session_id
        self.profile_type = profile_type
        self.started_at_ms = started_at_ms
        self.target_duration_seconds = target_duration_seconds
        self.elapsed_seconds = elapsed_seconds
        self.remaining_seconds = remaining_seconds
        self.state = state

    def __str__(self):
        """String representation for logging."""
        target = self.target_duration_seconds if self.target_duration_seconds is not None else "inf"
        return f"Session {self.session_id}: {self.profile_type}, {self.elapsed_seconds}s/{target}s, {self.state.value}"

    def progress_percentage(self):
        """Calculate session progress as percentage (0-100), 0 when counting up."""
        if not self.target_duration_seconds:
            return 0
        progress = int((self.elapsed_seconds / self.target_duration_seconds) * 100)
        return min(100, max(0, progress))
