"""
Session Checkpoint Store
========================

Durable snapshot of the in-progress meditation session.

The store keeps at most one active-session record in the key-value store.
The record is written as soon as a session starts and overwritten by every
checkpoint, so an abrupt process exit loses at most one checkpoint interval
of practice. On the next start, recover_abandoned() finalizes a recent
record and discards one that is too old to trust.

The record is stored under ACTIVE_SESSION_KEY as SessionRecord.to_dict()
JSON. Its duration_seconds always equals the seconds credited to
profile_breakdown.
"""

import json
import logging
import uuid

from core.constants import (
    ACTIVE_SESSION_KEY,
    EMERGENCY_FRESHNESS_WINDOW_MS,
    FRESHNESS_WINDOW_MS,
)
from core.types import SessionRecord

logger = logging.getLogger(__name__)


def most_used_profile(breakdown):
    """
    Pick the profile with the most attributed seconds.

    Ties go to the profile that entered the breakdown first.
    """
    best = None
    for profile_type, seconds in breakdown.items():
        if best is None or seconds > breakdown[best]:
            best = profile_type
    return best


class SessionCheckpointStore:
    """
    Checkpointing and crash recovery for the active session.

    Example:
        >>> checkpoints = SessionCheckpointStore(store, clock)
        >>> session_id = checkpoints.start_session("blue")
        >>> checkpoints.checkpoint(30)
        >>> record = checkpoints.complete_session(95)

        On the next process start:
        >>> abandoned = checkpoints.recover_abandoned()
    """

    def __init__(
        self,
        store,
        clock,
        freshness_window_ms=FRESHNESS_WINDOW_MS,
        emergency_freshness_window_ms=EMERGENCY_FRESHNESS_WINDOW_MS,
    ):
        """
        Initialize the checkpoint store.

        Args:
            store: KeyValueStore holding the active-session record
            clock: ClockSource providing epoch milliseconds
            freshness_window_ms: Max age of a regular checkpoint trusted on recovery
            emergency_freshness_window_ms: Max age of an emergency checkpoint
                trusted on recovery
        """
        self._store = store
        self._clock = clock
        self._freshness_window_ms = freshness_window_ms
        self._emergency_freshness_window_ms = emergency_freshness_window_ms

        self._record = None
        self._active_profile = None
        self._attributed_seconds = 0

    @property
    def has_active_session(self):
        return self._record is not None

    @property
    def active_profile(self):
        return self._active_profile

    def current_record(self):
        """Copy of the active record, or None."""
        return self._record.copy() if self._record is not None else None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(self, profile_type):
        """
        Begin tracking a new session and persist it immediately.

        Args:
            profile_type: Visual profile shown at session start

        Returns:
            Generated session id

        Raises:
            RuntimeError: If a session is already active
        """
        if self._record is not None:
            raise RuntimeError(
                f"Cannot start session: {self._record.session_id} is still active"
            )

        now = self._clock.now_ms()
        session_id = f"session_{now}_{uuid.uuid4().hex[:9]}"

        self._record = SessionRecord(
            session_id=session_id,
            profile_type=profile_type,
            duration_seconds=0,
            started_at_ms=now,
            last_update_ms=now,
            profile_breakdown={profile_type: 0},
        )
        self._active_profile = profile_type
        self._attributed_seconds = 0
        self._write()

        logger.info(f"[Checkpoint] Session {session_id} started with {profile_type}")
        return session_id

    def switch_profile(self, profile_type, elapsed_seconds):
        """
        Record a change of visual profile mid-session.

        Seconds elapsed since the previous switch are credited to the profile
        that was showing, and the persisted duration advances with them.

        Returns:
            Copy of the updated record, or None if no session is active
        """
        if self._record is None:
            return None

        elapsed_seconds = max(0, int(elapsed_seconds))
        self._attribute(elapsed_seconds)
        self._active_profile = profile_type

        record = self._record
        record.profile_breakdown.setdefault(profile_type, 0)
        record.duration_seconds = max(record.duration_seconds, elapsed_seconds)
        record.last_update_ms = self._clock.now_ms()
        record.profile_type = most_used_profile(record.profile_breakdown)
        self._write()

        return self._record.copy()

    def checkpoint(self, elapsed_seconds, exit_reason=None):
        """
        Overwrite the persisted record with the latest duration.

        Args:
            elapsed_seconds: Timer elapsed seconds
            exit_reason: Set for emergency checkpoints written on an abrupt
                exit (e.g. "page-hidden"); trusted for a longer window

        Returns:
            Copy of the updated record, or None if no session is active
        """
        if self._record is None:
            return None

        elapsed_seconds = max(0, int(elapsed_seconds))
        self._attribute(elapsed_seconds)

        self._record.duration_seconds = elapsed_seconds
        self._record.last_update_ms = self._clock.now_ms()
        self._record.exit_reason = exit_reason
        self._record.profile_type = most_used_profile(self._record.profile_breakdown)
        self._write()

        if exit_reason:
            logger.info(f"[Checkpoint] Emergency checkpoint ({exit_reason}): {elapsed_seconds}s")
        else:
            logger.debug(f"[Checkpoint] {self._record.session_id}: {elapsed_seconds}s elapsed")

        return self._record.copy()

    def complete_session(self, final_elapsed_seconds=None, clear=True):
        """
        Finalize the active session and clear the persisted record.

        Args:
            final_elapsed_seconds: Final timer value; the last checkpointed
                duration is used when omitted
            clear: When False the finalized record is written back and stays
                in the store until clear_persisted() is called

        Returns:
            Finalized SessionRecord, or None if no session is active
        """
        if self._record is None:
            return None

        record = self._record
        if final_elapsed_seconds is not None:
            final_elapsed_seconds = max(0, int(final_elapsed_seconds))
            self._attribute(final_elapsed_seconds)
            record.duration_seconds = final_elapsed_seconds

        now = self._clock.now_ms()
        record.last_update_ms = now
        record.completed_at_ms = now
        record.exit_reason = None
        record.profile_type = most_used_profile(record.profile_breakdown)

        if clear:
            self.clear_persisted()
        else:
            self._write()
        self._reset()

        logger.info(
            f"[Checkpoint] Session {record.session_id} completed: "
            f"{record.duration_seconds}s ({record.profile_type})"
        )
        return record

    def abandon(self):
        """Drop the active session without producing a record."""
        if self._record is not None:
            logger.info(f"[Checkpoint] Session {self._record.session_id} abandoned")
        self._reset()
        self.clear_persisted()

    def clear_persisted(self):
        """Remove the persisted active-session record."""
        try:
            self._store.remove(ACTIVE_SESSION_KEY)
        except OSError as e:
            logger.error(f"[Checkpoint] Failed to clear session record: {e}")

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def recover_abandoned(self):
        """
        Finalize a session left behind by an interrupted process.

        A record updated within the freshness window is finalized with its
        last checkpointed duration. Older records are discarded without
        submission. The persisted record is cleared in both cases.

        Returns:
            Recovered SessionRecord, or None
        """
        raw = self._store.get(ACTIVE_SESSION_KEY)
        if raw is None:
            return None

        try:
            record = SessionRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[Checkpoint] Discarding unreadable session record: {e}")
            self.clear_persisted()
            return None

        age_ms = self._clock.now_ms() - record.last_update_ms
        window_ms = (
            self._emergency_freshness_window_ms
            if record.exit_reason
            else self._freshness_window_ms
        )

        self.clear_persisted()

        if age_ms > window_ms:
            logger.info(
                f"[Checkpoint] Session {record.session_id} too old to recover "
                f"({age_ms // 1000}s since last checkpoint), discarding"
            )
            return None

        record.completed_at_ms = record.last_update_ms
        logger.info(
            f"[Checkpoint] Recovered interrupted session {record.session_id}: "
            f"{record.duration_seconds}s ({record.profile_type})"
        )
        return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attribute(self, elapsed_seconds):
        delta = elapsed_seconds - self._attributed_seconds
        if delta > 0:
            breakdown = self._record.profile_breakdown
            breakdown[self._active_profile] = breakdown.get(self._active_profile, 0) + delta
            self._attributed_seconds = elapsed_seconds

    def _reset(self):
        self._record = None
        self._active_profile = None
        self._attributed_seconds = 0

    def _write(self):
        try:
            self._store.set(ACTIVE_SESSION_KEY, json.dumps(self._record.to_dict()))
        except OSError as e:
            logger.error(f"[Checkpoint] Failed to persist session record: {e}")
