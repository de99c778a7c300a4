"""
Session Manager
===============

Manages the complete lifecycle of meditation sessions including start,
pause, resume, stop, crash recovery and submission. Coordinates the state
machine, the drift-corrected timer, the checkpoint store and the retry
queue so that every session-ending path hands its record off the same way.

The SessionManager owns one instance of each collaborator; nothing is
looked up globally. Operations return results instead of notifying
callbacks.
"""

import asyncio
import logging
from dataclasses import dataclass

from application.session.checkpoint import SessionCheckpointStore
from application.session.retry_queue import FlushResult, SessionRetryQueue
from config import default_app_config, validate_config
from core.types import SessionInfo, SessionState, StopReason
from state import SessionStateMachine, StateTrigger
from timer import DriftCorrectedTimer

logger = logging.getLogger(__name__)

_KEEP_TARGET = object()


@dataclass
class SessionTick:
    """
    Result of a tick or validation pass.

    Attributes:
        timer: TimerUpdate from the timer
        checkpoint: Record written by a checkpoint during this call, or None
        ended: Finalized record if the session ended during this call, or None
    """
    timer: object
    checkpoint: object = None
    ended: object = None


@dataclass
class StartupReport:
    """
    Result of startup recovery.

    Attributes:
        recovered: Session recovered from an interrupted run, or None
        flush: FlushResult of the retry queue pass
    """
    recovered: object
    flush: FlushResult


class SessionManager:
    """
    Manages meditation session lifecycle and coordinates core components.

    The SessionManager is responsible for:
        - Recovering abandoned sessions and flushing failed submissions at startup
        - Starting sessions with a visual profile and optional countdown target
        - Ticking the timer and writing periodic checkpoints
        - Pausing, resuming and stopping sessions
        - Parking finished sessions in the retry queue and handing them to
          the submission service

    Example:
        >>> manager = SessionManager(SystemClock(), store, submitter)
        >>> await manager.startup()
        >>>
        >>> session_id = manager.start_session("blue", target_duration_seconds=600)
        >>>
        >>> # every second
        >>> result = manager.tick()
        >>> if result.ended:
        ...     show_saved(result.ended)
        >>>
        >>> manager.stop_session()
    """

    def __init__(
        self,
        clock,
        store,
        submitter,
        config=None,
        timer=None,
        state_machine=None,
    ):
        """
        Initialize the session manager.

        Args:
            clock: ClockSource providing epoch milliseconds
            store: KeyValueStore shared by the timer, checkpoints and retry queue
            submitter: SessionSubmissionService with async submit(record) -> bool
            config: Configuration dict (see config.default_app_config)
            timer: Optional DriftCorrectedTimer; restored from the store if omitted
            state_machine: Optional SessionStateMachine

        Raises:
            ValueError: If the configuration fails validation
        """
        config = dict(default_app_config(), **(config or {}))
        errors = validate_config(config)
        if errors:
            raise ValueError(f"Invalid session configuration: {errors}")

        self._clock = clock
        self._submitter = submitter
        self._checkpoint_interval_ms = config['checkpoint_interval_sec'] * 1000
        self._minimum_session_sec = config['minimum_session_sec']

        self._timer = timer or DriftCorrectedTimer.restore(
            clock,
            store,
            drift_tolerance_sec=config['drift_tolerance_sec'],
            stall_threshold_ms=config['stall_threshold_ms'],
        )
        self._checkpoints = SessionCheckpointStore(
            store,
            clock,
            freshness_window_ms=config['freshness_window_ms'],
            emergency_freshness_window_ms=config['emergency_freshness_window_ms'],
        )
        self._retry_queue = SessionRetryQueue(
            store, submitter, max_size=config['retry_queue_max'], clock=clock
        )
        self._state_machine = state_machine or SessionStateMachine()

        self._recovery_done = False
        self._last_checkpoint_ms = None
        self._pending_submissions = set()

    @property
    def timer(self):
        return self._timer

    @property
    def checkpoints(self):
        return self._checkpoints

    @property
    def retry_queue(self):
        return self._retry_queue

    @property
    def state(self):
        return self._state_machine.get_current_state()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def startup(self):
        """
        Recover an abandoned session, then flush the retry queue.

        A recovered session long enough to report joins the retry queue
        and is submitted by the same flush.

        Returns:
            StartupReport
        """
        recovered = self._recover()
        flush = await self._retry_queue.flush()
        return StartupReport(recovered=recovered, flush=flush)

    async def retry_failed(self):
        """Flush the retry queue on an explicit retry trigger."""
        return await self._retry_queue.flush()

    def _recover(self):
        if self._recovery_done:
            return None
        self._recovery_done = True

        record = self._checkpoints.recover_abandoned()
        if record is None:
            return None

        logger.info(
            f"[SessionManager] Session {record.session_id} ended "
            f"({StopReason.RECOVERED.value}) after {record.duration_seconds}s"
        )
        if record.is_reportable(self._minimum_session_sec):
            self._retry_queue.enqueue(record)
        else:
            logger.info(
                f"[SessionManager] Recovered session {record.session_id} too short "
                f"({record.duration_seconds}s), not saving"
            )
        return record

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start_session(self, profile_type, target_duration_seconds=_KEEP_TARGET):
        """
        Start a new session.

        Recovery of an abandoned session always runs first, so a new
        session can never overwrite an unrecovered checkpoint.

        Args:
            profile_type: Visual profile shown at session start
            target_duration_seconds: Countdown target in seconds, None for
                count-up; the persisted target is kept when omitted

        Returns:
            Session id, or None if a session is already active

        Raises:
            ValueError: If the target duration is invalid
        """
        self._recover()

        if not self.state.can_start():
            logger.warning(f"[SessionManager] Cannot start session in state {self.state.value}")
            return None

        if target_duration_seconds is not _KEEP_TARGET:
            self._timer.set_target(target_duration_seconds)
        self._timer.reset()

        session_id = self._checkpoints.start_session(profile_type)
        self._state_machine.transition(
            StateTrigger.START_SESSION,
            metadata={"session_id": session_id, "profile_type": profile_type},
        )
        self._timer.start()
        self._last_checkpoint_ms = self._clock.now_ms()

        logger.info(
            f"[SessionManager] Session {session_id} started "
            f"(profile={profile_type}, target={self._timer.target_duration_seconds})"
        )
        return session_id

    def tick(self):
        """
        Advance the timer and checkpoint when the interval has passed.

        Returns:
            SessionTick
        """
        return self._process(self._timer.tick(), force_checkpoint=False)

    def validate(self):
        """
        Check for stalled ticks (e.g. on visibility regain).

        A forced recomputation is followed by an immediate checkpoint.

        Returns:
            SessionTick
        """
        update = self._timer.validate()
        return self._process(update, force_checkpoint=update.stall_recovered)

    def pause_session(self):
        """
        Pause the running session and checkpoint its duration.

        Returns:
            True if the session paused (or completed while pausing), False otherwise
        """
        if not self.state.can_pause():
            return False

        result = self.tick()
        if result.ended is not None:
            return True

        self._timer.stop()
        self._state_machine.transition(StateTrigger.PAUSE_SESSION)
        self._checkpoints.checkpoint(self._timer.elapsed_seconds)
        logger.info(f"[SessionManager] Session paused at {self._timer.elapsed_seconds}s")
        return True

    def resume_session(self):
        """
        Resume a paused session.

        Returns:
            True if the session resumed, False otherwise
        """
        if not self.state.can_resume():
            return False

        self._state_machine.transition(StateTrigger.RESUME_SESSION)
        self._timer.start()
        self._last_checkpoint_ms = self._clock.now_ms()
        logger.info("[SessionManager] Session resumed")
        return True

    def switch_profile(self, profile_type):
        """
        Switch the visual profile of the active session.

        Returns:
            True if the switch was recorded, False if no session is active
            or the countdown completed first
        """
        if not self.state.is_active():
            return False

        if self._timer.is_running and self.tick().ended is not None:
            return False

        self._checkpoints.switch_profile(profile_type, self._timer.elapsed_seconds)
        logger.info(f"[SessionManager] Switched profile to {profile_type}")
        return True

    def emergency_checkpoint(self, reason):
        """
        Checkpoint immediately before a likely abrupt exit.

        Call when the page is hidden, fullscreen is left, or the host is
        about to suspend. Emergency checkpoints are trusted for a longer
        recovery window.

        Args:
            reason: Short exit reason (e.g. "page-hidden")

        Returns:
            Checkpointed record, or None if no session is active
        """
        if not self.state.is_active():
            return None

        result = self.tick()
        if result.ended is not None:
            return None

        return self._checkpoints.checkpoint(self._timer.elapsed_seconds, exit_reason=reason)

    def stop_session(self, reason=StopReason.USER):
        """
        Stop the active session and hand its record off for submission.

        Args:
            reason: StopReason (default: USER)

        Returns:
            Finalized SessionRecord, or None if no session is active
        """
        if not self.state.is_active():
            return None

        if self._timer.is_running:
            result = self.tick()
            if result.ended is not None:
                return result.ended
            self._timer.stop()

        return self._end(reason, self._timer.elapsed_seconds)

    def get_session_info(self):
        """
        Get information about the current session.

        Returns:
            SessionInfo, or None if no session is active
        """
        record = self._checkpoints.current_record()
        if record is None or not self.state.is_active():
            return None

        return SessionInfo(
            session_id=record.session_id,
            profile_type=self._checkpoints.active_profile,
            started_at_ms=record.started_at_ms,
            target_duration_seconds=self._timer.target_duration_seconds,
            elapsed_seconds=self._timer.elapsed_seconds,
            remaining_seconds=self._timer.remaining_seconds,
            state=self.state,
        )

    # ------------------------------------------------------------------
    # Submission hand-off
    # ------------------------------------------------------------------

    async def drain(self):
        """Wait for every scheduled submission to finish."""
        while self._pending_submissions:
            await asyncio.gather(*list(self._pending_submissions))

    def _process(self, update, force_checkpoint):
        if not self.state.is_active():
            return SessionTick(timer=update)

        if update.completed:
            ended = self._end(StopReason.COMPLETED, update.elapsed_seconds)
            return SessionTick(timer=update, ended=ended)

        checkpoint = None
        if self.state == SessionState.RUNNING:
            now = self._clock.now_ms()
            due = now - self._last_checkpoint_ms >= self._checkpoint_interval_ms
            if force_checkpoint or due:
                checkpoint = self._checkpoints.checkpoint(update.elapsed_seconds)
                self._last_checkpoint_ms = now

        return SessionTick(timer=update, checkpoint=checkpoint)

    def _end(self, reason, elapsed_seconds):
        self._state_machine.transition(
            StateTrigger.STOP_SESSION, metadata={"reason": reason.value}
        )
        self._timer.stop()

        record = self._checkpoints.complete_session(elapsed_seconds, clear=False)
        self._state_machine.transition(StateTrigger.STOPPED, metadata={"reason": reason.value})
        self._last_checkpoint_ms = None

        if record is not None:
            logger.info(
                f"[SessionManager] Session {record.session_id} ended ({reason.value}) "
                f"after {record.duration_seconds}s"
            )
            self._hand_off(record)
        return record

    def _hand_off(self, record):
        # The active-session key is only cleared once the record is in the
        # persisted retry queue, and the queue entry only once it is saved.
        if not record.is_reportable(self._minimum_session_sec):
            logger.info(
                f"[SessionManager] Session too short ({record.duration_seconds}s), not saving"
            )
            self._checkpoints.clear_persisted()
            return

        self._retry_queue.enqueue(record)
        if self._retry_queue.has_unsaved:
            logger.warning(
                f"[SessionManager] Retry queue not persisted, keeping checkpoint of "
                f"{record.session_id}"
            )
        else:
            self._checkpoints.clear_persisted()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"[SessionManager] No event loop, session {record.session_id} left queued for retry"
            )
            return

        task = loop.create_task(self._submit(record))
        self._pending_submissions.add(task)
        task.add_done_callback(self._pending_submissions.discard)

    async def _submit(self, record):
        try:
            ok = bool(await self._submitter.submit(record))
        except Exception as e:
            logger.warning(f"[SessionManager] Submission of {record.session_id} raised: {e}")
            ok = False

        if ok:
            self._retry_queue.remove(record.session_id)
            logger.info(f"[SessionManager] Session {record.session_id} saved")
        else:
            logger.warning(
                f"[SessionManager] Submission of {record.session_id} failed, left queued for retry"
            )
        return ok
