"""
Tests for Session Manager
=========================
Integration tests for application/session/manager.py.

Tests the whole session lifecycle against the mock clock, an in-memory
store and the mock submission service:
- Start, tick, pause, resume, stop
- Periodic, forced and emergency checkpoints
- Completion hand-off, failure fallback to the retry queue
- Startup recovery of abandoned sessions
- Minimum-duration policy

Run with: python -m pytest tests/test_manager.py -v

Module: tests.test_manager
Version: 1.0.0
"""

import asyncio
import logging

import pytest

from application.session import SessionManager
from core.constants import ACTIVE_SESSION_KEY
from core.types import SessionState, StopReason
from tests.mocks import MockSubmissionService


def _tick_for(manager, clock, seconds):
    """Tick once per second for the given number of seconds."""
    result = None
    for _ in range(seconds):
        clock.advance(1000)
        result = manager.tick()
    return result


# ============================================================================
# Lifecycle Tests
# ============================================================================

@pytest.mark.integration
class TestSessionLifecycle:
    """Test session control without submission."""

    def test_start_session(self, session_manager, store):
        session_id = session_manager.start_session("blue", target_duration_seconds=600)

        assert session_id.startswith("session_")
        assert session_manager.state == SessionState.RUNNING
        assert session_manager.timer.is_running
        assert store.get(ACTIVE_SESSION_KEY) is not None

    def test_start_while_active_rejected(self, session_manager):
        session_manager.start_session("blue")
        assert session_manager.start_session("red") is None

    def test_start_keeps_persisted_target(self, clock, store, submitter):
        """Omitting the target reuses the last persisted one."""
        first = SessionManager(clock, store, submitter)
        first.timer.set_target(900)

        second = SessionManager(clock, store, submitter)
        second.start_session("blue")
        assert second.timer.target_duration_seconds == 900

    def test_invalid_target_raises(self, session_manager):
        with pytest.raises(ValueError):
            session_manager.start_session("blue", target_duration_seconds=-10)
        assert session_manager.state == SessionState.IDLE

    def test_pause_and_resume(self, session_manager, clock):
        """Paused time is not counted."""
        session_manager.start_session("blue", target_duration_seconds=300)
        clock.advance_seconds(100)

        assert session_manager.pause_session()
        assert session_manager.state == SessionState.PAUSED
        assert not session_manager.pause_session()

        clock.advance_seconds(500)
        assert session_manager.resume_session()
        assert not session_manager.resume_session()

        clock.advance_seconds(100)
        result = session_manager.tick()
        assert result.timer.elapsed_seconds == 200
        assert result.timer.remaining_seconds == 100

    def test_pause_checkpoints_duration(self, session_manager, clock, store):
        session_manager.start_session("blue")
        clock.advance_seconds(20)
        session_manager.pause_session()

        assert session_manager.checkpoints.current_record().duration_seconds == 20

    def test_controls_when_idle(self, session_manager):
        """Controls without an active session are rejected."""
        assert not session_manager.pause_session()
        assert not session_manager.resume_session()
        assert not session_manager.switch_profile("red")
        assert session_manager.stop_session() is None
        assert session_manager.emergency_checkpoint("page-hidden") is None
        assert session_manager.get_session_info() is None

    def test_session_info(self, session_manager, clock):
        session_id = session_manager.start_session("blue", target_duration_seconds=600)
        _tick_for(session_manager, clock, 60)

        info = session_manager.get_session_info()
        assert info.session_id == session_id
        assert info.profile_type == "blue"
        assert info.elapsed_seconds == 60
        assert info.remaining_seconds == 540
        assert info.progress_percentage() == 10
        assert info.state == SessionState.RUNNING


# ============================================================================
# Checkpoint Tests
# ============================================================================

@pytest.mark.integration
class TestCheckpointing:
    """Test checkpoint scheduling."""

    def test_checkpoint_every_interval(self, session_manager, clock):
        """A checkpoint is written once every 30 seconds of ticking."""
        session_manager.start_session("blue")

        written = []
        for _ in range(90):
            clock.advance(1000)
            result = session_manager.tick()
            if result.checkpoint is not None:
                written.append(result.checkpoint.duration_seconds)

        assert written == [30, 60, 90]

    def test_custom_interval(self, clock, store, submitter):
        manager = SessionManager(clock, store, submitter, config={"checkpoint_interval_sec": 10})
        manager.start_session("blue")

        result = _tick_for(manager, clock, 10)
        assert result.checkpoint is not None

    def test_stall_forces_checkpoint(self, session_manager, clock):
        """validate() after a stall writes a checkpoint immediately."""
        session_manager.start_session("blue")
        clock.advance_seconds(12)

        result = session_manager.validate()
        assert result.timer.stall_recovered
        assert result.checkpoint.duration_seconds == 12

    def test_validate_without_stall(self, session_manager, clock):
        session_manager.start_session("blue")
        clock.advance_seconds(2)

        result = session_manager.validate()
        assert not result.timer.stall_recovered
        assert result.checkpoint is None

    def test_emergency_checkpoint(self, session_manager, clock):
        session_manager.start_session("blue")
        clock.advance_seconds(45)

        record = session_manager.emergency_checkpoint("page-hidden")
        assert record.exit_reason == "page-hidden"
        assert record.duration_seconds == 45

    def test_switch_profile(self, session_manager, clock):
        session_manager.start_session("blue", target_duration_seconds=None)
        clock.advance_seconds(100)
        assert session_manager.switch_profile("fire")

        clock.advance_seconds(200)
        record = session_manager.stop_session()
        assert record.profile_breakdown == {"blue": 100, "fire": 200}
        assert record.profile_type == "fire"


# ============================================================================
# Hand-off Tests
# ============================================================================

@pytest.mark.integration
class TestSubmissionHandOff:
    """Test the single hand-off path for ended sessions."""

    @pytest.mark.asyncio
    async def test_completion_submits(self, session_manager, clock, submitter, store):
        """A completed countdown is submitted once."""
        session_manager.start_session("blue", target_duration_seconds=300)

        clock.advance_seconds(305)
        result = session_manager.tick()
        assert result.timer.completed
        assert result.ended.duration_seconds == 300
        assert session_manager.state == SessionState.IDLE

        await session_manager.drain()
        assert submitter.was_saved(result.ended.session_id)
        assert submitter.get_saved(result.ended.session_id).duration_seconds == 300
        assert store.get(ACTIVE_SESSION_KEY) is None
        assert len(session_manager.retry_queue) == 0

        clock.advance_seconds(5)
        assert session_manager.tick().ended is None
        await session_manager.drain()
        assert submitter.attempt_count == 1

    @pytest.mark.asyncio
    async def test_user_stop_submits(self, session_manager, clock, submitter):
        session_manager.start_session("blue", target_duration_seconds=None)
        clock.advance_seconds(125)

        record = session_manager.stop_session(StopReason.USER)
        assert record.duration_seconds == 125

        await session_manager.drain()
        assert submitter.was_saved(record.session_id)

    @pytest.mark.asyncio
    async def test_failure_goes_to_queue(self, session_manager, clock, submitter):
        """A rejected submission lands in the retry queue."""
        submitter.fail = True
        session_manager.start_session("blue", target_duration_seconds=120)
        clock.advance_seconds(121)
        ended = session_manager.tick().ended

        await session_manager.drain()
        pending = session_manager.retry_queue.pending()
        assert [r.session_id for r in pending] == [ended.session_id]
        assert pending[0].failed_at_ms is not None

    @pytest.mark.asyncio
    async def test_exception_goes_to_queue(self, session_manager, clock, submitter):
        """A raising service never propagates; the record is queued."""
        submitter.raise_error = TimeoutError("backend timeout")
        session_manager.start_session("blue")
        clock.advance_seconds(90)
        session_manager.stop_session()

        await session_manager.drain()
        assert len(session_manager.retry_queue) == 1

    @pytest.mark.asyncio
    async def test_retry_failed_delivers(self, session_manager, clock, submitter):
        submitter.fail = True
        session_manager.start_session("blue")
        clock.advance_seconds(90)
        record = session_manager.stop_session()
        await session_manager.drain()

        submitter.fail = False
        result = await session_manager.retry_failed()
        assert [r.session_id for r in result.succeeded] == [record.session_id]
        assert len(session_manager.retry_queue) == 0

    @pytest.mark.asyncio
    async def test_short_session_not_submitted(self, session_manager, clock, submitter):
        """Sessions under one whole minute are dropped."""
        session_manager.start_session("blue")
        clock.advance_seconds(59)
        record = session_manager.stop_session()

        await session_manager.drain()
        assert record.duration_seconds == 59
        assert submitter.attempt_count == 0
        assert len(session_manager.retry_queue) == 0

    def test_stop_without_event_loop_queues(self, session_manager, clock):
        """With no running loop a reportable record goes straight to the queue."""
        session_manager.start_session("blue")
        clock.advance_seconds(90)
        record = session_manager.stop_session()

        pending = session_manager.retry_queue.pending()
        assert [r.session_id for r in pending] == [record.session_id]
        assert pending[0].duration_seconds == 90

    @pytest.mark.asyncio
    async def test_record_queued_before_submission(self, session_manager, clock, submitter, store):
        """While the submission is in flight the record sits in the persisted queue."""
        gate = submitter.hold()
        session_manager.start_session("blue")
        clock.advance_seconds(150)
        record = session_manager.stop_session()

        for _ in range(3):
            await asyncio.sleep(0)
        assert submitter.in_flight == 1
        assert [r.session_id for r in session_manager.retry_queue.pending()] == [record.session_id]
        assert store.get(ACTIVE_SESSION_KEY) is None

        gate.set()
        await session_manager.drain()
        assert submitter.was_saved(record.session_id)
        assert len(session_manager.retry_queue) == 0

    @pytest.mark.asyncio
    async def test_restart_mid_submission(self, clock, store, submitter):
        """A process that dies while submitting loses nothing."""
        gate = submitter.hold()
        manager = SessionManager(clock, store, submitter)
        manager.start_session("blue", target_duration_seconds=None)
        clock.advance_seconds(150)
        record = manager.stop_session()

        for _ in range(3):
            await asyncio.sleep(0)
        assert submitter.in_flight == 1

        # process dies here; a new one starts with a working backend
        backend = MockSubmissionService()
        restarted = SessionManager(clock, store, backend)
        report = await restarted.startup()

        assert [r.session_id for r in report.flush.succeeded] == [record.session_id]
        assert backend.get_saved(record.session_id).duration_seconds == 150
        assert len(restarted.retry_queue) == 0

        gate.set()
        await manager.drain()

    def test_queue_write_failure_keeps_checkpoint(self, clock, failing_store, submitter):
        """If the retry queue cannot be written the checkpoint stays for recovery."""
        manager = SessionManager(clock, failing_store, submitter)
        session_id = manager.start_session("blue", target_duration_seconds=None)
        _tick_for(manager, clock, 60)

        failing_store.fail_writes = True
        manager.stop_session()
        assert manager.retry_queue.has_unsaved
        assert failing_store.get(ACTIVE_SESSION_KEY) is not None

        failing_store.fail_writes = False
        recovered = SessionManager(clock, failing_store, submitter).checkpoints.recover_abandoned()
        assert recovered.session_id == session_id
        assert recovered.duration_seconds == 60

    def test_stop_while_paused(self, session_manager, clock):
        session_manager.start_session("blue")
        clock.advance_seconds(80)
        session_manager.pause_session()
        clock.advance_seconds(600)

        record = session_manager.stop_session()
        assert record.duration_seconds == 80
        assert session_manager.state == SessionState.IDLE


# ============================================================================
# Startup Recovery Tests
# ============================================================================

@pytest.mark.integration
class TestStartupRecovery:
    """Test recovery of sessions from an interrupted process."""

    def _crash_after(self, clock, store, submitter, seconds):
        manager = SessionManager(clock, store, submitter)
        session_id = manager.start_session("blue", target_duration_seconds=None)
        _tick_for(manager, clock, seconds)
        return session_id

    @pytest.mark.asyncio
    async def test_fresh_session_recovered_and_submitted(self, clock, store, submitter):
        session_id = self._crash_after(clock, store, submitter, 600)

        clock.advance_seconds(60)
        manager = SessionManager(clock, store, submitter)
        report = await manager.startup()

        assert report.recovered.session_id == session_id
        assert report.recovered.duration_seconds == 600
        assert [r.session_id for r in report.flush.succeeded] == [session_id]
        assert submitter.get_saved(session_id).duration_seconds == 600
        assert store.get(ACTIVE_SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_recovered_submission_failure_stays_queued(self, clock, store, submitter):
        session_id = self._crash_after(clock, store, submitter, 300)
        submitter.fail = True

        manager = SessionManager(clock, store, submitter)
        report = await manager.startup()

        assert [r.session_id for r in report.flush.still_failed] == [session_id]
        assert len(manager.retry_queue) == 1

    @pytest.mark.asyncio
    async def test_stale_session_discarded(self, clock, store, submitter):
        self._crash_after(clock, store, submitter, 600)

        clock.advance_seconds(200)
        manager = SessionManager(clock, store, submitter)
        report = await manager.startup()

        assert report.recovered is None
        assert submitter.attempt_count == 0
        assert store.get(ACTIVE_SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_emergency_checkpoint_extends_window(self, clock, store, submitter):
        first = SessionManager(clock, store, submitter)
        session_id = first.start_session("blue")
        clock.advance_seconds(400)
        first.emergency_checkpoint("page-hidden")

        clock.advance_seconds(200)
        report = await SessionManager(clock, store, submitter).startup()
        assert report.recovered.session_id == session_id
        assert submitter.was_saved(session_id)

    @pytest.mark.asyncio
    async def test_short_recovered_session_dropped(self, clock, store, submitter):
        self._crash_after(clock, store, submitter, 40)

        report = await SessionManager(clock, store, submitter).startup()
        assert report.recovered.duration_seconds == 30
        assert submitter.attempt_count == 0

    @pytest.mark.asyncio
    async def test_startup_flushes_old_failures(self, clock, store, submitter, make_record):
        manager = SessionManager(clock, store, submitter)
        manager.retry_queue.enqueue(make_record("session_old"))

        report = await SessionManager(clock, store, submitter).startup()
        assert report.recovered is None
        assert submitter.was_saved("session_old")

    def test_start_runs_recovery_first(self, clock, store, submitter):
        """Starting a session never overwrites an unrecovered checkpoint."""
        old_id = self._crash_after(clock, store, submitter, 300)

        manager = SessionManager(clock, store, submitter)
        new_id = manager.start_session("red")

        assert new_id != old_id
        assert [r.session_id for r in manager.retry_queue.pending()] == [old_id]
        assert manager.checkpoints.current_record().session_id == new_id

    @pytest.mark.asyncio
    async def test_recovered_session_logged(self, clock, store, submitter, caplog):
        caplog.set_level(logging.INFO)
        session_id = self._crash_after(clock, store, submitter, 300)

        await SessionManager(clock, store, submitter).startup()
        assert f"Session {session_id} ended (RECOVERED) after 300s" in caplog.text


# ============================================================================
# Configuration Tests
# ============================================================================

class TestManagerConfiguration:
    """Test validation of the session tunables."""

    @pytest.mark.parametrize("overrides", [
        {"checkpoint_interval_sec": 0},
        {"retry_queue_max": 5000},
        {"stall_threshold_ms": "5s"},
        {"freshness_window_ms": 300_000, "emergency_freshness_window_ms": 120_000},
    ])
    def test_invalid_config_rejected(self, clock, store, submitter, overrides):
        with pytest.raises(ValueError, match="Invalid session configuration"):
            SessionManager(clock, store, submitter, config=overrides)

    def test_queue_size_from_config(self, clock, store, submitter, make_record):
        manager = SessionManager(clock, store, submitter, config={"retry_queue_max": 2})
        for i in range(3):
            manager.retry_queue.enqueue(make_record(f"session_{i}"))
        assert [r.session_id for r in manager.retry_queue.pending()] == ["session_1", "session_2"]
