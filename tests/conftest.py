"""
Pytest Configuration and Fixtures
===================================

Pytest configuration and fixtures for the kasina session core.
Provides common test objects, mock collaborators, and test configurations.

Fixtures:
    - clock: Manually advanced clock
    - store: In-memory key-value store
    - failing_store: Store with configurable write failures
    - submitter: Mock submission service
    - timer: Drift-corrected timer on the mock clock
    - registry: Presence profile registry with built-in profiles
    - profile: Reference presence profile (80/400/300/1200)
    - checkpoints: Checkpoint store on the mock clock and store
    - retry_queue: Retry queue on the mock store and submitter
    - session_manager: Session manager wired to all of the above
    - make_record: Factory for SessionRecord instances

Version: 1.0.0
"""

import pytest
import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Import core components
from core.types import PresenceMappingProfile, SessionRecord
from storage import MemoryKeyValueStore
from timer import DriftCorrectedTimer
from profiles import PresenceProfileRegistry
from application.session import SessionCheckpointStore, SessionManager, SessionRetryQueue

# Import mocks
from tests.mocks import (
    FailingKeyValueStore,
    ManualClock,
    MockSubmissionService,
)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests for component interactions"
    )
    config.addinivalue_line(
        "markers", "persistence: Tests that read or write a key-value store"
    )


# ============================================================================
# Mock Collaborator Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """
    Provide ManualClock for testing.

    Returns:
        ManualClock: Clock that only advances when told to

    Usage:
        def test_elapsed(timer, clock):
            timer.start()
            clock.advance(1000)
            assert timer.tick().elapsed_seconds == 1
    """
    return ManualClock()


@pytest.fixture
def store():
    """Provide an empty MemoryKeyValueStore."""
    return MemoryKeyValueStore()


@pytest.fixture
def failing_store():
    """
    Provide FailingKeyValueStore for testing.

    Usage:
        def test_write_failure(failing_store):
            failing_store.fail_writes = True
    """
    return FailingKeyValueStore()


@pytest.fixture
def submitter():
    """
    Provide MockSubmissionService for testing.

    Returns:
        MockSubmissionService: Succeeds by default; set .fail or .raise_error
    """
    service = MockSubmissionService()
    yield service
    service.reset()


# ============================================================================
# Component Fixtures
# ============================================================================

@pytest.fixture
def timer(clock, store):
    """Provide a stopped count-up DriftCorrectedTimer."""
    return DriftCorrectedTimer(clock, store)


@pytest.fixture
def registry():
    """Provide PresenceProfileRegistry with built-in profiles only."""
    return PresenceProfileRegistry()


@pytest.fixture
def profile():
    """
    Provide the reference presence profile.

    Returns:
        PresenceMappingProfile: min 80, max 400, immersion 300..1200, k=0.8
    """
    return PresenceMappingProfile(
        profile_id="reference",
        min_size=80.0,
        max_size=400.0,
        size_multiplier_range=(0.5, 3.0),
        immersion_threshold=300.0,
        max_immersion=1200.0,
        smoothing_factor=0.8,
    )


@pytest.fixture
def checkpoints(store, clock):
    """Provide SessionCheckpointStore with default windows."""
    return SessionCheckpointStore(store, clock)


@pytest.fixture
def retry_queue(store, submitter, clock):
    """Provide SessionRetryQueue bounded to 10 records."""
    return SessionRetryQueue(store, submitter, clock=clock)


@pytest.fixture
def session_manager(clock, store, submitter):
    """
    Provide SessionManager wired to mock collaborators.

    Usage:
        async def test_session(session_manager, clock):
            await session_manager.startup()
            session_manager.start_session("blue", target_duration_seconds=300)
    """
    return SessionManager(clock, store, submitter)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def make_record(clock):
    """
    Provide a SessionRecord factory.

    Usage:
        def test_queue(make_record):
            record = make_record("session_1", duration_seconds=600)
    """
    def _make(session_id="session_test", profile_type="blue", duration_seconds=600):
        now = clock.current_ms
        return SessionRecord(
            session_id=session_id,
            profile_type=profile_type,
            duration_seconds=duration_seconds,
            started_at_ms=now - duration_seconds * 1000,
            last_update_ms=now,
            completed_at_ms=now,
        )

    return _make
