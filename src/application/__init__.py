"""
Application Layer
=================

This package contains the application layer components that coordinate the
timer, the checkpoint store and the retry queue around a meditation session.

Components:
    - session: Session lifecycle, checkpointing, recovery and retry

The application layer is responsible for:
    - Orchestrating the session lifecycle
    - Persisting in-progress sessions and recovering abandoned ones
    - Handing finished sessions to the submission service

Example:
    from application.session import SessionManager
    from clock import SystemClock
    from storage import JsonFileKeyValueStore

    manager = SessionManager(SystemClock(), JsonFileKeyValueStore(path), submitter)
    await manager.startup()
    manager.start_session("blue", target_duration_seconds=600)
"""

__version__ = "1.0.0"

__all__ = [
    "SessionManager",
    "SessionCheckpointStore",
    "SessionRetryQueue",
]

# To use these components:
#   from application.session import SessionManager
