"""
Session Management Module
=========================

This module provides session management functionality for meditation sessions.

Components:
    - SessionManager: Lifecycle orchestration and submission hand-off
    - SessionCheckpointStore: Checkpointing and crash recovery
    - SessionRetryQueue: Persisted outbox of finished sessions awaiting delivery
"""

from application.session.checkpoint import SessionCheckpointStore, most_used_profile
from application.session.manager import SessionManager, SessionTick, StartupReport
from application.session.retry_queue import FlushResult, SessionRetryQueue

__all__ = [
    "SessionManager",
    "SessionTick",
    "StartupReport",
    "SessionCheckpointStore",
    "most_used_profile",
    "SessionRetryQueue",
    "FlushResult",
]
