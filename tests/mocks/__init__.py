"""
Mock Implementations for Testing
=================================

Mock implementations of the session core's external collaborators for
isolated unit testing without a wall clock, a backend or a disk.

Classes:
    ManualClock: Manually advanced epoch-millisecond clock
    MockSubmissionService: Async submission service with call tracking
    SubmissionAttempt: Record of one submission attempt
    FailingKeyValueStore: In-memory store with configurable write failures

Version: 1.0.0
"""

from .clock import ManualClock
from .submission import (
    MockSubmissionService,
    SubmissionAttempt,
)
from .storage import FailingKeyValueStore

__all__ = [
    "ManualClock",
    "MockSubmissionService",
    "SubmissionAttempt",
    "FailingKeyValueStore",
]
