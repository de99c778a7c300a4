"""
Session Retry Queue
===================

Bounded, persisted list of session records awaiting delivery.

Every finished session is parked here before it is submitted and removed
once the backend acknowledges it, so a record that fails submission, or
whose process dies mid-submission, is still here on the next opportunity.
flush() replays the queue through the submission service (process start or
an explicit retry). Delivery is best-effort at-least-once: the backend
deduplicates on session_id.

If the store rejects a write, the queue keeps the pending list in memory
and writes it again on the next enqueue, remove or flush.
"""

import json
import logging
from dataclasses import dataclass, field

from core.constants import FAILED_SESSION_QUEUE_KEY, RETRY_QUEUE_MAX
from core.types import SessionRecord

logger = logging.getLogger(__name__)


@dataclass
class FlushResult:
    """Outcome of one flush pass."""
    succeeded: list = field(default_factory=list)
    still_failed: list = field(default_factory=list)


class SessionRetryQueue:
    """
    Persisted retry queue for session submissions.

    Example:
        >>> queue = SessionRetryQueue(store, submitter)
        >>> queue.enqueue(record)
        >>> result = await queue.flush()
        >>> len(result.succeeded), len(result.still_failed)
        (1, 0)
    """

    def __init__(self, store, submitter, max_size=RETRY_QUEUE_MAX, clock=None):
        """
        Initialize the retry queue.

        Args:
            store: KeyValueStore holding the queue
            submitter: SessionSubmissionService with async submit(record) -> bool
            max_size: Maximum queued records; oldest dropped first
            clock: Optional ClockSource used to stamp failed_at_ms
        """
        self._store = store
        self._submitter = submitter
        self._max_size = max_size
        self._clock = clock
        self._flushing = False

        # Pending list the store failed to persist, None when in sync
        self._unsaved = None

    def __len__(self):
        return len(self._read())

    def pending(self):
        """Queued records, oldest first."""
        return self._read()

    @property
    def has_unsaved(self):
        """True while the pending list only exists in memory."""
        return self._unsaved is not None

    def enqueue(self, record):
        """
        Queue a record for delivery.

        A queued record with the same session_id is replaced. When the queue
        exceeds its maximum size the oldest records are dropped.

        Args:
            record: SessionRecord awaiting submission

        Returns:
            List of records dropped to respect the size bound
        """
        entry = record.copy()
        if entry.failed_at_ms is None and self._clock is not None:
            entry.failed_at_ms = self._clock.now_ms()

        queued = [r for r in self._read() if r.session_id != entry.session_id]
        queued.append(entry)

        overflow = len(queued) - self._max_size
        dropped = queued[:overflow] if overflow > 0 else []
        if dropped:
            queued = queued[overflow:]
            for old in dropped:
                logger.warning(
                    f"[RetryQueue] Queue full, dropping oldest session {old.session_id} "
                    f"({old.duration_seconds}s)"
                )

        self._write(queued)
        logger.info(
            f"[RetryQueue] Stored session {entry.session_id} for retry "
            f"({len(queued)} pending)"
        )
        return dropped

    def remove(self, session_id):
        """
        Drop a delivered record.

        Returns:
            True if a record with that id was queued
        """
        queued = self._read()
        remaining = [r for r in queued if r.session_id != session_id]
        if len(remaining) == len(queued):
            return False

        self._write(remaining)
        return True

    async def flush(self):
        """
        Resubmit every queued record.

        Records that succeed are removed; records that fail stay queued.
        Records enqueued while the flush is waiting on the service are kept.

        Returns:
            FlushResult with succeeded and still_failed records
        """
        if self._flushing:
            logger.info("[RetryQueue] Flush already in progress, skipping")
            return FlushResult(still_failed=self._read())

        queued = self._read()
        if not queued:
            if self._unsaved is not None:
                self._write([])
            return FlushResult()

        self._flushing = True
        try:
            logger.info(f"[RetryQueue] Retrying {len(queued)} failed sessions")
            result = FlushResult()
            for record in queued:
                if await self._submit(record):
                    result.succeeded.append(record)
                else:
                    result.still_failed.append(record)

            delivered = {r.session_id for r in result.succeeded}
            remaining = [r for r in self._read() if r.session_id not in delivered]
            self._write(remaining)
        finally:
            self._flushing = False

        if result.succeeded:
            logger.info(f"[RetryQueue] Recovered {len(result.succeeded)} failed sessions")
        return result

    async def _submit(self, record):
        try:
            return bool(await self._submitter.submit(record))
        except Exception as e:
            logger.warning(f"[RetryQueue] Retry of session {record.session_id} failed: {e}")
            return False

    def _read(self):
        if self._unsaved is not None:
            return [r.copy() for r in self._unsaved]

        raw = self._store.get(FAILED_SESSION_QUEUE_KEY)
        if raw is None:
            return []

        try:
            return [SessionRecord.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[RetryQueue] Resetting unreadable retry queue: {e}")
            try:
                self._store.remove(FAILED_SESSION_QUEUE_KEY)
            except OSError as remove_error:
                logger.error(f"[RetryQueue] Failed to reset retry queue: {remove_error}")
            return []

    def _write(self, records):
        try:
            if records:
                self._store.set(
                    FAILED_SESSION_QUEUE_KEY,
                    json.dumps([r.to_dict() for r in records]),
                )
            else:
                self._store.remove(FAILED_SESSION_QUEUE_KEY)
        except OSError as e:
            logger.error(
                f"[RetryQueue] Failed to persist retry queue, keeping "
                f"{len(records)} sessions in memory: {e}"
            )
            self._unsaved = [r.copy() for r in records]
            return

        if self._unsaved is not None:
            logger.info("[RetryQueue] Retry queue persisted again")
        self._unsaved = None
