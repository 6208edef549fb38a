"""Buffered operation log and deduplicated error log.

Nothing in this module raises to callers: tracking failures are logged and
swallowed so they can never break an extraction.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from onboarding.models import ErrorEvent, LLMOperation
from onboarding.models.error_event import OPEN_ERROR_STATUSES

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class OperationRecord:
    pipeline_name: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    success: bool = True
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ErrorOccurrence:
    message: str
    stack: str | None = None
    feature_id: str | None = None
    endpoint: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class EventBuffer:
    """Thread-safe pending-operation queue with a flush watermark.

    Failed flushes are put back at the front while fewer than
    ``max_retained`` records are waiting; the oldest are dropped beyond that.
    """

    def __init__(self, max_size: int = 10, max_retained: int = 100) -> None:
        self.max_size = max(1, max_size)
        self.max_retained = max(self.max_size, max_retained)
        self._records: list[OperationRecord] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def push(self, record: OperationRecord) -> bool:
        """Queue a record; return True once the watermark is reached."""

        with self._lock:
            self._records.append(record)
            return len(self._records) >= self.max_size

    def drain(self) -> list[OperationRecord]:
        with self._lock:
            drained, self._records = self._records, []
            return drained

    def requeue(self, records: list[OperationRecord]) -> int:
        """Put unflushed records back; return how many were dropped."""

        with self._lock:
            if len(self._records) >= self.max_retained:
                return len(records)
            combined = records + self._records
            overflow = max(0, len(combined) - self.max_retained)
            self._records = combined[overflow:]
            return overflow


class OperationStore(Protocol):
    def record_operations(self, records: list[OperationRecord]) -> None: ...

    def find_open_error(self, message: str) -> int | None: ...

    def increment_error(self, error_id: int) -> None: ...

    def create_error(self, occurrence: ErrorOccurrence) -> int: ...


class SqlOperationStore:
    """SQLAlchemy-backed operation and error log."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record_operations(self, records: list[OperationRecord]) -> None:
        with self._session_factory() as db:
            db.add_all(
                LLMOperation(
                    pipeline_name=record.pipeline_name,
                    model=record.model,
                    input_tokens=max(0, int(record.input_tokens)),
                    output_tokens=max(0, int(record.output_tokens)),
                    latency_ms=max(0, int(record.latency_ms)),
                    success=record.success,
                    fallback_parsing=bool(record.metadata.get("fallback_parsing")),
                    error_message=record.error_message,
                    metadata_json=dict(record.metadata),
                )
                for record in records
            )
            db.commit()

    def find_open_error(self, message: str) -> int | None:
        with self._session_factory() as db:
            return db.scalar(
                select(ErrorEvent.id)
                .where(ErrorEvent.message == message, ErrorEvent.status.in_(OPEN_ERROR_STATUSES))
                .order_by(ErrorEvent.last_seen.desc(), ErrorEvent.id.desc())
                .limit(1)
            )

    def increment_error(self, error_id: int) -> None:
        with self._session_factory() as db:
            db.execute(
                update(ErrorEvent)
                .where(ErrorEvent.id == error_id)
                .values(count=ErrorEvent.count + 1, last_seen=datetime.now(timezone.utc))
            )
            db.commit()

    def create_error(self, occurrence: ErrorOccurrence) -> int:
        now = datetime.now(timezone.utc)
        with self._session_factory() as db:
            event = ErrorEvent(
                message=occurrence.message,
                status="NEW",
                count=1,
                stack=occurrence.stack,
                feature_id=occurrence.feature_id,
                endpoint=occurrence.endpoint,
                metadata_json=dict(occurrence.metadata),
                first_seen=now,
                last_seen=now,
            )
            db.add(event)
            db.commit()
            return event.id


class OperationTracker:
    """Owns one ``EventBuffer`` and writes it to an ``OperationStore``.

    Operations are flushed when the buffer reaches its watermark, on
    ``tick()`` from an external scheduler, and on ``shutdown()``. Errors are
    deduplicated against the store immediately.
    """

    def __init__(self, store: OperationStore, buffer: EventBuffer | None = None) -> None:
        self._store = store
        self._buffer = buffer or EventBuffer()
        self._flush_lock = threading.Lock()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def record_operation(self, record: OperationRecord) -> None:
        try:
            if self._buffer.push(record):
                self.flush()
        except Exception:
            logger.exception("operation_tracker.record_failed pipeline=%s", record.pipeline_name)

    def record_error(
        self,
        message: str,
        *,
        stack: str | None = None,
        feature_id: str | None = None,
        endpoint: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Count a recurrence of an open error with the same message, or open a new one."""

        try:
            error_id = self._store.find_open_error(message)
            if error_id is not None:
                self._store.increment_error(error_id)
                return
            self._store.create_error(
                ErrorOccurrence(
                    message=message,
                    stack=stack,
                    feature_id=feature_id,
                    endpoint=endpoint,
                    metadata=metadata or {},
                )
            )
        except Exception:
            logger.exception("operation_tracker.error_dedup_failed message=%s", message[:100])

    def flush(self) -> int:
        """Write every buffered operation; return how many were stored."""

        with self._flush_lock:
            batch = self._buffer.drain()
            if not batch:
                return 0
            try:
                self._store.record_operations(batch)
            except Exception:
                dropped = self._buffer.requeue(batch)
                logger.exception(
                    "operation_tracker.flush_failed batch=%d requeued=%d dropped=%d",
                    len(batch),
                    len(batch) - dropped,
                    dropped,
                )
                return 0
            return len(batch)

    def tick(self) -> int:
        return self.flush()

    def shutdown(self) -> int:
        flushed = self.flush()
        if self.pending:
            logger.warning("operation_tracker.shutdown_unflushed pending=%d", self.pending)
        return flushed
