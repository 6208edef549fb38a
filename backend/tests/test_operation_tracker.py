"""Tests for buffered operation logging and error deduplication."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, select, update
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from onboarding.models import ErrorEvent, LLMOperation
from onboarding.models.base import Base
from onboarding.services.operation_tracker import (
    EventBuffer,
    OperationRecord,
    OperationTracker,
    SqlOperationStore,
)


def _record(name: str = "gemini-extract-kickoff", **kwargs) -> OperationRecord:  # noqa: ANN003
    return OperationRecord(pipeline_name=name, model="stub-model", **kwargs)


class _BrokenStore:
    def __init__(self) -> None:
        self.attempts = 0

    def record_operations(self, records):  # noqa: ANN001
        self.attempts += 1
        raise ConnectionError("database unavailable")

    def find_open_error(self, message):  # noqa: ANN001
        raise ConnectionError("database unavailable")

    def increment_error(self, error_id):  # noqa: ANN001
        raise ConnectionError("database unavailable")

    def create_error(self, occurrence):  # noqa: ANN001
        raise ConnectionError("database unavailable")


class EventBufferTests(unittest.TestCase):
    def test_push_reports_watermark(self) -> None:
        buffer = EventBuffer(max_size=2, max_retained=5)

        self.assertFalse(buffer.push(_record()))
        self.assertTrue(buffer.push(_record()))
        self.assertEqual(len(buffer.drain()), 2)
        self.assertEqual(len(buffer), 0)

    def test_requeue_keeps_failed_records_first_and_caps_retention(self) -> None:
        buffer = EventBuffer(max_size=10, max_retained=4)
        buffer.push(_record("newer"))

        dropped = buffer.requeue([_record("a"), _record("b"), _record("c"), _record("d")])

        names = [record.pipeline_name for record in buffer.drain()]
        self.assertEqual(dropped, 1)
        self.assertEqual(names, ["b", "c", "d", "newer"])

    def test_requeue_is_refused_when_full(self) -> None:
        buffer = EventBuffer(max_size=1, max_retained=2)
        buffer.push(_record())
        buffer.push(_record())

        self.assertEqual(buffer.requeue([_record("late")]), 1)
        self.assertEqual(len(buffer), 2)


class OperationTrackerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)
        self.store = SqlOperationStore(self.SessionLocal)

    def tearDown(self) -> None:
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def _errors(self) -> list[ErrorEvent]:
        with self.SessionLocal() as db:
            return list(db.scalars(select(ErrorEvent).order_by(ErrorEvent.id.asc())).all())

    def test_operations_flush_on_watermark_tick_and_shutdown(self) -> None:
        tracker = OperationTracker(self.store, EventBuffer(max_size=3))

        tracker.record_operation(_record())
        tracker.record_operation(_record())
        self.assertEqual(tracker.pending, 2)
        tracker.record_operation(_record())
        self.assertEqual(tracker.pending, 0)

        tracker.record_operation(_record(success=False, error_message="boom"))
        self.assertEqual(tracker.tick(), 1)
        tracker.record_operation(_record(input_tokens=10, output_tokens=4, latency_ms=250))
        self.assertEqual(tracker.shutdown(), 1)

        with self.SessionLocal() as db:
            operations = list(db.scalars(select(LLMOperation).order_by(LLMOperation.id.asc())).all())
        self.assertEqual(len(operations), 5)
        self.assertFalse(operations[3].success)
        self.assertEqual(operations[3].error_message, "boom")
        self.assertEqual((operations[4].input_tokens, operations[4].latency_ms), (10, 250))

    def test_identical_open_errors_are_counted_once(self) -> None:
        tracker = OperationTracker(self.store)

        tracker.record_error("Timeout")
        tracker.record_error("Timeout")

        errors = self._errors()
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].count, 2)
        self.assertEqual(errors[0].status, "NEW")

    def test_investigating_errors_still_absorb_occurrences(self) -> None:
        tracker = OperationTracker(self.store)
        tracker.record_error("Rate limited")
        with self.SessionLocal() as db:
            db.execute(update(ErrorEvent).values(status="INVESTIGATING"))
            db.commit()

        tracker.record_error("Rate limited")

        errors = self._errors()
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].count, 2)

    def test_resolved_error_recurrence_creates_fresh_record(self) -> None:
        tracker = OperationTracker(self.store)
        tracker.record_error("Timeout", feature_id="extraction")
        with self.SessionLocal() as db:
            db.execute(update(ErrorEvent).values(status="RESOLVED"))
            db.commit()

        tracker.record_error("Timeout", feature_id="extraction")

        errors = self._errors()
        self.assertEqual([(e.status, e.count) for e in errors], [("RESOLVED", 1), ("NEW", 1)])

    def test_different_messages_do_not_merge(self) -> None:
        tracker = OperationTracker(self.store)

        tracker.record_error("Timeout")
        tracker.record_error("timeout")

        self.assertEqual(len(self._errors()), 2)

    def test_store_failures_never_raise(self) -> None:
        store = _BrokenStore()
        tracker = OperationTracker(store, EventBuffer(max_size=1, max_retained=3))

        with self.assertLogs("onboarding.services.operation_tracker", level="ERROR"):
            tracker.record_operation(_record())
            tracker.record_error("Timeout")
            self.assertEqual(tracker.shutdown(), 0)

        self.assertEqual(tracker.pending, 1)
        self.assertEqual(store.attempts, 2)


if __name__ == "__main__":
    unittest.main()
