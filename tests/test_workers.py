"""Tests for reminder dispatch and the background reminder worker.

Tests cover:
- ReminderDispatcher arming, cancelling and manual sends
- ReminderWorker delivery of due reminders
- WorkerRunner orchestration
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlmodel import Session, select

from taskminder.errors import DeliveryError, PreconditionFailed
from taskminder.models.reminder import (
    HistoryStatus,
    ReminderHistory,
    ReminderStatus,
    ScheduledReminder,
)
from taskminder.models.task import Task
from taskminder.services.tasks import create_task, update_task
from taskminder.workers.base import WorkerResult, WorkerStatus
from taskminder.workers.reminder_worker import ReminderWorker
from taskminder.workers.runner import WorkerRunner

NOW = datetime(2025, 1, 1, 9, 0)
RECIPIENT = "user@example.com"


def make_task(session, dispatcher, days_ahead=10, frequency="Once", title="Pay rent"):
    due = NOW + timedelta(days=days_ahead)
    return create_task(
        session,
        "owner-1",
        {
            "title": title,
            "due_date": due.date().isoformat(),
            "due_time": due.strftime("%H:%M"),
            "reminder_frequency": frequency,
        },
        dispatcher,
        recipient=RECIPIENT,
        now=NOW,
    )


def jobs_for(session: Session, task_id) -> list[ScheduledReminder]:
    return list(
        session.exec(select(ScheduledReminder).where(ScheduledReminder.task_id == task_id)).all()
    )


# ============================================================================
# WorkerResult Tests
# ============================================================================

class TestWorkerResult:
    """Tests for WorkerResult dataclass."""

    def test_worker_result_defaults(self):
        result = WorkerResult(status=WorkerStatus.NO_WORK)

        assert result.processed_count == 0
        assert result.failed_count == 0
        assert result.errors == []

    def test_worker_result_to_dict(self):
        result = WorkerResult(
            status=WorkerStatus.PARTIAL,
            processed_count=3,
            failed_count=1,
            duration_ms=12.5,
            errors=[{"item_id": "x", "error": "boom"}],
        )

        d = result.to_dict()

        assert d["status"] == "partial"
        assert d["processed_count"] == 3
        assert d["failed_count"] == 1
        assert d["errors"] == [{"item_id": "x", "error": "boom"}]


# ============================================================================
# ReminderDispatcher Tests
# ============================================================================

class TestReminderDispatcher:
    """Tests for ReminderDispatcher."""

    def test_arm_beyond_horizon_skips(self, db_session: Session, dispatcher):
        task = make_task(db_session, dispatcher, days_ahead=45)

        assert task.reminder_next_due_at == NOW + timedelta(days=44)
        assert jobs_for(db_session, task.id) == []

    def test_arm_without_recipient_skips(self, db_session: Session, dispatcher):
        task = make_task(db_session, dispatcher)
        dispatcher.cancel(db_session, task.id)
        db_session.commit()

        assert dispatcher.arm(db_session, task, None, now=NOW) is None
        assert dispatcher.get_pending(db_session, task.id) is None

    def test_arm_past_instant_skips(self, db_session: Session, dispatcher):
        task = make_task(db_session, dispatcher)

        later = task.reminder_next_due_at + timedelta(minutes=1)
        assert dispatcher.arm(db_session, task, RECIPIENT, now=later) is None

    def test_arm_replaces_pending(self, db_session: Session, dispatcher):
        """Only one delivery is pending per task."""
        task = make_task(db_session, dispatcher)
        first = dispatcher.get_pending(db_session, task.id)

        second = dispatcher.arm(db_session, task, RECIPIENT, now=NOW)

        assert second is not None
        assert second.id != first.id
        assert dispatcher.get_pending(db_session, task.id).id == second.id
        db_session.refresh(first)
        assert first.status == ReminderStatus.CANCELLED

    def test_cancel_returns_count(self, db_session: Session, dispatcher):
        task = make_task(db_session, dispatcher)

        assert dispatcher.cancel(db_session, task.id, reason="test") == 1
        assert dispatcher.cancel(db_session, task.id, reason="test") == 0
        assert dispatcher.cancel(db_session, uuid4()) == 0

    def test_get_due_orders_by_time(self, db_session: Session, dispatcher):
        late = make_task(db_session, dispatcher, days_ahead=6, title="Late")
        early = make_task(db_session, dispatcher, days_ahead=3, title="Early")
        make_task(db_session, dispatcher, days_ahead=20, title="Not yet")

        due = dispatcher.get_due(db_session, as_of=NOW + timedelta(days=10))

        assert [j.task_id for j in due] == [early.id, late.id]

    def test_fire_refuses_exhausted_task(self, db_session: Session, dispatcher, email_sender):
        task = make_task(db_session, dispatcher)
        job = dispatcher.get_pending(db_session, task.id)
        task.reminder_sent = task.reminder_total
        db_session.add(task)
        db_session.commit()

        with pytest.raises(PreconditionFailed):
            dispatcher.fire(db_session, job, task, now=job.remind_at)

        assert email_sender.sent == []

    def test_send_manual(self, db_session: Session, dispatcher, email_sender):
        task = make_task(db_session, dispatcher, frequency=None)

        dispatcher.send_manual(task, "boss@example.com")

        assert len(email_sender.sent) == 1
        assert email_sender.sent[0].to == "boss@example.com"
        assert email_sender.sent[0].subject == "Admin Reminder: Pay rent"

    def test_send_manual_failure_raises(self, db_session: Session, dispatcher, email_sender):
        task = make_task(db_session, dispatcher, frequency=None)
        email_sender.fail = True

        with pytest.raises(DeliveryError):
            dispatcher.send_manual(task, "boss@example.com")


# ============================================================================
# ReminderWorker Tests
# ============================================================================

class TestReminderWorker:
    """Tests for ReminderWorker."""

    def test_worker_name(self, dispatcher):
        assert ReminderWorker(dispatcher=dispatcher).worker_name == "ReminderWorker"

    def test_nothing_due(self, db_session: Session, dispatcher):
        make_task(db_session, dispatcher)

        result = ReminderWorker(dispatcher=dispatcher).run(db_session, now=NOW)

        assert result.status == WorkerStatus.NO_WORK

    def test_successful_delivery(self, db_session: Session, dispatcher, email_sender):
        """A sent reminder increments the counter and appends history."""
        task = make_task(db_session, dispatcher, frequency="Twice")
        fire_at = task.reminder_next_due_at + timedelta(minutes=1)

        result = ReminderWorker(dispatcher=dispatcher).run(db_session, now=fire_at)

        assert result.status == WorkerStatus.SUCCESS
        assert result.processed_count == 1

        db_session.refresh(task)
        assert task.reminder_sent == 1
        assert task.reminder_total == 2
        assert task.reminder_last_sent_at == fire_at
        assert task.reminder_next_due_at is None
        assert [(h.reminder_number, h.status) for h in task.history] == [(1, HistoryStatus.SENT)]

        job = jobs_for(db_session, task.id)[0]
        assert job.status == ReminderStatus.SENT
        assert job.sent_at == fire_at

        assert len(email_sender.sent) == 1
        assert email_sender.sent[0].to == RECIPIENT
        assert email_sender.sent[0].subject == "Task Reminder 1/2: Pay rent"

    def test_failed_delivery_keeps_history(self, db_session: Session, dispatcher, email_sender):
        """A failed send is recorded but does not count as sent."""
        task = make_task(db_session, dispatcher)
        fire_at = task.reminder_next_due_at
        email_sender.fail = True

        result = ReminderWorker(dispatcher=dispatcher).run(db_session, now=fire_at)

        assert result.status == WorkerStatus.FAILED
        assert result.failed_count == 1

        db_session.refresh(task)
        assert task.reminder_sent == 0
        assert task.reminder_last_sent_at is None
        assert task.reminder_next_due_at is None
        assert [h.status for h in task.history] == [HistoryStatus.FAILED]

        job = jobs_for(db_session, task.id)[0]
        assert job.status == ReminderStatus.FAILED
        assert "refused" in job.error_message

    def test_completed_task_is_cancelled(self, db_session: Session, dispatcher, email_sender):
        task = make_task(db_session, dispatcher)
        fire_at = task.reminder_next_due_at
        task.completed = True
        db_session.add(task)
        db_session.commit()

        ReminderWorker(dispatcher=dispatcher).run(db_session, now=fire_at)

        job = jobs_for(db_session, task.id)[0]
        assert job.status == ReminderStatus.CANCELLED
        assert email_sender.sent == []

    def test_exhausted_task_is_not_reminded_again(
        self, db_session: Session, dispatcher, email_sender
    ):
        """Moving the due date after the only reminder went out sends nothing more."""
        task = make_task(db_session, dispatcher)
        fire_at = task.reminder_next_due_at
        ReminderWorker(dispatcher=dispatcher).run(db_session, now=fire_at)

        new_due = (task.due_instant + timedelta(days=5)).date().isoformat()
        updated = update_task(
            db_session, task.id, {"due_date": new_due}, dispatcher,
            recipient=RECIPIENT, now=fire_at,
        )

        assert updated.reminder_next_due_at is None
        assert dispatcher.get_pending(db_session, task.id) is None

        result = ReminderWorker(dispatcher=dispatcher).run(
            db_session, now=fire_at + timedelta(days=6)
        )

        assert result.status == WorkerStatus.NO_WORK
        db_session.refresh(updated)
        assert updated.reminder_sent == 1
        assert updated.reminder_total == 1
        assert [(h.reminder_number, h.status) for h in updated.history] == [
            (1, HistoryStatus.SENT)
        ]
        assert [e.subject for e in email_sender.sent] == ["Task Reminder 1/1: Pay rent"]

    def test_stale_job_for_exhausted_task_is_cancelled(
        self, db_session: Session, dispatcher, email_sender
    ):
        task = make_task(db_session, dispatcher)
        job = dispatcher.get_pending(db_session, task.id)
        task.reminder_sent = task.reminder_total
        db_session.add(task)
        db_session.commit()

        ReminderWorker(dispatcher=dispatcher).run(db_session, now=job.remind_at)

        db_session.refresh(job)
        assert job.status == ReminderStatus.CANCELLED
        assert job.error_message == "reminders_exhausted"
        assert email_sender.sent == []

    def test_missing_task_fails_job(self, db_session: Session, dispatcher, email_sender):
        job = ScheduledReminder(task_id=uuid4(), recipient=RECIPIENT, remind_at=NOW)
        db_session.add(job)
        db_session.commit()

        ReminderWorker(dispatcher=dispatcher).run(db_session, now=NOW)

        db_session.refresh(job)
        assert job.status == ReminderStatus.FAILED
        assert job.error_message == "task_not_found"
        assert email_sender.sent == []

    def test_cancelled_jobs_not_fetched(self, db_session: Session, dispatcher, email_sender):
        task = make_task(db_session, dispatcher)
        fire_at = task.reminder_next_due_at
        dispatcher.cancel(db_session, task.id)
        db_session.commit()

        result = ReminderWorker(dispatcher=dispatcher).run(db_session, now=fire_at)

        assert result.status == WorkerStatus.NO_WORK
        assert email_sender.sent == []

    def test_batch_size_limits_fetch(self, db_session: Session, dispatcher):
        for days in (3, 4, 5):
            make_task(db_session, dispatcher, days_ahead=days)

        worker = ReminderWorker(batch_size=2, dispatcher=dispatcher)
        assert len(worker.fetch_pending(db_session, NOW + timedelta(days=10))) == 2

    def test_history_deleted_with_task(self, db_session: Session, dispatcher):
        task = make_task(db_session, dispatcher)
        ReminderWorker(dispatcher=dispatcher).run(db_session, now=task.reminder_next_due_at)

        db_session.delete(task)
        db_session.commit()

        assert db_session.exec(select(ReminderHistory)).all() == []


# ============================================================================
# WorkerRunner Tests
# ============================================================================

class TestWorkerRunner:
    """Tests for WorkerRunner orchestration."""

    def test_run_once_aggregates(self, db_session: Session, dispatcher, email_sender):
        make_task(db_session, dispatcher, days_ahead=3)
        make_task(db_session, dispatcher, days_ahead=4)

        runner = WorkerRunner(dispatcher=dispatcher)
        result = runner.run_once(session=db_session, now=NOW + timedelta(days=5))

        assert result.workers_run == 1
        assert result.total_processed == 2
        assert result.total_failed == 0
        assert result.errors == []
        assert result.completed_at is not None
        assert "ReminderWorker" in result.to_dict()["worker_results"]
        assert len(email_sender.sent) == 2

