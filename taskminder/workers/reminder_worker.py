"""Reminder delivery worker.

Processes ScheduledReminder rows:
1. Picks up deliveries that are due (remind_at <= now)
2. Sends the reminder email through the dispatcher
3. Marks each delivery SENT, CANCELLED or FAILED
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlmodel import Session

from taskminder.errors import DeliveryError
from taskminder.models.reminder import ReminderStatus, ScheduledReminder
from taskminder.models.task import Task
from taskminder.services.reminders import ReminderDispatcher, get_reminder_dispatcher
from taskminder.workers.base import WorkerBase

logger = logging.getLogger(__name__)


class ReminderWorker(WorkerBase[ScheduledReminder]):
    """Worker for sending due reminder emails."""

    def __init__(
        self,
        batch_size: int = 50,
        dispatcher: ReminderDispatcher | None = None,
    ) -> None:
        super().__init__(batch_size=batch_size)
        self.dispatcher = dispatcher or get_reminder_dispatcher()

    @property
    def worker_name(self) -> str:
        return "ReminderWorker"

    def fetch_pending(self, session: Session, now: datetime) -> list[ScheduledReminder]:
        return self.dispatcher.get_due(session, as_of=now, limit=self.batch_size)

    def mark_processing(self, session: Session, item: ScheduledReminder) -> bool:
        """Claim a pending delivery.

        A delivery cancelled since it was fetched is skipped.
        """
        session.refresh(item)
        if item.status != ReminderStatus.PENDING:
            return False

        item.status = ReminderStatus.PROCESSING
        session.add(item)
        session.flush()
        return True

    def process_item(self, session: Session, item: ScheduledReminder, now: datetime) -> None:
        """Send the reminder for a claimed delivery.

        Raises:
            DeliveryError: If the email could not be sent. The failed history
                entry is committed first so it survives the rollback.
        """
        task = session.get(Task, item.task_id)

        if not task:
            logger.warning(
                f"Reminder {item.id} references non-existent task {item.task_id}",
                extra={"reminder_id": str(item.id), "task_id": str(item.task_id)},
            )
            item.status = ReminderStatus.FAILED
            item.error_message = "task_not_found"
            session.add(item)
            return

        if task.completed:
            logger.info(
                f"Skipping reminder for completed task {task.id}",
                extra={"reminder_id": str(item.id), "task_id": str(task.id)},
            )
            item.status = ReminderStatus.CANCELLED
            session.add(item)
            return

        if task.reminders_exhausted:
            logger.info(
                f"Skipping reminder for task {task.id}: all reminders already sent",
                extra={"reminder_id": str(item.id), "task_id": str(task.id)},
            )
            item.status = ReminderStatus.CANCELLED
            item.error_message = "reminders_exhausted"
            session.add(item)
            return

        if not self.dispatcher.fire(session, item, task, now=now):
            error = item.error_message or "delivery failed"
            session.commit()
            raise DeliveryError(error)

    def mark_completed(self, session: Session, item: ScheduledReminder, now: datetime) -> None:
        # process_item may already have settled the status
        if item.status != ReminderStatus.PROCESSING:
            return
        item.status = ReminderStatus.SENT
        item.sent_at = now
        session.add(item)

    def mark_failed(
        self, session: Session, item: ScheduledReminder, error: str, now: datetime
    ) -> None:
        """Reminders are not retried; a failed delivery stays failed."""
        item.status = ReminderStatus.FAILED
        item.error_message = error[:500] if error else None
        session.add(item)

    def get_item_id(self, item: ScheduledReminder) -> UUID:
        return item.id
