"""Reminder dispatch: arming, cancelling and firing scheduled deliveries.

An armed delivery is a ScheduledReminder row. The ReminderWorker polls for
due rows and hands each one to ReminderDispatcher.fire(), which sends the
email and advances the task's reminder tracking state.

Design Principles:
- Arming is best-effort and never raises to task operations
- Only one delivery is pending per task at any time
- Deliveries beyond the arming horizon are skipped, not queued
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlmodel import Session, select

from taskminder.config import get_settings
from taskminder.errors import DeliveryError, PreconditionFailed
from taskminder.models.reminder import (
    HistoryStatus,
    ReminderHistory,
    ReminderStatus,
    ScheduledReminder,
)
from taskminder.models.task import Task
from taskminder.services.email import (
    EmailSender,
    build_manual_reminder_email,
    build_reminder_email,
    deliver,
    get_email_sender,
)

logger = logging.getLogger(__name__)


class ReminderDispatcher:
    """Arms, cancels and fires task reminder deliveries.

    Thread Safety: holds no per-request state; all state lives in the
    database rows passed through the session.
    """

    def __init__(self, email_sender: EmailSender, horizon_days: int = 30) -> None:
        self.email_sender = email_sender
        self.horizon = timedelta(days=horizon_days)

    def arm(
        self,
        session: Session,
        task: Task,
        recipient: str | None,
        now: datetime | None = None,
    ) -> ScheduledReminder | None:
        """Schedule delivery of the task's next reminder.

        Returns the pending ScheduledReminder, or None when nothing was armed.
        Failures are logged and reported as None.
        """
        now = now or datetime.utcnow()
        try:
            remind_at = task.reminder_next_due_at
            if remind_at is None or remind_at <= now:
                logger.debug(
                    "No future reminder to arm",
                    extra={"task_id": str(task.id)},
                )
                return None

            if task.reminders_exhausted:
                logger.info(
                    "Reminder not armed: all reminders already sent",
                    extra={"task_id": str(task.id)},
                )
                return None

            if not recipient:
                logger.warning(
                    "Reminder not armed: no recipient address",
                    extra={"task_id": str(task.id)},
                )
                return None

            delay = remind_at - now
            if delay > self.horizon:
                logger.info(
                    f"Reminder for task {task.id} is beyond the {self.horizon.days}-day horizon, skipping",
                    extra={"task_id": str(task.id), "remind_at": remind_at.isoformat()},
                )
                return None

            self.cancel(session, task.id, reason="replaced")

            job = ScheduledReminder(
                task_id=task.id,
                recipient=recipient,
                remind_at=remind_at,
                reminder_number=(task.reminder_sent or 0) + 1,
                status=ReminderStatus.PENDING,
            )
            session.add(job)
            session.commit()
            session.refresh(job)

            logger.info(
                f"Reminder armed for task '{task.title}' in {round(delay.total_seconds() / 3600)} hours",
                extra={
                    "task_id": str(task.id),
                    "reminder_id": str(job.id),
                    "remind_at": remind_at.isoformat(),
                },
            )
            return job

        except Exception as e:
            session.rollback()
            logger.error(
                "Failed to arm reminder",
                extra={"task_id": str(task.id), "error": str(e)},
                exc_info=True,
            )
            return None

    def cancel(self, session: Session, task_id: UUID, reason: str = "user_cancelled") -> int:
        """Cancel pending deliveries for a task.

        Args:
            session: Database session (caller commits)
            task_id: The task ID
            reason: Reason for cancellation (replaced, task_completed, task_deleted, ...)

        Returns:
            int: Number of deliveries cancelled
        """
        pending = session.exec(
            select(ScheduledReminder)
            .where(ScheduledReminder.task_id == task_id)
            .where(ScheduledReminder.status == ReminderStatus.PENDING)
        ).all()

        for job in pending:
            job.status = ReminderStatus.CANCELLED
            session.add(job)

        if pending:
            session.flush()
            logger.info(
                "Reminders cancelled",
                extra={"task_id": str(task_id), "count": len(pending), "reason": reason},
            )

        return len(pending)

    def fire(
        self,
        session: Session,
        job: ScheduledReminder,
        task: Task,
        now: datetime | None = None,
    ) -> bool:
        """Send the reminder for ``job`` and record the outcome on ``task``.

        A successful send increments the sent counter; a failed one only adds
        a ``failed`` history entry. Either way the task has no armed reminder
        afterwards. Returns True when the email was delivered.

        Raises:
            PreconditionFailed: If the task has no reminders left to send
        """
        if task.reminders_exhausted:
            raise PreconditionFailed(
                f"All {task.reminder_total} reminders for task {task.id} were already sent"
            )

        now = now or datetime.utcnow()
        total = task.reminder_total or 1
        reminder_number = min((task.reminder_sent or 0) + 1, total)

        email = build_reminder_email(job.recipient, task, reminder_number, total)
        try:
            deliver(self.email_sender, email)
            delivered = True
        except Exception as e:
            delivered = False
            job.error_message = str(e)[:500]
            logger.error(
                f"Error sending reminder email for task '{task.title}'",
                extra={"task_id": str(task.id), "reminder_id": str(job.id), "error": str(e)},
            )

        session.add(
            ReminderHistory(
                task_id=task.id,
                sent_at=now,
                reminder_number=reminder_number,
                status=HistoryStatus.SENT if delivered else HistoryStatus.FAILED,
            )
        )

        if delivered and task.has_reminder_state:
            task.reminder_sent = reminder_number
            task.reminder_last_sent_at = now
            logger.info(
                f"Reminder email sent for task: {task.title} ({reminder_number}/{total})",
                extra={"task_id": str(task.id), "reminder_id": str(job.id)},
            )

        task.reminder_next_due_at = None
        session.add(task)
        session.add(job)
        session.flush()
        return delivered

    def send_manual(self, task: Task, recipient: str) -> None:
        """Send an immediate reminder regardless of the task's schedule.

        Raises:
            DeliveryError: If the transport fails
        """
        email = build_manual_reminder_email(recipient, task)
        try:
            deliver(self.email_sender, email)
        except DeliveryError:
            raise
        except Exception as e:
            raise DeliveryError(f"Failed to send manual reminder: {e}") from e

        logger.info(
            "Manual reminder sent",
            extra={"task_id": str(task.id), "recipient": recipient},
        )

    def get_pending(self, session: Session, task_id: UUID) -> ScheduledReminder | None:
        """Get the pending delivery for a task, if any."""
        return session.exec(
            select(ScheduledReminder)
            .where(ScheduledReminder.task_id == task_id)
            .where(ScheduledReminder.status == ReminderStatus.PENDING)
        ).first()

    def get_due(
        self,
        session: Session,
        as_of: datetime | None = None,
        limit: int = 100,
    ) -> list[ScheduledReminder]:
        """Get pending deliveries whose time has come, oldest first."""
        check_time = as_of or datetime.utcnow()

        return list(
            session.exec(
                select(ScheduledReminder)
                .where(ScheduledReminder.status == ReminderStatus.PENDING)
                .where(ScheduledReminder.remind_at <= check_time)
                .order_by(ScheduledReminder.remind_at)
                .limit(limit)
            ).all()
        )


# -----------------------------------------------------------------------------
# Singleton Dispatcher Instance
# -----------------------------------------------------------------------------

_dispatcher_instance: ReminderDispatcher | None = None


def get_reminder_dispatcher() -> ReminderDispatcher:
    """Get or create the reminder dispatcher singleton.

    Returns:
        ReminderDispatcher: The dispatcher bound to the configured transport
    """
    global _dispatcher_instance
    if _dispatcher_instance is None:
        settings = get_settings()
        _dispatcher_instance = ReminderDispatcher(
            email_sender=get_email_sender(),
            horizon_days=settings.REMINDER_HORIZON_DAYS,
        )
    return _dispatcher_instance
