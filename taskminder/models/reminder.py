"""Reminder delivery models: scheduled deliveries and per-task history."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from taskminder.models.task import Task


class ReminderStatus(str, Enum):
    """Scheduled delivery status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class HistoryStatus(str, Enum):
    """Outcome of one delivery attempt."""

    SENT = "sent"
    FAILED = "failed"


class ScheduledReminder(SQLModel, table=True):
    """An armed delivery: one email to send for a task at ``remind_at``.

    Rows outlive their task (cancelled on delete), so ``task_id`` carries no
    foreign key.
    """

    __tablename__ = "scheduled_reminders"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    task_id: UUID = Field(index=True)
    recipient: str = Field(max_length=255)
    remind_at: datetime = Field(index=True)
    reminder_number: int = Field(default=1)
    status: ReminderStatus = Field(default=ReminderStatus.PENDING, index=True)
    error_message: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    sent_at: datetime | None = Field(default=None)


class ReminderHistory(SQLModel, table=True):
    """Append-only record of reminder deliveries for a task."""

    __tablename__ = "reminder_history"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    task_id: UUID = Field(foreign_key="tasks.id", index=True)
    sent_at: datetime = Field(default_factory=datetime.utcnow)
    reminder_number: int
    status: HistoryStatus = Field(default=HistoryStatus.SENT)

    task: "Task" = Relationship(back_populates="history")

