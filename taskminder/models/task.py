"""Task entity model."""

import re
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from pydantic import field_validator
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from taskminder.models.reminder import ReminderHistory

# Accepts H:MM and HH:MM, hours 0-23, minutes 0-59
DUE_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class ReminderType(str, Enum):
    """How far before the due instant a reminder fires."""

    CUSTOM = "Custom"
    WEEKLY = "Weekly"
    FORTNIGHTLY = "Fortnightly"
    MONTHLY = "Monthly"
    BIMONTHLY = "Bimonthly"
    QUARTERLY = "Quarterly"
    HALF_YEARLY = "Half yearly"
    ANNUALLY = "Annually"
    BI_ANNUALLY = "Bi annually"
    TRI_ANNUALLY = "Tri annually"


class ReminderFrequency(str, Enum):
    """Number of reminders requested for a task."""

    ONCE = "Once"
    TWICE = "Twice"
    THRICE = "Thrice"

    @property
    def total_reminders(self) -> int:
        return {"Once": 1, "Twice": 2, "Thrice": 3}[self.value]


def normalize_due_time(value: str) -> str:
    """Return ``value`` as zero-padded HH:MM or raise ValueError."""
    match = DUE_TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError("Invalid time format. Use HH:MM format")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def combine_due_instant(due_date: date, due_time: str) -> datetime:
    """Combine a calendar date and an ``HH:MM`` string into one instant."""
    hours, minutes = (int(part) for part in due_time.split(":"))
    return datetime(due_date.year, due_date.month, due_date.day, hours, minutes)


class TaskBase(SQLModel):
    """Base Task schema."""

    title: str = Field(min_length=1, max_length=200)
    due_date: date
    due_time: str = Field(max_length=5)


class Task(TaskBase, table=True):
    """Task database model.

    Reminder tracking state lives in the ``reminder_*`` columns and is only
    populated when ``reminder_frequency`` is set.
    """

    __tablename__ = "tasks"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    # Free-form: not a foreign key, so tasks can be reassigned to any owner id
    owner: str = Field(max_length=255, index=True)
    completed: bool = Field(default=False, index=True)
    reminder_type: ReminderType = Field(default=ReminderType.CUSTOM)
    reminder_frequency: ReminderFrequency | None = Field(default=None)

    reminder_total: int | None = Field(default=None)
    reminder_sent: int | None = Field(default=None)
    reminder_last_sent_at: datetime | None = Field(default=None)
    reminder_next_due_at: datetime | None = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    history: list["ReminderHistory"] = Relationship(
        back_populates="task",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "ReminderHistory.sent_at",
        },
    )

    @property
    def due_instant(self) -> datetime:
        """The due date combined with the due time of day."""
        return combine_due_instant(self.due_date, self.due_time)

    @property
    def has_reminder_state(self) -> bool:
        return self.reminder_total is not None

    @property
    def reminders_exhausted(self) -> bool:
        """Every reminder the frequency allows has been sent."""
        return self.has_reminder_state and (self.reminder_sent or 0) >= self.reminder_total

    def init_reminder_state(self) -> None:
        """Start (or resize) reminder tracking from the current frequency."""
        if self.reminder_frequency is None:
            self.clear_reminder_state()
            return
        self.reminder_total = self.reminder_frequency.total_reminders
        self.reminder_sent = min(self.reminder_sent or 0, self.reminder_total)

    def clear_reminder_state(self) -> None:
        self.reminder_total = None
        self.reminder_sent = None
        self.reminder_last_sent_at = None
        self.reminder_next_due_at = None


class TaskCreate(SQLModel):
    """Schema for task creation."""

    title: str = Field(min_length=1, max_length=200)
    due_date: date
    due_time: str
    owner: str | None = Field(default=None, max_length=255)
    reminder_type: ReminderType = ReminderType.CUSTOM
    reminder_frequency: ReminderFrequency | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("due_time")
    @classmethod
    def check_due_time(cls, value: str) -> str:
        return normalize_due_time(value)


class TaskUpdate(SQLModel):
    """Schema for task update.

    Fields outside this set are ignored.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    due_date: date | None = None
    due_time: str | None = None
    completed: bool | None = None
    reminder_type: ReminderType | None = None
    reminder_frequency: ReminderFrequency | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty")
        return value

    @field_validator("due_time")
    @classmethod
    def check_due_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_due_time(value)


class ReminderHistoryResponse(SQLModel):
    """One delivery attempt."""

    sent_at: datetime
    reminder_number: int
    status: str

    model_config = {"from_attributes": True}


class ReminderStateResponse(SQLModel):
    """Reminder tracking state of a task."""

    total_reminders: int
    sent_reminders: int
    last_reminder_sent_at: datetime | None
    next_reminder_due_at: datetime | None
    history: list[ReminderHistoryResponse]


class TaskResponse(SQLModel):
    """Schema for task response."""

    id: UUID
    title: str
    due_date: date
    due_time: str
    owner: str
    completed: bool
    reminder_type: ReminderType
    reminder_frequency: ReminderFrequency | None
    reminder_state: ReminderStateResponse | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        state = None
        if task.has_reminder_state:
            state = ReminderStateResponse(
                total_reminders=task.reminder_total,
                sent_reminders=task.reminder_sent or 0,
                last_reminder_sent_at=task.reminder_last_sent_at,
                next_reminder_due_at=task.reminder_next_due_at,
                history=[ReminderHistoryResponse.model_validate(h) for h in task.history],
            )
        return cls(
            id=task.id,
            title=task.title,
            due_date=task.due_date,
            due_time=task.due_time,
            owner=task.owner,
            completed=task.completed,
            reminder_type=task.reminder_type,
            reminder_frequency=task.reminder_frequency,
            reminder_state=state,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class ReminderInfo(SQLModel):
    """Summary of the reminder configured at creation."""

    type: ReminderType
    frequency: ReminderFrequency | None
    next_reminder: datetime | None


class TaskCreatedResponse(SQLModel):
    """Schema for task creation response."""

    task: TaskResponse
    reminder_info: ReminderInfo


class TaskListResponse(SQLModel):
    """Schema for task list response."""

    tasks: list[TaskResponse]
    total: int


class TaskStatsResponse(SQLModel):
    """Per-user task counters."""

    total: int
    completed: int
    pending: int
    today: int
    overdue: int
    pending_reminders: int
