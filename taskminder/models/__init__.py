"""SQLModel entities for the Taskminder application."""

from taskminder.models.reminder import HistoryStatus, ReminderHistory, ReminderStatus, ScheduledReminder
from taskminder.models.task import ReminderFrequency, ReminderType, Task
from taskminder.models.user import OneTimePassword, User

__all__ = [
    "User",
    "OneTimePassword",
    "Task",
    "ReminderType",
    "ReminderFrequency",
    "ScheduledReminder",
    "ReminderHistory",
    "ReminderStatus",
    "HistoryStatus",
]
