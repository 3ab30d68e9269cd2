"""Reminder timing rules.

Each reminder type maps to a fixed lead time before the task's due instant.
Month and year offsets follow calendar arithmetic, so one month before
31 March lands on the last day of February.
"""

from datetime import datetime

from dateutil.relativedelta import relativedelta

from taskminder.models.task import ReminderType, combine_due_instant

REMINDER_OFFSETS: dict[ReminderType, relativedelta] = {
    ReminderType.CUSTOM: relativedelta(days=1),
    ReminderType.WEEKLY: relativedelta(days=7),
    ReminderType.FORTNIGHTLY: relativedelta(days=14),
    ReminderType.MONTHLY: relativedelta(months=1),
    ReminderType.BIMONTHLY: relativedelta(months=2),
    ReminderType.QUARTERLY: relativedelta(months=3),
    ReminderType.HALF_YEARLY: relativedelta(months=6),
    ReminderType.ANNUALLY: relativedelta(years=1),
    ReminderType.BI_ANNUALLY: relativedelta(years=2),
    ReminderType.TRI_ANNUALLY: relativedelta(years=3),
}

DEFAULT_OFFSET = REMINDER_OFFSETS[ReminderType.CUSTOM]


__all__ = ["REMINDER_OFFSETS", "combine_due_instant", "compute_next_reminder", "reminder_offset"]


def reminder_offset(reminder_type: ReminderType | None) -> relativedelta:
    if reminder_type is None:
        return DEFAULT_OFFSET
    return REMINDER_OFFSETS.get(ReminderType(reminder_type), DEFAULT_OFFSET)


def compute_next_reminder(
    due_instant: datetime,
    reminder_type: ReminderType | None,
    now: datetime,
) -> datetime | None:
    """Return when the next reminder should fire, or None.

    No reminder is produced for a due instant at or before ``now``, nor when
    the lead time has already elapsed (no backlog reminders).
    """
    if due_instant <= now:
        return None

    remind_at = due_instant - reminder_offset(reminder_type)
    if remind_at <= now:
        return None
    return remind_at
