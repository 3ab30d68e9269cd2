"""Service layer.

Services:
- tasks.py: Task lifecycle and reminder bookkeeping
- reminder_policy.py: Next-reminder computation per reminder type
- reminders.py: Arming, cancelling and firing scheduled deliveries
- email.py: Email transports and message templates
- auth.py: Google sign-in, emailed OTPs and JWT sessions
- admin.py: Cross-user reporting and bulk operations
"""

from taskminder.services.reminder_policy import compute_next_reminder
from taskminder.services.reminders import ReminderDispatcher, get_reminder_dispatcher

__all__ = [
    "compute_next_reminder",
    "ReminderDispatcher",
    "get_reminder_dispatcher",
]
