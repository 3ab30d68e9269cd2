"""Background workers.

The reminder worker polls for due ScheduledReminder rows and sends them.

Workers can be started via:
- run_worker_once(): Single processing cycle
- run_worker_loop(): Continuous processing with interval
"""

from taskminder.workers.base import (
    WorkerBase,
    WorkerResult,
    WorkerStatus,
)
from taskminder.workers.reminder_worker import ReminderWorker
from taskminder.workers.runner import (
    RunnerResult,
    WorkerRunner,
    configure_worker_logging,
    run_worker_loop,
    run_worker_once,
)

__all__ = [
    "WorkerBase",
    "WorkerResult",
    "WorkerStatus",
    "ReminderWorker",
    "WorkerRunner",
    "RunnerResult",
    "run_worker_once",
    "run_worker_loop",
    "configure_worker_logging",
]
