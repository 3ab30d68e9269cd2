"""Task service: lifecycle operations and reminder bookkeeping."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session, func, select

from taskminder.errors import NotFoundError, ValidationFailed
from taskminder.models.task import Task, TaskCreate, TaskUpdate
from taskminder.services.reminder_policy import compute_next_reminder
from taskminder.services.reminders import ReminderDispatcher

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"title", "due_date", "due_time", "completed", "reminder_type", "reminder_frequency"}
)
REMINDER_FIELDS = frozenset({"due_date", "due_time", "reminder_type", "reminder_frequency"})
# Only reminder_frequency may be explicitly cleared
NULLABLE_FIELDS = frozenset({"reminder_frequency"})


def parse_input(model: type[BaseModel], data: BaseModel | dict[str, Any]) -> Any:
    """Validate raw input against ``model``, naming the first bad field.

    Raises:
        ValidationFailed: If any field is missing or malformed
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise ValidationFailed(field, f"Invalid {field}: {first['msg']}") from e


# -----------------------------------------------------------------------------
# Change tracking
# -----------------------------------------------------------------------------


@dataclass
class ChangeOutcome:
    """What applying a patch did to a task and what the dispatcher must do."""

    modified: bool = False
    cancel: bool = False
    rearm: bool = False


def apply_task_changes(task: Task, changes: dict[str, Any], now: datetime) -> ChangeOutcome:
    """Apply accepted fields from ``changes`` to ``task`` in place.

    Reminder state is recomputed only when a reminder-relevant field actually
    changed, so a patch repeating current values leaves it untouched.
    Completing a task always clears its next reminder.
    """
    accepted = {
        key: value
        for key, value in changes.items()
        if key in UPDATABLE_FIELDS and (value is not None or key in NULLABLE_FIELDS)
    }
    changed = {key for key, value in accepted.items() if getattr(task, key) != value}
    outcome = ChangeOutcome(modified=bool(changed))

    for key in changed:
        setattr(task, key, accepted[key])

    if "reminder_frequency" in changed:
        task.init_reminder_state()
        if not task.has_reminder_state:
            outcome.cancel = True

    if changed & REMINDER_FIELDS and task.has_reminder_state:
        next_due = None
        if not task.completed and not task.reminders_exhausted:
            next_due = compute_next_reminder(task.due_instant, task.reminder_type, now)
        if task.reminder_next_due_at != next_due:
            outcome.modified = True
        task.reminder_next_due_at = next_due
        outcome.cancel = True
        outcome.rearm = next_due is not None

    if accepted.get("completed") is True:
        if task.reminder_next_due_at is not None:
            outcome.modified = True
        task.reminder_next_due_at = None
        outcome.cancel = True
        outcome.rearm = False

    if outcome.modified:
        task.updated_at = now
    return outcome


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


def create_task(
    session: Session,
    owner: str,
    task_data: TaskCreate | dict[str, Any],
    dispatcher: ReminderDispatcher,
    recipient: str | None = None,
    now: datetime | None = None,
) -> Task:
    """Create a new task, computing and arming its first reminder.

    Args:
        session: Database session
        owner: Owner id of the caller, used unless the input names another
        task_data: Validated schema or raw field mapping
        dispatcher: Reminder dispatcher to arm the first delivery
        recipient: Email address reminders go to
        now: Creation time (default: now)

    Raises:
        ValidationFailed: If a field is missing or malformed
    """
    data: TaskCreate = parse_input(TaskCreate, task_data)
    now = now or datetime.utcnow()

    task = Task(
        title=data.title,
        due_date=data.due_date,
        due_time=data.due_time,
        owner=data.owner or owner,
        reminder_type=data.reminder_type,
        reminder_frequency=data.reminder_frequency,
        created_at=now,
        updated_at=now,
    )
    if task.reminder_frequency is not None:
        task.init_reminder_state()
        task.reminder_next_due_at = compute_next_reminder(
            task.due_instant, task.reminder_type, now
        )

    session.add(task)
    session.commit()
    session.refresh(task)

    logger.info(
        "Task created",
        extra={
            "task_id": str(task.id),
            "owner": task.owner,
            "next_reminder_due_at": (
                task.reminder_next_due_at.isoformat() if task.reminder_next_due_at else None
            ),
        },
    )

    if task.reminder_next_due_at is not None:
        dispatcher.arm(session, task, recipient, now=now)
        session.refresh(task)

    return task


def get_user_tasks(
    session: Session,
    owner: str,
    completed: bool | None = None,
    due_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
    today: date | None = None,
) -> tuple[list[Task], int]:
    """
    Get tasks for the specified owner with optional filtering.

    ``due_filter`` is one of today, upcoming, overdue.
    Returns (tasks, total_count).
    """
    today = today or datetime.utcnow().date()
    conditions = [Task.owner == owner]

    if completed is not None:
        conditions.append(Task.completed == completed)

    if due_filter == "today":
        conditions.append(Task.due_date == today)
    elif due_filter == "upcoming":
        conditions.append(Task.due_date >= today + timedelta(days=1))
    elif due_filter == "overdue":
        conditions.append(Task.due_date < today)
        conditions.append(Task.completed == False)  # noqa: E712

    query = (
        select(Task)
        .where(*conditions)
        .order_by(Task.due_date, Task.due_time)
        .offset(offset)
        .limit(limit)
    )
    count_query = select(func.count()).select_from(Task).where(*conditions)

    tasks = list(session.exec(query).all())
    total = session.exec(count_query).one()

    return tasks, total


def get_task_by_id(session: Session, task_id: UUID, owner: str | None = None) -> Task | None:
    """Get a task, optionally restricted to one owner."""
    query = select(Task).where(Task.id == task_id)
    if owner is not None:
        query = query.where(Task.owner == owner)
    return session.exec(query).first()


def require_task(session: Session, task_id: UUID, owner: str | None = None) -> Task:
    task = get_task_by_id(session, task_id, owner)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def update_task(
    session: Session,
    task_id: UUID,
    patch: TaskUpdate | dict[str, Any],
    dispatcher: ReminderDispatcher,
    recipient: str | None = None,
    owner: str | None = None,
    now: datetime | None = None,
) -> Task:
    """Update a task with the provided fields.

    Fields other than title, due_date, due_time, completed, reminder_type and
    reminder_frequency are ignored.

    Raises:
        ValidationFailed: If a provided field is malformed
        NotFoundError: If the task does not exist
    """
    data: TaskUpdate = parse_input(TaskUpdate, patch)
    now = now or datetime.utcnow()
    task = require_task(session, task_id, owner)

    outcome = apply_task_changes(task, data.model_dump(exclude_unset=True), now)

    if outcome.cancel:
        dispatcher.cancel(
            session,
            task.id,
            reason="task_completed" if task.completed else "replaced",
        )

    session.add(task)
    session.commit()
    session.refresh(task)

    if outcome.modified:
        logger.info("Task updated", extra={"task_id": str(task.id)})

    if outcome.rearm:
        dispatcher.arm(session, task, recipient, now=now)
        session.refresh(task)

    return task


def delete_task(
    session: Session,
    task_id: UUID,
    dispatcher: ReminderDispatcher,
    owner: str | None = None,
) -> None:
    """Delete a task and cancel its pending delivery.

    Raises:
        NotFoundError: If the task does not exist
    """
    task = require_task(session, task_id, owner)
    dispatcher.cancel(session, task.id, reason="task_deleted")
    session.delete(task)
    session.commit()
    logger.info("Task deleted", extra={"task_id": str(task_id)})


def get_task_stats(session: Session, owner: str, now: datetime | None = None) -> dict[str, int]:
    """Count the owner's tasks by state."""
    now = now or datetime.utcnow()
    today = now.date()

    def count(*conditions) -> int:
        return session.exec(
            select(func.count()).select_from(Task).where(Task.owner == owner, *conditions)
        ).one()

    return {
        "total": count(),
        "completed": count(Task.completed == True),  # noqa: E712
        "pending": count(Task.completed == False),  # noqa: E712
        "today": count(Task.due_date == today, Task.completed == False),  # noqa: E712
        "overdue": count(Task.due_date < today, Task.completed == False),  # noqa: E712
        "pending_reminders": count(
            Task.reminder_next_due_at <= now,
            Task.completed == False,  # noqa: E712
        ),
    }
