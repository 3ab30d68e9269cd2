"""Admin service: cross-user reporting and bulk task operations."""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import and_, case, delete, or_
from sqlmodel import Session, col, func, select

from taskminder.errors import NotFoundError, PreconditionFailed, ValidationFailed
from taskminder.models.admin import (
    BulkAction,
    BulkResult,
    CompleteTasks,
    OwnerDetail,
    Pagination,
    PatchFields,
    PendingReminder,
    ReassignOwner,
    RecentTask,
    ReminderTypeCount,
    SetReminderType,
    SystemOverview,
    UncompleteTasks,
    UserStats,
)
from taskminder.models.task import ReminderType, Task
from taskminder.models.user import OneTimePassword, User
from taskminder.services.auth import get_user_by_owner
from taskminder.services.reminders import ReminderDispatcher
from taskminder.services.tasks import apply_task_changes, parse_input, require_task

logger = logging.getLogger(__name__)

BULK_ACTIONS: dict[str, type[BulkAction]] = {
    "complete": CompleteTasks,
    "uncomplete": UncompleteTasks,
    "set_reminder_type": SetReminderType,
    "reassign_owner": ReassignOwner,
    "patch": PatchFields,
}

OWNER_ACTIONS = ("reassign_tasks", "complete_all_tasks", "reset_all_tasks")

SORTABLE_FIELDS = {
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "title": Task.title,
}


def completion_rate(completed: int, total: int) -> float:
    """Percentage of completed tasks, rounded to two decimals."""
    if total == 0:
        return 0.0
    return round(completed / total * 100, 2)


def _day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """UTC bounds of the server-local calendar day containing the UTC instant ``now``."""
    # naive astimezone() reads the value as server-local time
    midnight = (
        now.replace(tzinfo=timezone.utc)
        .astimezone()
        .replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    )
    local_start = midnight.astimezone()
    local_end = (midnight + timedelta(days=1)).astimezone()
    return (
        local_start.astimezone(timezone.utc).replace(tzinfo=None),
        local_end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def _overdue_condition(now: datetime):
    today = now.date()
    return and_(
        Task.completed == False,  # noqa: E712
        or_(
            Task.due_date < today,
            and_(Task.due_date == today, Task.due_time < now.strftime("%H:%M")),
        ),
    )


def resolve_recipient(session: Session, owner: str) -> str | None:
    """Email address of the user a task owner id names, if any."""
    user = get_user_by_owner(session, owner)
    return user.email if user else None


# -----------------------------------------------------------------------------
# Reporting
# -----------------------------------------------------------------------------


def list_user_stats(session: Session) -> list[UserStats]:
    """Per-user totals, most recently active first."""
    rows = session.exec(
        select(
            Task.owner,
            func.count(Task.id),
            func.sum(case((Task.completed == True, 1), else_=0)),  # noqa: E712
            func.max(Task.created_at),
        ).group_by(Task.owner)
    ).all()
    by_owner = {owner: (total, completed or 0, last) for owner, total, completed, last in rows}

    stats = []
    for user in session.exec(select(User)).all():
        total, completed, last = by_owner.get(user.owner_id, (0, 0, None))
        stats.append(
            UserStats(
                user_id=user.owner_id,
                email=user.email,
                name=user.name,
                total_tasks=total,
                completed_tasks=completed,
                completion_rate=completion_rate(completed, total),
                last_task_created=last,
            )
        )

    stats.sort(key=lambda s: (s.last_task_created is not None, s.last_task_created or datetime.min), reverse=True)
    return stats


def get_owner_detail(session: Session, owner: str, now: datetime | None = None) -> OwnerDetail:
    """Breakdown of one owner's tasks.

    Raises:
        NotFoundError: If the owner has no tasks
    """
    now = now or datetime.utcnow()
    tasks = list(
        session.exec(
            select(Task).where(Task.owner == owner).order_by(col(Task.created_at).desc())
        ).all()
    )
    if not tasks:
        raise NotFoundError("User not found or has no tasks")

    completed = sum(1 for t in tasks if t.completed)
    overdue = sum(1 for t in tasks if not t.completed and t.due_instant < now)
    distribution = Counter(t.reminder_type for t in tasks)
    recipient = resolve_recipient(session, owner)

    return OwnerDetail(
        owner=owner,
        email=recipient,
        total_tasks=len(tasks),
        completed_tasks=completed,
        pending_tasks=len(tasks) - completed,
        overdue_tasks=overdue,
        completion_rate=completion_rate(completed, len(tasks)),
        first_task_created=min(t.created_at for t in tasks),
        last_task_created=max(t.created_at for t in tasks),
        recent_tasks=[RecentTask.model_validate(t) for t in tasks[:10]],
        reminder_type_distribution=[
            ReminderTypeCount(reminder_type=reminder_type, count=count)
            for reminder_type, count in distribution.most_common()
        ],
    )


def get_system_overview(session: Session, now: datetime | None = None) -> SystemOverview:
    """System-wide counts; "today" is the server-local calendar day of ``now``."""
    now = now or datetime.utcnow()
    start, end = _day_bounds(now)

    def count_tasks(*conditions) -> int:
        return session.exec(select(func.count()).select_from(Task).where(*conditions)).one()

    return SystemOverview(
        total_users=session.exec(select(func.count()).select_from(User)).one(),
        total_tasks=count_tasks(),
        completed_tasks=count_tasks(Task.completed == True),  # noqa: E712
        pending_tasks=count_tasks(Task.completed == False),  # noqa: E712
        today_tasks=count_tasks(Task.created_at >= start, Task.created_at < end),
    )


def list_pending_reminders(session: Session) -> list[PendingReminder]:
    """Incomplete tasks that carry a reminder type."""
    tasks = session.exec(
        select(Task)
        .where(Task.completed == False)  # noqa: E712
        .where(col(Task.reminder_type).is_not(None))
        .order_by(Task.due_date, Task.due_time)
    ).all()
    return [
        PendingReminder(
            id=t.id,
            title=t.title,
            owner=t.owner,
            due_date=t.due_date,
            due_time=t.due_time,
            reminder_type=t.reminder_type,
            next_reminder_due_at=t.reminder_next_due_at,
        )
        for t in tasks
    ]


def list_all_tasks(
    session: Session,
    status: str | None = None,
    reminder_type: ReminderType | None = None,
    owner: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 50,
    now: datetime | None = None,
) -> tuple[list[Task], Pagination]:
    """All tasks with filtering, sorting and page-based pagination."""
    now = now or datetime.utcnow()
    conditions = []

    if status == "completed":
        conditions.append(Task.completed == True)  # noqa: E712
    elif status == "pending":
        conditions.append(Task.completed == False)  # noqa: E712
    elif status == "overdue":
        conditions.append(_overdue_condition(now))

    if reminder_type is not None:
        conditions.append(Task.reminder_type == reminder_type)
    if owner:
        conditions.append(Task.owner == owner)
    if search:
        conditions.append(col(Task.title).ilike(f"%{search}%"))

    sort_column = col(SORTABLE_FIELDS.get(sort_by, Task.created_at))
    order = sort_column.asc() if sort_order == "asc" else sort_column.desc()

    tasks = list(
        session.exec(
            select(Task).where(*conditions).order_by(order).offset((page - 1) * limit).limit(limit)
        ).all()
    )
    total = session.exec(select(func.count()).select_from(Task).where(*conditions)).one()

    total_pages = math.ceil(total / limit) if limit else 0
    pagination = Pagination(
        current_page=page,
        total_pages=total_pages,
        total_tasks=total,
        tasks_per_page=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )
    return tasks, pagination


# -----------------------------------------------------------------------------
# Bulk operations
# -----------------------------------------------------------------------------


def build_bulk_action(action: str, update_data: dict[str, Any] | None = None) -> BulkAction:
    """Resolve an action name and its data to a typed bulk action.

    Raises:
        PreconditionFailed: If the action name is unknown
        ValidationFailed: If the action's data is missing or malformed
    """
    action_cls = BULK_ACTIONS.get(action)
    if action_cls is None:
        raise PreconditionFailed(f"Invalid action. Use: {', '.join(BULK_ACTIONS)}")
    return parse_input(action_cls, {**(update_data or {}), "action": action})


def _action_changes(action: BulkAction) -> dict[str, Any]:
    if isinstance(action, CompleteTasks):
        return {"completed": True}
    if isinstance(action, UncompleteTasks):
        return {"completed": False}
    if isinstance(action, SetReminderType):
        return {"reminder_type": action.reminder_type}
    if isinstance(action, PatchFields):
        return action.model_dump(exclude_unset=True, exclude={"action"})
    raise PreconditionFailed(f"Unsupported bulk action: {action.action}")


def _reassign(task: Task, owner: str, now: datetime) -> bool:
    if task.owner == owner:
        return False
    task.owner = owner
    task.updated_at = now
    return True


def _apply_to_tasks(
    session: Session,
    tasks: list[Task],
    action: BulkAction,
    dispatcher: ReminderDispatcher,
    now: datetime,
) -> int:
    """Apply ``action`` to ``tasks``, commit, and re-arm where needed."""
    modified = 0
    to_arm: list[Task] = []

    for task in tasks:
        if isinstance(action, ReassignOwner):
            if _reassign(task, action.owner, now):
                modified += 1
                dispatcher.cancel(session, task.id, reason="reassigned")
                if task.reminder_next_due_at is not None:
                    to_arm.append(task)
            continue

        outcome = apply_task_changes(task, _action_changes(action), now)
        if outcome.cancel:
            dispatcher.cancel(session, task.id, reason="bulk_update")
        if outcome.modified:
            modified += 1
            session.add(task)
        if outcome.rearm:
            to_arm.append(task)

    session.commit()

    for task in to_arm:
        session.refresh(task)
        dispatcher.arm(session, task, resolve_recipient(session, task.owner), now=now)

    return modified


def bulk_update_tasks(
    session: Session,
    task_ids: list[UUID],
    action: BulkAction,
    dispatcher: ReminderDispatcher,
    now: datetime | None = None,
) -> BulkResult:
    """Apply one action to every existing task in ``task_ids``.

    Unknown ids are skipped; the result reports matched vs modified counts.
    """
    now = now or datetime.utcnow()
    tasks = list(session.exec(select(Task).where(col(Task.id).in_(task_ids))).all())
    modified = _apply_to_tasks(session, tasks, action, dispatcher, now)

    logger.info(
        f"Bulk update completed: {action.action}",
        extra={"requested": len(task_ids), "matched": len(tasks), "modified": modified},
    )
    return BulkResult(action=action.action, matched_count=len(tasks), modified_count=modified)


def bulk_delete_tasks(
    session: Session,
    task_ids: list[UUID],
    confirm_delete: bool,
    dispatcher: ReminderDispatcher,
) -> int:
    """Delete every existing task in ``task_ids``.

    Raises:
        PreconditionFailed: Without explicit confirmation
    """
    if confirm_delete is not True:
        raise PreconditionFailed("Please confirm deletion by sending confirm_delete: true")

    tasks = session.exec(select(Task).where(col(Task.id).in_(task_ids))).all()
    for task in tasks:
        dispatcher.cancel(session, task.id, reason="task_deleted")
        session.delete(task)
    session.commit()

    logger.info("Bulk delete completed", extra={"requested": len(task_ids), "deleted": len(tasks)})
    return len(tasks)


def update_owner_tasks(
    session: Session,
    owner: str,
    action: str,
    dispatcher: ReminderDispatcher,
    task_ids: list[UUID] | None = None,
    new_owner: str | None = None,
    now: datetime | None = None,
) -> int:
    """Owner-wide operation; returns the number of modified tasks.

    Raises:
        PreconditionFailed: If the action name is unknown
        ValidationFailed: If reassignment lacks a new owner
    """
    now = now or datetime.utcnow()
    query = select(Task).where(Task.owner == owner)

    if action == "reassign_tasks":
        if not new_owner:
            raise ValidationFailed("new_owner", "New owner is required for reassignment")
        if task_ids:
            query = query.where(col(Task.id).in_(task_ids))
        bulk_action: BulkAction = ReassignOwner(owner=new_owner)
    elif action == "complete_all_tasks":
        query = query.where(Task.completed == False)  # noqa: E712
        bulk_action = CompleteTasks()
    elif action == "reset_all_tasks":
        query = query.where(Task.completed == True)  # noqa: E712
        bulk_action = UncompleteTasks()
    else:
        raise PreconditionFailed(f"Invalid action. Use: {', '.join(OWNER_ACTIONS)}")

    tasks = list(session.exec(query).all())
    modified = _apply_to_tasks(session, tasks, bulk_action, dispatcher, now)
    logger.info(
        f"Owner update completed: {action}",
        extra={"owner": owner, "modified": modified},
    )
    return modified


def delete_owner(
    session: Session,
    owner: str,
    confirm_delete: bool,
    dispatcher: ReminderDispatcher,
) -> tuple[bool, int]:
    """Delete a user and cascade to all of their tasks.

    Returns (user_deleted, deleted_task_count).

    Raises:
        PreconditionFailed: Without explicit confirmation
        NotFoundError: If neither a user nor any tasks exist for ``owner``
    """
    if confirm_delete is not True:
        raise PreconditionFailed("Please confirm deletion by sending confirm_delete: true")

    user = get_user_by_owner(session, owner)
    tasks = session.exec(select(Task).where(Task.owner == owner)).all()
    if user is None and not tasks:
        raise NotFoundError("User not found or has no tasks")

    for task in tasks:
        dispatcher.cancel(session, task.id, reason="task_deleted")
        session.delete(task)

    if user is not None:
        session.execute(delete(OneTimePassword).where(OneTimePassword.email == user.email))
        session.delete(user)

    session.commit()
    logger.info(
        "User and tasks deleted",
        extra={"owner": owner, "user_deleted": user is not None, "tasks": len(tasks)},
    )
    return user is not None, len(tasks)


def send_manual_reminder(session: Session, task_id: UUID, dispatcher: ReminderDispatcher) -> str:
    """Email the task owner immediately; returns the recipient.

    Raises:
        NotFoundError: If the task or the owner's email is missing
        DeliveryError: If the email could not be sent
    """
    task = require_task(session, task_id)
    recipient = resolve_recipient(session, task.owner)
    if recipient is None:
        raise NotFoundError("User not found or email is missing for this task")

    dispatcher.send_manual(task, recipient)
    return recipient
