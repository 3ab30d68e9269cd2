"""Admin API endpoints: cross-user reporting and bulk task operations."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query

from taskminder.api.deps import AdminUser, DBSession, Dispatcher
from taskminder.models.admin import (
    AdminTaskListResponse,
    BulkDeleteRequest,
    BulkDeleteResult,
    BulkResult,
    BulkUpdateRequest,
    ConfirmDelete,
    OwnerAction,
    OwnerActionResponse,
    OwnerDetail,
    PendingReminderListResponse,
    SystemOverview,
    UserDeleteResponse,
    UserStatsListResponse,
)
from taskminder.models.task import ReminderType, TaskResponse
from taskminder.services import admin as admin_service

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/users", response_model=UserStatsListResponse)
def list_users(session: DBSession, admin: AdminUser) -> UserStatsListResponse:
    """Per-user task statistics, most recently active first."""
    users = admin_service.list_user_stats(session)
    return UserStatsListResponse(users=users, count=len(users))


@router.get("/users/{owner}", response_model=OwnerDetail)
def get_user_detail(session: DBSession, admin: AdminUser, owner: str) -> OwnerDetail:
    return admin_service.get_owner_detail(session, owner)


@router.put("/users/{owner}", response_model=OwnerActionResponse)
def update_user_tasks(
    session: DBSession,
    admin: AdminUser,
    dispatcher: Dispatcher,
    owner: str,
    body: OwnerAction,
) -> OwnerActionResponse:
    """Apply an owner-wide action to the user's tasks."""
    modified = admin_service.update_owner_tasks(
        session,
        owner,
        body.action,
        dispatcher,
        task_ids=body.task_ids,
        new_owner=body.new_owner,
    )
    return OwnerActionResponse(action=body.action, modified_count=modified)


@router.delete("/users/{owner}", response_model=UserDeleteResponse)
def delete_user(
    session: DBSession,
    admin: AdminUser,
    dispatcher: Dispatcher,
    owner: str,
    body: ConfirmDelete,
) -> UserDeleteResponse:
    """Delete a user and all of their tasks."""
    user_deleted, count = admin_service.delete_owner(
        session, owner, body.confirm_delete, dispatcher
    )
    return UserDeleteResponse(
        deleted_user_id=owner,
        user_deleted=user_deleted,
        deleted_tasks_count=count,
    )


@router.get("/tasks", response_model=AdminTaskListResponse)
def list_tasks(
    session: DBSession,
    admin: AdminUser,
    status: Literal["completed", "pending", "overdue"] | None = Query(default=None),
    reminder_type: ReminderType | None = Query(default=None),
    owner: str | None = Query(default=None),
    search: str | None = Query(default=None, description="Case-insensitive title match"),
    sort_by: Literal["created_at", "updated_at", "due_date", "title"] = Query(
        default="created_at"
    ),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
) -> AdminTaskListResponse:
    """All tasks with filtering, sorting and pagination."""
    tasks, pagination = admin_service.list_all_tasks(
        session,
        status=status,
        reminder_type=reminder_type,
        owner=owner,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return AdminTaskListResponse(
        tasks=[TaskResponse.from_task(t) for t in tasks],
        pagination=pagination,
    )


@router.put("/tasks/bulk-update", response_model=BulkResult)
def bulk_update(
    session: DBSession,
    admin: AdminUser,
    dispatcher: Dispatcher,
    body: BulkUpdateRequest,
) -> BulkResult:
    action = admin_service.build_bulk_action(body.action, body.update_data)
    return admin_service.bulk_update_tasks(session, body.task_ids, action, dispatcher)


@router.delete("/tasks/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete(
    session: DBSession,
    admin: AdminUser,
    dispatcher: Dispatcher,
    body: BulkDeleteRequest,
) -> BulkDeleteResult:
    deleted = admin_service.bulk_delete_tasks(
        session, body.task_ids, body.confirm_delete, dispatcher
    )
    return BulkDeleteResult(deleted_count=deleted)


@router.get("/stats", response_model=SystemOverview)
def system_stats(session: DBSession, admin: AdminUser) -> SystemOverview:
    return admin_service.get_system_overview(session)


@router.get("/reminders/pending", response_model=PendingReminderListResponse)
def pending_reminders(session: DBSession, admin: AdminUser) -> PendingReminderListResponse:
    reminders = admin_service.list_pending_reminders(session)
    return PendingReminderListResponse(reminders=reminders, count=len(reminders))


@router.post("/reminders/{task_id}/send")
def send_reminder(
    session: DBSession,
    admin: AdminUser,
    dispatcher: Dispatcher,
    task_id: UUID,
) -> dict[str, str]:
    """Email the task owner a reminder right away."""
    recipient = admin_service.send_manual_reminder(session, task_id, dispatcher)
    return {"message": "Reminder sent successfully", "recipient": recipient}
