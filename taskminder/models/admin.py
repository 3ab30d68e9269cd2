"""Request and response schemas for the admin panel."""

from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from taskminder.models.task import ReminderFrequency, ReminderType, TaskResponse, normalize_due_time


class UserStats(SQLModel):
    """Per-user task statistics."""

    user_id: str
    email: str
    name: str | None
    total_tasks: int
    completed_tasks: int
    completion_rate: float
    last_task_created: datetime | None


class UserStatsListResponse(SQLModel):
    users: list[UserStats]
    count: int


class ReminderTypeCount(SQLModel):
    reminder_type: ReminderType
    count: int


class RecentTask(SQLModel):
    id: UUID
    title: str
    due_date: date
    due_time: str
    completed: bool
    reminder_type: ReminderType
    created_at: datetime

    model_config = {"from_attributes": True}


class OwnerDetail(SQLModel):
    """Task breakdown for a single owner."""

    owner: str
    email: str | None
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    overdue_tasks: int
    completion_rate: float
    first_task_created: datetime | None
    last_task_created: datetime | None
    recent_tasks: list[RecentTask]
    reminder_type_distribution: list[ReminderTypeCount]


class OwnerAction(SQLModel):
    """Owner-wide task operation."""

    action: str
    task_ids: list[UUID] | None = None
    new_owner: str | None = None


class OwnerActionResponse(SQLModel):
    action: str
    modified_count: int


class ConfirmDelete(SQLModel):
    confirm_delete: bool = False


class UserDeleteResponse(SQLModel):
    deleted_user_id: str
    user_deleted: bool
    deleted_tasks_count: int


class SystemOverview(SQLModel):
    """System-wide counters."""

    total_users: int
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    today_tasks: int


class PendingReminder(SQLModel):
    id: UUID
    title: str
    owner: str
    due_date: date
    due_time: str
    reminder_type: ReminderType
    next_reminder_due_at: datetime | None = None


class PendingReminderListResponse(SQLModel):
    reminders: list[PendingReminder]
    count: int


class Pagination(SQLModel):
    current_page: int
    total_pages: int
    total_tasks: int
    tasks_per_page: int
    has_next_page: bool
    has_prev_page: bool


class AdminTaskListResponse(SQLModel):
    tasks: list[TaskResponse]
    pagination: Pagination


# -----------------------------------------------------------------------------
# Bulk operations
# -----------------------------------------------------------------------------


class BulkUpdateRequest(SQLModel):
    """Raw bulk update body; ``action`` is resolved to a typed variant."""

    task_ids: list[UUID] = Field(min_length=1)
    action: str
    update_data: dict[str, Any] | None = None


class BulkDeleteRequest(SQLModel):
    task_ids: list[UUID] = Field(min_length=1)
    confirm_delete: bool = False


class BulkResult(SQLModel):
    action: str
    matched_count: int
    modified_count: int


class BulkDeleteResult(SQLModel):
    deleted_count: int


class CompleteTasks(SQLModel):
    action: Literal["complete"] = "complete"


class UncompleteTasks(SQLModel):
    action: Literal["uncomplete"] = "uncomplete"


class SetReminderType(SQLModel):
    action: Literal["set_reminder_type"] = "set_reminder_type"
    reminder_type: ReminderType


class ReassignOwner(SQLModel):
    action: Literal["reassign_owner"] = "reassign_owner"
    owner: str = Field(min_length=1, max_length=255)


class PatchFields(SQLModel):
    """Typed replacement for arbitrary field writes."""

    action: Literal["patch"] = "patch"

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, min_length=1, max_length=200)
    due_date: date | None = None
    due_time: str | None = None
    completed: bool | None = None
    reminder_type: ReminderType | None = None
    reminder_frequency: ReminderFrequency | None = None

    @field_validator("due_time")
    @classmethod
    def check_due_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_due_time(value)


BulkAction = CompleteTasks | UncompleteTasks | SetReminderType | ReassignOwner | PatchFields
