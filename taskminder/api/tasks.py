"""Task API endpoints."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from taskminder.api.deps import CurrentUser, DBSession, Dispatcher
from taskminder.models.task import (
    ReminderInfo,
    TaskCreate,
    TaskCreatedResponse,
    TaskListResponse,
    TaskResponse,
    TaskStatsResponse,
    TaskUpdate,
)
from taskminder.services.tasks import (
    create_task,
    delete_task,
    get_task_stats,
    get_user_tasks,
    require_task,
    update_task,
)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("", response_model=TaskCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_task_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    dispatcher: Dispatcher,
    task_data: TaskCreate,
) -> TaskCreatedResponse:
    """Create a new task for the authenticated user."""
    task = create_task(
        session,
        current_user.owner_id,
        task_data,
        dispatcher,
        recipient=current_user.email,
    )
    return TaskCreatedResponse(
        task=TaskResponse.from_task(task),
        reminder_info=ReminderInfo(
            type=task.reminder_type,
            frequency=task.reminder_frequency,
            next_reminder=task.reminder_next_due_at,
        ),
    )


@router.get("", response_model=TaskListResponse)
def list_tasks_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    filter: Literal["today", "upcoming", "overdue"] | None = Query(
        default=None, description="Filter by due date"
    ),
    include_completed: bool = Query(default=True, description="Include completed tasks"),
    limit: int = Query(default=50, ge=1, le=100, description="Maximum number of tasks"),
    offset: int = Query(default=0, ge=0, description="Number of tasks to skip"),
) -> TaskListResponse:
    """List all tasks for the authenticated user."""
    tasks, total = get_user_tasks(
        session,
        current_user.owner_id,
        completed=None if include_completed else False,
        due_filter=filter,
        limit=limit,
        offset=offset,
    )
    return TaskListResponse(
        tasks=[TaskResponse.from_task(t) for t in tasks],
        total=total,
    )


@router.get("/stats", response_model=TaskStatsResponse)
def task_stats_endpoint(session: DBSession, current_user: CurrentUser) -> TaskStatsResponse:
    """Counters for the authenticated user's tasks."""
    return TaskStatsResponse(**get_task_stats(session, current_user.owner_id))


@router.get("/{task_id}", response_model=TaskResponse)
def get_task_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    task_id: UUID,
) -> TaskResponse:
    """Get a specific task by ID."""
    task = require_task(session, task_id, owner=current_user.owner_id)
    return TaskResponse.from_task(task)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    dispatcher: Dispatcher,
    task_id: UUID,
    task_data: TaskUpdate,
) -> TaskResponse:
    """Update a task."""
    task = update_task(
        session,
        task_id,
        task_data,
        dispatcher,
        recipient=current_user.email,
        owner=current_user.owner_id,
    )
    return TaskResponse.from_task(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    dispatcher: Dispatcher,
    task_id: UUID,
) -> None:
    """Delete a task."""
    delete_task(session, task_id, dispatcher, owner=current_user.owner_id)
