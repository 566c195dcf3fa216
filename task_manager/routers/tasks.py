from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from task_manager import analytics, task_service
from task_manager.auth import Identity, get_current_identity
from task_manager.database import get_session
from task_manager.errors import NotFoundError
from task_manager.models import Task
from task_manager.schemas import AnalyticsRead, TaskCreate, TaskDeleted, TaskPageRead, TaskRead, TaskUpdate

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

TASK_NOT_FOUND = "Task not found"


def _parse_int(value: Optional[str]) -> Optional[int]:
    # Garbage page/limit values fall back to the defaults
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _found(task: Optional[Task]) -> Task:
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    return task


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    """
    Creates a new task for the authenticated user.
    """
    task = task_service.create_task(db, task_in.title, task_in.priority, identity.user_id, task_in.due_date)
    return TaskRead.model_validate(task)


@router.get("", response_model=TaskPageRead)
def list_tasks(
    priority: Optional[str] = None,
    status: Optional[str] = None,
    completed: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    order: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    """
    Lists the user's tasks with optional filtering, sorting and pagination.
    """
    filters = task_service.TaskFilters(
        priority=priority,
        status=status,
        completed=None if completed is None else completed.lower() == "true",
    )
    pagination = task_service.Pagination(
        page=_parse_int(page),
        limit=_parse_int(limit),
        sort_by=sort_by,
        order="asc" if order == "asc" else "desc",
    )
    result = task_service.list_tasks(db, identity.user_id, filters, pagination)
    return TaskPageRead(
        tasks=[TaskRead.model_validate(t) for t in result.items],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


# Declared before the /{task_id} routes so "analytics" is never taken for an id
@router.get("/analytics", response_model=AnalyticsRead)
def read_analytics(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_session)):
    result = analytics.analyze(db, identity.user_id)
    return AnalyticsRead(
        total=result.total,
        completed=result.completed,
        pending=result.pending,
        by_priority=result.by_priority,
        by_status=result.by_status,
        this_week=result.this_week,
        sorted_by_priority=[TaskRead.model_validate(t) for t in result.sorted_by_priority],
    )


@router.patch("/{task_id}/complete", response_model=TaskRead)
def toggle_task_completion(
    task_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    """
    Toggles the completion status of a task for the authenticated user.
    """
    return TaskRead.model_validate(_found(task_service.toggle_complete(db, task_id, identity.user_id)))


@router.patch("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    updates = task_update.model_dump(exclude_unset=True)
    return TaskRead.model_validate(_found(task_service.update_task(db, task_id, identity.user_id, updates)))


@router.delete("/{task_id}", response_model=TaskDeleted)
def delete_task(
    task_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_session),
):
    task = _found(task_service.delete_task(db, task_id, identity.user_id))
    return TaskDeleted(message="Task deleted", task=TaskRead.model_validate(task))
