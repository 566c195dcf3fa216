"""
Task queries and mutations.

Every function takes the caller's ``user_id`` and folds it into the WHERE
clause, so a task owned by someone else is indistinguishable from a task
that does not exist.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select, func

from task_manager.errors import ValidationError
from task_manager.models import PRIORITY_VALUES, STATUS_VALUES, Task, TaskStatus, as_utc

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# Largest OFFSET the database integer type can hold
MAX_OFFSET = 2 ** 63 - 1

SORT_COLUMNS = {
    "createdAt": Task.created_at,
    "created_at": Task.created_at,
    "updatedAt": Task.updated_at,
    "updated_at": Task.updated_at,
    "dueDate": Task.due_date,
    "due_date": Task.due_date,
    "title": Task.title,
    "priority": Task.priority,
    "status": Task.status,
    "completed": Task.completed,
}

UPDATABLE_FIELDS = ("title", "priority", "status", "due_date", "completed")


@dataclass
class TaskFilters:
    priority: Optional[str] = None
    status: Optional[str] = None
    completed: Optional[bool] = None


@dataclass
class Pagination:
    page: Optional[int] = None
    limit: Optional[int] = None
    sort_by: Optional[str] = None
    order: Optional[str] = None


@dataclass
class TaskPage:
    items: List[Task]
    total: int
    page: int
    total_pages: int


def _value(v: Any) -> Any:
    # Accept enum members as well as raw strings
    return getattr(v, "value", v)


def _owner_query(user_id: str, filters: TaskFilters) -> list:
    conditions = [Task.user_id == user_id]

    priority = _value(filters.priority)
    if priority in PRIORITY_VALUES:
        conditions.append(Task.priority == priority)

    task_status = _value(filters.status)
    if task_status in STATUS_VALUES:
        conditions.append(Task.status == task_status)

    if filters.completed is not None:
        conditions.append(Task.completed == filters.completed)

    return conditions


def clamp_page(page: Optional[int], limit: int = DEFAULT_LIMIT) -> int:
    page = max(1, page if page is not None else DEFAULT_PAGE)
    return min(page, MAX_OFFSET // limit + 1)


def clamp_limit(limit: Optional[int]) -> int:
    return min(MAX_LIMIT, max(1, limit if limit is not None else DEFAULT_LIMIT))


def list_tasks(
    db: Session,
    user_id: str,
    filters: Optional[TaskFilters] = None,
    pagination: Optional[Pagination] = None,
) -> TaskPage:
    """
    Returns one page of the user's tasks plus the total match count.

    Unrecognised priority/status values are ignored rather than rejected,
    and an unknown sort key falls back to creation time.
    """
    filters = filters or TaskFilters()
    pagination = pagination or Pagination()

    limit = clamp_limit(pagination.limit)
    page = clamp_page(pagination.page, limit)
    sort_column = SORT_COLUMNS.get(pagination.sort_by or "", Task.created_at)
    ascending = pagination.order == "asc"

    conditions = _owner_query(user_id, filters)
    order_by = (sort_column.asc(), Task.id.asc()) if ascending else (sort_column.desc(), Task.id.desc())

    query = (
        select(Task)
        .where(*conditions)
        .order_by(*order_by)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = list(db.exec(query).all())
    total = db.exec(select(func.count()).select_from(Task).where(*conditions)).one()

    return TaskPage(items=items, total=total, page=page, total_pages=math.ceil(total / limit))


def _get_owned(db: Session, task_id: str, user_id: str) -> Optional[Task]:
    return db.exec(select(Task).where(Task.id == task_id, Task.user_id == user_id)).first()


def _clean_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title is required")
    return title


def _check_priority(priority: Any) -> str:
    priority = _value(priority)
    if priority not in PRIORITY_VALUES:
        raise ValidationError(f"Priority must be one of {', '.join(PRIORITY_VALUES)}")
    return priority


def _check_status(task_status: Any) -> str:
    task_status = _value(task_status)
    if task_status not in STATUS_VALUES:
        raise ValidationError(f"Status must be one of {', '.join(STATUS_VALUES)}")
    return task_status


def create_task(
    db: Session,
    title: str,
    priority: str,
    user_id: str,
    due_date: Optional[datetime] = None,
) -> Task:
    task = Task(
        title=_clean_title(title),
        priority=_check_priority(priority),
        user_id=user_id,
        due_date=as_utc(due_date),
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Task %s created for user %s", task.id, user_id)
    return task


def toggle_complete(db: Session, task_id: str, user_id: str) -> Optional[Task]:
    task = _get_owned(db, task_id, user_id)
    if not task:
        return None

    task.completed = not task.completed
    task.status = TaskStatus.done.value if task.completed else TaskStatus.in_progress.value
    task.updated_at = datetime.now(timezone.utc)

    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def sync_completion(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Makes ``completed`` and ``status`` agree within a partial update.

    An explicit status always wins; ``completed`` only drives the status
    when no status was supplied.
    """
    task_status = updates.get("status")
    if task_status == TaskStatus.done.value:
        updates["completed"] = True
    elif task_status == TaskStatus.in_progress.value:
        updates["completed"] = False
    elif updates.get("completed") is True:
        updates["status"] = TaskStatus.done.value
    elif updates.get("completed") is False:
        updates["status"] = TaskStatus.in_progress.value
    return updates


def _validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in updates.items():
        if key not in UPDATABLE_FIELDS:
            continue
        if key == "due_date":
            cleaned[key] = as_utc(value)
        elif value is None:
            # Only the due date can be cleared
            continue
        elif key == "title":
            cleaned[key] = _clean_title(value)
        elif key == "priority":
            cleaned[key] = _check_priority(value)
        elif key == "status":
            cleaned[key] = _check_status(value)
        elif key == "completed":
            cleaned[key] = bool(value)
    return cleaned


def update_task(db: Session, task_id: str, user_id: str, updates: Dict[str, Any]) -> Optional[Task]:
    """
    Applies a partial update to one of the user's tasks.

    Returns None when the task does not exist or belongs to another user.
    """
    task = _get_owned(db, task_id, user_id)
    if not task:
        return None

    task_data = sync_completion(_validate_updates(updates))

    for key, value in task_data.items():
        setattr(task, key, value)
    task.updated_at = datetime.now(timezone.utc)

    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("Task %s updated: %s", task.id, sorted(task_data))
    return task


def delete_task(db: Session, task_id: str, user_id: str) -> Optional[Task]:
    task = _get_owned(db, task_id, user_id)
    if not task:
        return None

    db.delete(task)
    db.commit()
    logger.info("Task %s deleted for user %s", task_id, user_id)
    return task
