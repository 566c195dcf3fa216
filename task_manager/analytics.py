"""
Aggregate statistics over a user's whole task set.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from task_manager.models import PRIORITY_VALUES, STATUS_VALUES, Priority, Task, as_utc

# Lower rank sorts first
PRIORITY_RANK = {Priority.high.value: 1, Priority.medium.value: 2, Priority.low.value: 3}


@dataclass
class AnalyticsResult:
    total: int = 0
    completed: int = 0
    pending: int = 0
    by_priority: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(PRIORITY_VALUES, 0))
    by_status: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(STATUS_VALUES, 0))
    this_week: int = 0
    sorted_by_priority: List[Task] = field(default_factory=list)


def start_of_week(now: Optional[datetime] = None) -> datetime:
    """
    Monday 00:00:00 local time of the week containing ``now``, as an aware
    datetime.
    """
    local = (now or datetime.now(timezone.utc)).astimezone().replace(tzinfo=None)
    monday = (local - timedelta(days=local.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    # astimezone() on a naive value picks the local offset valid on that date
    return monday.astimezone()


def summarize(tasks: Sequence[Task], now: Optional[datetime] = None) -> AnalyticsResult:
    result = AnalyticsResult(total=len(tasks))
    week_start = start_of_week(now)

    for task in tasks:
        if task.completed:
            result.completed += 1
        if task.priority in result.by_priority:
            result.by_priority[task.priority] += 1
        if task.status in result.by_status:
            result.by_status[task.status] += 1
        if as_utc(task.created_at) >= week_start:
            result.this_week += 1

    result.pending = result.total - result.completed
    # sorted() is stable, so equal priorities keep their original order
    result.sorted_by_priority = sorted(tasks, key=lambda t: PRIORITY_RANK.get(t.priority, len(PRIORITY_RANK) + 1))
    return result


def analyze(db: Session, user_id: str, now: Optional[datetime] = None) -> AnalyticsResult:
    tasks = db.exec(
        select(Task).where(Task.user_id == user_id).order_by(Task.created_at, Task.id)
    ).all()
    return summarize(list(tasks), now=now)
