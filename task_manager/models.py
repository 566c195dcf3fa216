from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attaches UTC to a naive datetime. Timestamps are stored as UTC, SQLite
    hands them back without tzinfo, and clients may send bare dates.
    """
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Priority(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"


class TaskStatus(str, Enum):
    in_progress = "in-progress"
    done = "done"


PRIORITY_VALUES = tuple(p.value for p in Priority)
STATUS_VALUES = tuple(s.value for s in TaskStatus)


class User(SQLModel, table=True):
    """
    A registered account. Emails are stored lower-cased so that the unique
    constraint is effectively case-insensitive.
    """
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    username: str = Field(unique=True, index=True, nullable=False, max_length=50)
    email: str = Field(unique=True, index=True, nullable=False)
    hashed_password: str = Field(nullable=False)
    avatar: str = Field(default="", nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)

    tasks: List["Task"] = Relationship(back_populates="user")


class Task(SQLModel, table=True):
    # priority and status hold the enum *values* as plain strings
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True, nullable=False, foreign_key="user.id")
    title: str = Field(max_length=200, nullable=False)
    priority: str = Field(index=True, nullable=False)
    status: str = Field(default=TaskStatus.in_progress.value, index=True, nullable=False)
    completed: bool = Field(default=False, nullable=False)
    due_date: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, index=True, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    user: Optional[User] = Relationship(back_populates="tasks")
