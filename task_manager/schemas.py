from typing import Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from task_manager.models import Priority, TaskStatus


class CamelModel(BaseModel):
    # JSON uses camelCase; snake_case is still accepted on input
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Auth ---

class UserCreate(CamelModel):
    username: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8)


class UserLogin(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdate(CamelModel):
    username: Optional[str] = Field(default=None, max_length=50)
    avatar: Optional[str] = None


class UserRead(CamelModel):
    id: str
    username: str
    email: str
    avatar: str
    created_at: datetime


class AuthResponse(CamelModel):
    user: UserRead
    token: str


class Message(CamelModel):
    message: str


# --- Tasks ---

class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    priority: Priority
    due_date: Optional[datetime] = None


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None


class TaskRead(CamelModel):
    id: str
    user_id: str
    title: str
    priority: Priority
    status: TaskStatus
    completed: bool
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class TaskPageRead(CamelModel):
    tasks: List[TaskRead]
    total: int
    page: int
    total_pages: int


class TaskDeleted(CamelModel):
    message: str
    task: TaskRead


class AnalyticsRead(CamelModel):
    total: int
    completed: int
    pending: int
    by_priority: Dict[str, int]
    by_status: Dict[str, int]
    this_week: int
    sorted_by_priority: List[TaskRead]
