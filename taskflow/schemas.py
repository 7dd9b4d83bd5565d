from pydantic import BaseModel, Field, computed_field, field_validator
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from taskflow.models import (
    NotificationType,
    ProjectRole,
    TaskPriority,
    TaskStatus,
    UserRole,
)
from taskflow.time_utils import is_overdue

T = TypeVar("T")


def reject_null(value, info):
    """Partial updates may omit a field but not clear one that is required."""
    if value is None:
        raise ValueError(f"{info.field_name} cannot be null")
    return value


# Pagination
class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., serialization_alias="totalPages")


class Page(BaseModel, Generic[T]):
    data: List[T] = []
    meta: PageMeta


# User schemas
class UserBrief(BaseModel):
    id: int
    name: str
    email: str
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class User(UserBrief):
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar: Optional[str] = Field(None, max_length=512)


class AdminUserUpdate(UserProfileUpdate):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=100)
    confirm_password: str


# Label schemas
class LabelBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field("#6b7280", max_length=32)


class LabelCreate(LabelBase):
    pass


class LabelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=32)


class Label(LabelBase):
    id: int

    class Config:
        from_attributes = True


# Project schemas
class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=32)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=32)
    is_archived: Optional[bool] = None

    @field_validator("name", "is_archived", mode="before")
    @classmethod
    def check_not_null(cls, value, info):
        return reject_null(value, info)


class ProjectSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class Project(ProjectBase):
    id: int
    is_archived: bool
    owner_id: int
    owner: Optional[UserBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectNameCheck(BaseModel):
    exists: bool


class ProjectMemberCreate(BaseModel):
    user_id: int
    role: ProjectRole = ProjectRole.VIEWER


class ProjectMemberUpdate(BaseModel):
    role: ProjectRole


class ProjectMemberResponse(BaseModel):
    id: int
    project_id: int
    user_id: int
    role: ProjectRole
    user: Optional[UserBrief] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Subtask schemas
class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    is_complete: bool = False
    position: int = Field(0, ge=0)


class SubtaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    is_complete: Optional[bool] = None
    position: Optional[int] = Field(None, ge=0)

    @field_validator("title", "is_complete", "position", mode="before")
    @classmethod
    def check_not_null(cls, value, info):
        return reject_null(value, info)


class Subtask(BaseModel):
    id: int
    title: str
    is_complete: bool
    position: int
    task_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Task schemas
class TaskBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    position: int = Field(0, ge=0)


class TaskCreate(TaskBase):
    project_id: int
    assignee_ids: List[int] = Field(default_factory=list)
    label_ids: List[int] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    position: Optional[int] = Field(None, ge=0)
    label_ids: Optional[List[int]] = None

    @field_validator("title", "status", "priority", "position", "label_ids", mode="before")
    @classmethod
    def check_not_null(cls, value, info):
        return reject_null(value, info)


class TaskAssign(BaseModel):
    user_id: int


class Task(TaskBase):
    id: int
    project_id: int
    owner_id: int
    owner: Optional[UserBrief] = None
    assignees: List[UserBrief] = Field(default_factory=list)
    labels: List[Label] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return is_overdue(self.due_date, self.status.value)

    class Config:
        from_attributes = True


class TaskDetail(Task):
    project: Optional[ProjectSummary] = None
    subtasks: List[Subtask] = Field(default_factory=list)

    class Config:
        from_attributes = True


class TaskBrief(BaseModel):
    id: int
    title: str
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[datetime] = None
    project_id: int

    class Config:
        from_attributes = True


# Comment schemas
class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class Comment(BaseModel):
    id: int
    content: str
    task_id: int
    user_id: int
    user: Optional[UserBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentSearchResult(Comment):
    task: Optional[TaskBrief] = None


# Attachment schemas
class AttachmentCreate(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1024)
    size: int = Field(..., ge=0)
    mime_type: str = Field(..., min_length=1, max_length=100)


class Attachment(AttachmentCreate):
    id: int
    task_id: int
    uploaded_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Notification schemas
class Notification(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    user_id: int
    entity_id: Optional[int] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread_count: int


# Activity schemas
class Activity(BaseModel):
    id: int
    action: str
    entity: str
    entity_id: int
    user_id: Optional[int] = None
    user: Optional[UserBrief] = None
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    metadata: Optional[dict] = Field(None, validation_alias="activity_metadata")
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True
