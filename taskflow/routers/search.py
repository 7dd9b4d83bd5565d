from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import search
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("/tasks", response_model=schemas.Page[schemas.Task])
def search_tasks(
    q: Optional[str] = Query(None, description="Search in title and description"),
    project_id: Optional[int] = Query(None),
    status_filter: Optional[models.TaskStatus] = Query(None, alias="status"),
    priority: Optional[models.TaskPriority] = Query(None),
    assignee_id: Optional[int] = Query(None),
    label_id: Optional[int] = Query(None),
    due_from: Optional[datetime] = Query(None),
    due_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Search tasks across every project the caller can access."""
    return search.search_tasks(
        db,
        current_user,
        q=q,
        project_id=project_id,
        status_filter=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        label_id=label_id,
        due_from=due_from,
        due_to=due_to,
        page=page,
        limit=limit,
    )


@router.get("/comments", response_model=schemas.Page[schemas.CommentSearchResult])
def search_comments(
    q: Optional[str] = Query(None, description="Search in comment content"),
    project_id: Optional[int] = Query(None),
    task_status: Optional[models.TaskStatus] = Query(None),
    task_priority: Optional[models.TaskPriority] = Query(None),
    label_id: Optional[int] = Query(None),
    due_from: Optional[datetime] = Query(None),
    due_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return search.search_comments(
        db,
        current_user,
        q=q,
        project_id=project_id,
        task_status=task_status,
        task_priority=task_priority,
        label_id=label_id,
        due_from=due_from,
        due_to=due_to,
        page=page,
        limit=limit,
    )
