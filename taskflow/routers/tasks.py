import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import tasks
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("", response_model=schemas.TaskDetail, status_code=status.HTTP_201_CREATED)
async def create_task(
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a task in a project (project owner or admin)."""
    return await tasks.create_task(db, current_user, task)


# Must be declared before /{task_id}
@router.get("/mine", response_model=schemas.Page[schemas.Task])
def list_my_tasks(
    status_filter: Optional[models.TaskStatus] = Query(None, alias="status"),
    priority: Optional[models.TaskPriority] = Query(None),
    label_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    due_from: Optional[datetime] = Query(None),
    due_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tasks assigned to the caller."""
    return tasks.list_my_tasks(
        db,
        current_user,
        status_filter=status_filter,
        priority=priority,
        label_id=label_id,
        search=search,
        due_from=due_from,
        due_to=due_to,
        page=page,
        limit=limit,
    )


@router.get("/{task_id}", response_model=schemas.TaskDetail)
def get_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return tasks.get_task(db, current_user, task_id)


@router.patch("/{task_id}", response_model=schemas.TaskDetail)
async def update_task(
    task_id: int,
    task_update: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update a task.

    Owners and admins may change any field. An assigned editor may change the
    status only; a request that mixes status with other fields is rejected
    as a whole.
    """
    return await tasks.update_task(db, current_user, task_id, task_update)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await tasks.delete_task(db, current_user, task_id)


@router.post("/{task_id}/assignees", response_model=schemas.TaskDetail)
async def assign_user(
    task_id: int,
    assignment: schemas.TaskAssign,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await tasks.assign_user(db, current_user, task_id, assignment.user_id)


@router.delete("/{task_id}/assignees/{user_id}", response_model=schemas.TaskDetail)
async def unassign_user(
    task_id: int,
    user_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await tasks.unassign_user(db, current_user, task_id, user_id)


@router.post("/{task_id}/labels/{label_id}", response_model=schemas.TaskDetail)
async def add_label(
    task_id: int,
    label_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await tasks.add_label(db, current_user, task_id, label_id)


@router.delete("/{task_id}/labels/{label_id}", response_model=schemas.TaskDetail)
async def remove_label(
    task_id: int,
    label_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await tasks.remove_label(db, current_user, task_id, label_id)
