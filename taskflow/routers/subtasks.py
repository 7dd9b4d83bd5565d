from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import subtasks
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api", tags=["subtasks"])


@router.get("/tasks/{task_id}/subtasks", response_model=schemas.Page[schemas.Subtask])
def list_subtasks(
    task_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List a task's subtasks ordered by position."""
    return subtasks.list_subtasks(db, current_user, task_id, page, limit)


@router.post("/tasks/{task_id}/subtasks", response_model=schemas.Subtask, status_code=status.HTTP_201_CREATED)
async def create_subtask(
    task_id: int,
    subtask: schemas.SubtaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await subtasks.create_subtask(db, current_user, task_id, subtask)


@router.patch("/subtasks/{subtask_id}", response_model=schemas.Subtask)
async def update_subtask(
    subtask_id: int,
    subtask_update: schemas.SubtaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await subtasks.update_subtask(db, current_user, subtask_id, subtask_update)


@router.delete("/subtasks/{subtask_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subtask(
    subtask_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await subtasks.delete_subtask(db, current_user, subtask_id)
