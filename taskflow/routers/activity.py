from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import activity
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api", tags=["activity"])


@router.get("/projects/{project_id}/activity", response_model=schemas.Page[schemas.Activity])
def list_project_activity(
    project_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Activity log of a project, newest first."""
    return activity.list_project_activity(db, current_user, project_id, page, limit)


@router.get("/tasks/{task_id}/activity", response_model=schemas.Page[schemas.Activity])
def list_task_activity(
    task_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return activity.list_task_activity(db, current_user, task_id, page, limit)
