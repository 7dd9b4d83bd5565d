import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import projects, tasks
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=schemas.Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project: schemas.ProjectCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a new project owned by the caller."""
    return await projects.create_project(db, current_user, project)


@router.get("", response_model=schemas.Page[schemas.Project])
def list_projects(
    archived: Optional[bool] = Query(None, description="Filter by archived flag"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List projects the caller can see (all projects for admins)."""
    return projects.list_projects(db, current_user, archived, page, limit)


@router.get("/check-name", response_model=schemas.ProjectNameCheck)
def check_project_name(
    name: str = Query(..., min_length=1),
    exclude_id: Optional[int] = Query(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Check whether a project name is already taken (case-insensitive)."""
    return {"exists": projects.check_name_exists(db, name, exclude_id)}


@router.get("/{project_id}", response_model=schemas.Project)
def get_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return projects.get_project(db, current_user, project_id)


@router.patch("/{project_id}", response_model=schemas.Project)
async def update_project(
    project_id: int,
    project_update: schemas.ProjectUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await projects.update_project(db, current_user, project_id, project_update)


@router.post("/{project_id}/archive", response_model=schemas.Project)
async def archive_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await projects.set_archived(db, current_user, project_id, True)


@router.post("/{project_id}/unarchive", response_model=schemas.Project)
async def unarchive_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await projects.set_archived(db, current_user, project_id, False)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a project with its members, tasks and activity."""
    projects.delete_project(db, current_user, project_id)


# ============== Members ==============

@router.get("/{project_id}/members", response_model=schemas.Page[schemas.ProjectMemberResponse])
def list_members(
    project_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return projects.list_members(db, current_user, project_id, page, limit)


@router.post(
    "/{project_id}/members",
    response_model=schemas.ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: int,
    member: schemas.ProjectMemberCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await projects.add_member(db, current_user, project_id, member)


@router.patch("/{project_id}/members/{user_id}", response_model=schemas.ProjectMemberResponse)
async def update_member(
    project_id: int,
    user_id: int,
    member_update: schemas.ProjectMemberUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await projects.update_member(db, current_user, project_id, user_id, member_update)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: int,
    user_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await projects.remove_member(db, current_user, project_id, user_id)


@router.get("/{project_id}/assignable-users", response_model=schemas.Page[schemas.UserBrief])
def get_assignable_users(
    project_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Users that tasks in this project may be assigned to."""
    return projects.assignable_users(db, current_user, project_id, page, limit)


# ============== Project tasks ==============

@router.get("/{project_id}/tasks", response_model=schemas.Page[schemas.Task])
def list_project_tasks(
    project_id: int,
    status_filter: Optional[models.TaskStatus] = Query(None, alias="status"),
    priority: Optional[models.TaskPriority] = Query(None),
    assignee_id: Optional[int] = Query(None),
    label_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Search in title and description"),
    due_from: Optional[datetime] = Query(None),
    due_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return tasks.list_project_tasks(
        db,
        current_user,
        project_id,
        status_filter=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        label_id=label_id,
        search=search,
        due_from=due_from,
        due_to=due_to,
        page=page,
        limit=limit,
    )
