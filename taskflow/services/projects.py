"""Project and membership service."""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Project, ProjectMember, ProjectRole, User, UserRole
from taskflow.auth.permissions import Action, accessible_project_ids, require_project_access
from taskflow.services import fanout
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


async def create_project(db: Session, user: User, data: schemas.ProjectCreate) -> Project:
    """Create a project owned by the caller, with a matching OWNER membership row."""
    project = Project(
        name=data.name,
        description=data.description,
        color=data.color,
        owner_id=user.id,
    )
    db.add(project)
    db.flush()
    db.add(ProjectMember(project_id=project.id, user_id=user.id, role=ProjectRole.OWNER))
    db.commit()
    db.refresh(project)
    logger.info(f"Project {project.id} created by user {user.id}")

    await fanout.record(db, user, "created", "Project", project.id, project.id, None, {"name": project.name})
    return project


def list_projects(
    db: Session, user: User, archived: Optional[bool] = None, page: int = 1, limit: int = 20
) -> dict:
    query = db.query(Project)
    if user.role != UserRole.ADMIN:
        query = query.filter(Project.id.in_(list(accessible_project_ids(db, user))))
    if archived is not None:
        query = query.filter(Project.is_archived.is_(archived))
    query = query.order_by(Project.created_at.desc(), Project.id.desc())
    return paginate(query, page, limit)


def check_name_exists(db: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    """Case-insensitive check for an existing project name."""
    query = db.query(Project).filter(func.lower(Project.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    return db.query(query.exists()).scalar()


def get_project(db: Session, user: User, project_id: int) -> Project:
    project, _ = require_project_access(db, user, project_id, Action.READ)
    return project


async def update_project(db: Session, user: User, project_id: int, data: schemas.ProjectUpdate) -> Project:
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_PROJECT)

    changes = {}
    for field, value in data.model_dump(exclude_unset=True).items():
        if getattr(project, field) != value:
            changes[field] = {"from": getattr(project, field), "to": value}
            setattr(project, field, value)

    db.commit()
    db.refresh(project)

    if changes:
        await fanout.record(db, user, "updated", "Project", project.id, project.id, None, {"changes": changes})
    return project


async def set_archived(db: Session, user: User, project_id: int, archived: bool) -> Project:
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_PROJECT)
    project.is_archived = archived
    db.commit()
    db.refresh(project)

    action = "archived" if archived else "unarchived"
    logger.info(f"Project {project.id} {action} by user {user.id}")
    await fanout.record(db, user, action, "Project", project.id, project.id)
    return project


def delete_project(db: Session, user: User, project_id: int) -> None:
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_PROJECT)
    db.delete(project)
    db.commit()
    logger.info(f"Project {project_id} deleted by user {user.id}")


# Members
def list_members(db: Session, user: User, project_id: int, page: int = 1, limit: int = 20) -> dict:
    require_project_access(db, user, project_id, Action.READ)
    query = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at, ProjectMember.id)
    )
    return paginate(query, page, limit)


def _get_member(db: Session, project_id: int, user_id: int) -> ProjectMember:
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return member


async def add_member(db: Session, user: User, project_id: int, data: schemas.ProjectMemberCreate) -> ProjectMember:
    """
    Add a user to a project.

    Raises:
        HTTPException: 404 if the user does not exist, 400 if already a member
    """
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_MEMBERS)

    new_member = db.query(User).filter(User.id == data.user_id).first()
    if new_member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    existing = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == data.user_id)
        .first()
    )
    if existing is not None or new_member.id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already a member of this project",
        )

    member = ProjectMember(project_id=project_id, user_id=data.user_id, role=data.role)
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info(f"User {data.user_id} added to project {project_id} as {data.role.value} by user {user.id}")

    await fanout.member_added(db, project, user, member.user_id, data.role.value)
    return member


async def update_member(
    db: Session, user: User, project_id: int, member_user_id: int, data: schemas.ProjectMemberUpdate
) -> ProjectMember:
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_MEMBERS)
    member = _get_member(db, project_id, member_user_id)

    if member_user_id == project.owner_id and data.role != ProjectRole.OWNER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot change the role of the project owner",
        )

    previous = member.role
    member.role = data.role
    db.commit()
    db.refresh(member)

    await fanout.record(
        db, user, "updated_member", "Project", project_id, project_id, None,
        {"user_id": member_user_id, "from": previous.value, "to": data.role.value},
    )
    return member


async def remove_member(db: Session, user: User, project_id: int, member_user_id: int) -> None:
    project, _ = require_project_access(db, user, project_id, Action.MANAGE_MEMBERS)

    if member_user_id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot remove the project owner",
        )

    member = _get_member(db, project_id, member_user_id)
    db.delete(member)
    db.commit()
    logger.info(f"User {member_user_id} removed from project {project_id} by user {user.id}")

    await fanout.record(db, user, "removed_member", "Project", project_id, project_id, None, {"user_id": member_user_id})


def assignable_users(db: Session, user: User, project_id: int, page: int = 1, limit: int = 20) -> dict:
    """Users who may be assigned to tasks in the project: its owner and members."""
    project, _ = require_project_access(db, user, project_id, Action.READ)
    member_ids = {project.owner_id} | {
        row[0]
        for row in db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project_id).all()
    }
    query = db.query(User).filter(User.id.in_(list(member_ids))).order_by(User.name, User.id)
    return paginate(query, page, limit)
