"""
Project-level authorization.

The core of this module is pure: ``role_of``, ``is_allowed`` and
``task_update_denial`` take every input explicitly (the caller, the project
and a snapshot of its membership rows) and never touch the database, so they
can be tested in isolation.

The helpers below them (``require_project_access``, ``require_task_access``,
``accessible_project_ids``) load that snapshot from the database and turn a
denial into an HTTPException. Every resource service goes through them, so
the admin bypass and the role rules live in exactly one place.
"""

import enum
import logging
from typing import Iterable, Optional, Set, Tuple

from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from taskflow.models import Project, ProjectMember, ProjectRole, Task, User, UserRole

logger = logging.getLogger(__name__)


class AccessRole(str, enum.Enum):
    """Effective role of a caller on one project."""

    ADMIN = "ADMIN"
    OWNER = "OWNER"
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


class Action(str, enum.Enum):
    READ = "read"
    COMMENT = "comment"
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    UPDATE_TASK_STATUS = "update_task_status"
    DELETE_TASK = "delete_task"
    ASSIGN_TASK = "assign_task"
    MANAGE_TASK_LABELS = "manage_task_labels"
    EDIT_TASK_CONTENT = "edit_task_content"  # subtasks and attachments
    MANAGE_MEMBERS = "manage_members"
    MANAGE_PROJECT = "manage_project"


# Actions open to every role that can see the project
_MEMBER_ACTIONS = {Action.READ, Action.COMMENT}

# Actions an EDITOR may take on a task they are assigned to
_ASSIGNED_EDITOR_ACTIONS = {Action.UPDATE_TASK_STATUS, Action.EDIT_TASK_CONTENT}

DENIAL_MESSAGES = {
    Action.READ: "Not authorized for this project",
    Action.COMMENT: "Not authorized for this project",
    Action.CREATE_TASK: "Only the project owner can create tasks",
    Action.UPDATE_TASK: "Only the project owner can update tasks",
    Action.UPDATE_TASK_STATUS: "You can only update tasks assigned to you",
    Action.DELETE_TASK: "Only the project owner can delete tasks",
    Action.ASSIGN_TASK: "Only the project owner can assign tasks",
    Action.MANAGE_TASK_LABELS: "Only the project owner can change task labels",
    Action.EDIT_TASK_CONTENT: "Only the project owner or an assigned editor can modify this task",
    Action.MANAGE_MEMBERS: "Only the project owner can manage members",
    Action.MANAGE_PROJECT: "Only the project owner can modify this project",
}

NOT_A_MEMBER = "Not authorized for this project"


def role_of(user, project, memberships: Iterable) -> Optional[AccessRole]:
    """
    Resolve the caller's effective role on a project.

    Args:
        user: Caller (needs ``id`` and ``role``)
        project: Project (needs ``id`` and ``owner_id``)
        memberships: Membership rows to consult (each needs ``project_id``,
            ``user_id`` and ``role``); rows for other projects are ignored

    Returns:
        ADMIN for global admins, OWNER for the project owner, otherwise the
        membership role, or None if the caller has no access

    Example:
        >>> role_of(admin, project, [])
        <AccessRole.ADMIN: 'ADMIN'>
    """
    if user.role == UserRole.ADMIN:
        return AccessRole.ADMIN
    if user.id == project.owner_id:
        return AccessRole.OWNER
    for membership in memberships:
        if membership.project_id == project.id and membership.user_id == user.id:
            return AccessRole(ProjectRole(membership.role).value)
    return None


def is_allowed(role: Optional[AccessRole], action: Action, is_assignee: bool = False) -> bool:
    """Check the role/action matrix. ``is_assignee`` only matters for EDITORs."""
    if role is None:
        return False
    if role in (AccessRole.ADMIN, AccessRole.OWNER):
        return True
    if action in _MEMBER_ACTIONS:
        return True
    if role == AccessRole.EDITOR and action in _ASSIGNED_EDITOR_ACTIONS:
        return is_assignee
    return False


def task_update_denial(
    role: Optional[AccessRole], is_assignee: bool, fields: Iterable[str]
) -> Optional[str]:
    """
    Decide whether a task update touching ``fields`` is allowed.

    Owners and admins may change anything. An EDITOR may only change the
    status of a task assigned to them; any other field in the same request
    rejects the whole request. VIEWERs may not update tasks at all.

    Returns:
        The reason for the denial, or None if the update may proceed
    """
    if role is None:
        return NOT_A_MEMBER
    if role in (AccessRole.ADMIN, AccessRole.OWNER):
        return None
    if role == AccessRole.VIEWER:
        return "Viewers cannot update tasks"
    if set(fields) - {"status"}:
        return "Editors can only change task status"
    if not is_assignee:
        return "You can only update tasks assigned to you"
    return None


def is_task_assignee(task, user) -> bool:
    return any(assignee.id == user.id for assignee in task.assignees)


def load_memberships(db: Session, project_id: int, user_id: Optional[int] = None):
    """Load the membership rows of a project, optionally for a single user."""
    query = db.query(ProjectMember).filter(ProjectMember.project_id == project_id)
    if user_id is not None:
        query = query.filter(ProjectMember.user_id == user_id)
    return query.all()


def get_project_role(db: Session, user: User, project: Project) -> Optional[AccessRole]:
    memberships = [] if user.role == UserRole.ADMIN else load_memberships(db, project.id, user.id)
    return role_of(user, project, memberships)


def require_project_access(
    db: Session,
    user: User,
    project_id: int,
    action: Action,
    *,
    is_assignee: bool = False,
    message: Optional[str] = None,
) -> Tuple[Project, AccessRole]:
    """
    Load a project and check that the caller may perform ``action`` on it.

    Raises:
        HTTPException: 404 if the project does not exist, 403 if the caller
            is not a member or their role lacks the action

    Returns:
        (project, role) tuple
    """
    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    role = get_project_role(db, user, project)
    if role is None:
        logger.info(f"User {user.id} has no membership in project {project_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_A_MEMBER)

    if not is_allowed(role, action, is_assignee):
        logger.info(
            f"User {user.id} has role '{role.value}' in project {project_id}, "
            f"denied action '{action.value}'"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=message or DENIAL_MESSAGES[action],
        )

    logger.debug(f"User {user.id} ({role.value}) allowed '{action.value}' on project {project_id}")
    return project, role


def require_task_access(
    db: Session, user: User, task_id: int, action: Action, *, message: Optional[str] = None
) -> Tuple[Task, AccessRole]:
    """Load a task (404 if missing) and gate ``action`` on its project."""
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    _, role = require_project_access(
        db,
        user,
        task.project_id,
        action,
        is_assignee=is_task_assignee(task, user),
        message=message,
    )
    return task, role


def accessible_project_ids(db: Session, user: User) -> Set[int]:
    """All project ids for admins; owned and member projects otherwise."""
    if user.role == UserRole.ADMIN:
        return {row[0] for row in db.query(Project.id).all()}

    owned = {row[0] for row in db.query(Project.id).filter(Project.owner_id == user.id).all()}
    member = {
        row[0]
        for row in db.query(ProjectMember.project_id).filter(ProjectMember.user_id == user.id).all()
    }
    return owned | member
