"""
Task service.

Every mutation follows the same order: load the task, resolve its project
role, reject (without touching anything) if the role does not allow it,
commit, then hand off to fan-out.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Label, Project, ProjectMember, Task, TaskPriority, TaskStatus, User
from taskflow.auth.permissions import (
    Action,
    get_project_role,
    is_task_assignee,
    require_project_access,
    require_task_access,
    task_update_denial,
)
from taskflow.services import fanout
from taskflow.services.search import apply_task_filters, paginate

logger = logging.getLogger(__name__)


def _member_ids(db: Session, project: Project) -> set:
    return {project.owner_id} | {
        row[0]
        for row in db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project.id).all()
    }


def _load_assignees(db: Session, project: Project, user_ids: Iterable[int]) -> List[User]:
    """Resolve assignee ids, all of which must belong to the project."""
    user_ids = list(dict.fromkeys(user_ids))
    if not user_ids:
        return []

    members = _member_ids(db, project)
    outsiders = [user_id for user_id in user_ids if user_id not in members]
    if outsiders:
        logger.info(f"Rejected assignees {outsiders} outside project {project.id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Assignees must be members of the project",
        )
    return db.query(User).filter(User.id.in_(user_ids)).all()


def _load_labels(db: Session, label_ids: Iterable[int]) -> List[Label]:
    label_ids = list(dict.fromkeys(label_ids))
    if not label_ids:
        return []

    labels = db.query(Label).filter(Label.id.in_(label_ids)).all()
    if len(labels) != len(label_ids):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Label not found")
    return labels


async def create_task(db: Session, user: User, data: schemas.TaskCreate) -> Task:
    project, _ = require_project_access(db, user, data.project_id, Action.CREATE_TASK)

    assignees = _load_assignees(db, project, data.assignee_ids)
    labels = _load_labels(db, data.label_ids)

    task = Task(
        title=data.title,
        description=data.description,
        status=data.status,
        priority=data.priority,
        due_date=data.due_date,
        position=data.position,
        project_id=project.id,
        owner_id=user.id,
    )
    task.assignees = assignees
    task.labels = labels
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} created in project {project.id} by user {user.id}")

    await fanout.task_created(db, task, user)
    return task


def list_project_tasks(
    db: Session,
    user: User,
    project_id: int,
    status_filter: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assignee_id: Optional[int] = None,
    label_id: Optional[int] = None,
    search: Optional[str] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    require_project_access(db, user, project_id, Action.READ)
    query = db.query(Task).filter(Task.project_id == project_id)
    query = apply_task_filters(
        query, status_filter, priority, assignee_id, label_id, search, due_from, due_to
    )
    query = query.order_by(Task.position, Task.created_at.desc(), Task.id.desc())
    return paginate(query, page, limit)


def list_my_tasks(
    db: Session,
    user: User,
    status_filter: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    label_id: Optional[int] = None,
    search: Optional[str] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Tasks assigned to the caller across every project."""
    query = db.query(Task)
    query = apply_task_filters(
        query, status_filter, priority, user.id, label_id, search, due_from, due_to
    )
    query = query.order_by(Task.due_date.is_(None), Task.due_date, Task.id.desc())
    return paginate(query, page, limit)


def get_task(db: Session, user: User, task_id: int) -> Task:
    task, _ = require_task_access(db, user, task_id, Action.READ)
    return task


def _serializable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


async def update_task(db: Session, user: User, task_id: int, data: schemas.TaskUpdate) -> Task:
    """
    Apply a partial update.

    The whole request is checked against the caller's role before any field
    is written, so a rejected update leaves the task untouched.
    """
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    project, _ = require_project_access(db, user, task.project_id, Action.READ)
    role = get_project_role(db, user, project)

    updates = data.model_dump(exclude_unset=True)
    denial = task_update_denial(role, is_task_assignee(task, user), updates.keys())
    if denial:
        logger.info(f"User {user.id} ({role.value}) denied update of task {task_id}: {denial}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denial)

    was_done = task.status == TaskStatus.DONE
    changes = {}

    label_ids = updates.pop("label_ids", None)
    if label_ids is not None:
        labels = _load_labels(db, label_ids)
        before = sorted(label.id for label in task.labels)
        after = sorted(label.id for label in labels)
        if before != after:
            changes["label_ids"] = {"from": before, "to": after}
            task.labels = labels

    for field, value in updates.items():
        current = getattr(task, field)
        if current != value:
            changes[field] = {"from": _serializable(current), "to": _serializable(value)}
            setattr(task, field, value)

    db.commit()
    db.refresh(task)

    if changes:
        completed = not was_done and task.status == TaskStatus.DONE
        logger.info(f"Task {task.id} updated by user {user.id}: {sorted(changes)}")
        await fanout.task_updated(db, task, user, changes, completed)
    return task


async def delete_task(db: Session, user: User, task_id: int) -> None:
    task, _ = require_task_access(db, user, task_id, Action.DELETE_TASK)
    project_id, title = task.project_id, task.title

    db.delete(task)
    db.commit()
    logger.info(f"Task {task_id} deleted by user {user.id}")

    await fanout.task_deleted(db, project_id, task_id, title, user)


async def assign_user(db: Session, user: User, task_id: int, assignee_id: int) -> Task:
    task, _ = require_task_access(db, user, task_id, Action.ASSIGN_TASK)

    if any(a.id == assignee_id for a in task.assignees):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already assigned to this task",
        )
    assignees = _load_assignees(db, task.project, [assignee_id])

    task.assignees.extend(assignees)
    db.commit()
    db.refresh(task)

    await fanout.task_assigned(db, task, user, assignee_id)
    return task


async def unassign_user(db: Session, user: User, task_id: int, assignee_id: int) -> Task:
    task, _ = require_task_access(db, user, task_id, Action.ASSIGN_TASK)

    assignee = next((a for a in task.assignees if a.id == assignee_id), None)
    if assignee is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not assigned to this task",
        )

    task.assignees.remove(assignee)
    db.commit()
    db.refresh(task)

    await fanout.task_unassigned(db, task, user, assignee_id)
    return task


async def add_label(db: Session, user: User, task_id: int, label_id: int) -> Task:
    task, _ = require_task_access(db, user, task_id, Action.MANAGE_TASK_LABELS)
    label = _load_labels(db, [label_id])[0]

    if label not in task.labels:
        task.labels.append(label)
        db.commit()
        db.refresh(task)
        await fanout.record(
            db, user, "label_added", "Task", task.id, task.project_id, task.id,
            {"label_id": label.id, "label": label.name},
        )
    return task


async def remove_label(db: Session, user: User, task_id: int, label_id: int) -> Task:
    task, _ = require_task_access(db, user, task_id, Action.MANAGE_TASK_LABELS)

    label = next((label for label in task.labels if label.id == label_id), None)
    if label is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Label is not attached to this task",
        )

    task.labels.remove(label)
    db.commit()
    db.refresh(task)

    await fanout.record(
        db, user, "label_removed", "Task", task.id, task.project_id, task.id,
        {"label_id": label_id, "label": label.name},
    )
    return task
