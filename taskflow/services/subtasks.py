"""Subtask service. Checklist items belong to a task and share its access rules."""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Subtask, User
from taskflow.auth.permissions import Action, require_task_access
from taskflow.services import fanout
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


def list_subtasks(db: Session, user: User, task_id: int, page: int = 1, limit: int = 20) -> dict:
    require_task_access(db, user, task_id, Action.READ)
    query = (
        db.query(Subtask)
        .filter(Subtask.task_id == task_id)
        .order_by(Subtask.position, Subtask.id)
    )
    return paginate(query, page, limit)


async def create_subtask(db: Session, user: User, task_id: int, data: schemas.SubtaskCreate) -> Subtask:
    task, _ = require_task_access(db, user, task_id, Action.EDIT_TASK_CONTENT)

    subtask = Subtask(
        title=data.title,
        is_complete=data.is_complete,
        position=data.position,
        task_id=task.id,
    )
    db.add(subtask)
    db.commit()
    db.refresh(subtask)

    await fanout.record(
        db, user, "created", "Subtask", subtask.id, task.project_id, task.id, {"title": subtask.title}
    )
    return subtask


def _load_subtask(db: Session, user: User, subtask_id: int):
    subtask = db.query(Subtask).filter(Subtask.id == subtask_id).first()
    if subtask is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subtask not found")
    task, _ = require_task_access(db, user, subtask.task_id, Action.EDIT_TASK_CONTENT)
    return subtask, task


async def update_subtask(db: Session, user: User, subtask_id: int, data: schemas.SubtaskUpdate) -> Subtask:
    subtask, task = _load_subtask(db, user, subtask_id)

    changes = {}
    for field, value in data.model_dump(exclude_unset=True).items():
        if getattr(subtask, field) != value:
            changes[field] = {"from": getattr(subtask, field), "to": value}
            setattr(subtask, field, value)

    db.commit()
    db.refresh(subtask)

    if changes:
        await fanout.record(
            db, user, "updated", "Subtask", subtask.id, task.project_id, task.id, {"changes": changes}
        )
    return subtask


async def delete_subtask(db: Session, user: User, subtask_id: int) -> None:
    subtask, task = _load_subtask(db, user, subtask_id)
    title = subtask.title

    db.delete(subtask)
    db.commit()
    logger.info(f"Subtask {subtask_id} deleted by user {user.id}")

    await fanout.record(db, user, "deleted", "Subtask", subtask_id, task.project_id, task.id, {"title": title})
