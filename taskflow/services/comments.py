"""
Comment service.

Access is two-layered: project membership lets a user read and add comments,
but only the author may edit or delete a comment. There is no override for
owners or admins.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Comment, User
from taskflow.auth.permissions import Action, require_task_access
from taskflow.services import fanout
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


async def create_comment(db: Session, user: User, task_id: int, data: schemas.CommentCreate) -> Comment:
    task, _ = require_task_access(db, user, task_id, Action.COMMENT)

    comment = Comment(content=data.content, task_id=task.id, user_id=user.id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info(f"Comment {comment.id} added to task {task.id} by user {user.id}")

    await fanout.comment_added(db, task, comment.id, comment.content, user)
    return comment


def list_comments(db: Session, user: User, task_id: int, page: int = 1, limit: int = 20) -> dict:
    require_task_access(db, user, task_id, Action.READ)
    query = (
        db.query(Comment)
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return paginate(query, page, limit)


def _load_own_comment(db: Session, user: User, comment_id: int, verb: str) -> Comment:
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")

    require_task_access(db, user, comment.task_id, Action.READ)

    if comment.user_id != user.id:
        logger.info(f"User {user.id} attempted to {verb} comment {comment_id} of user {comment.user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the author can {verb} this comment",
        )
    return comment


async def update_comment(db: Session, user: User, comment_id: int, data: schemas.CommentUpdate) -> Comment:
    comment = _load_own_comment(db, user, comment_id, "edit")
    comment.content = data.content
    db.commit()
    db.refresh(comment)

    task = comment.task
    await fanout.record(db, user, "updated", "Comment", comment.id, task.project_id, task.id)
    return comment


async def delete_comment(db: Session, user: User, comment_id: int) -> None:
    comment = _load_own_comment(db, user, comment_id, "delete")
    project_id, task_id = comment.task.project_id, comment.task_id

    db.delete(comment)
    db.commit()

    await fanout.record(db, user, "deleted", "Comment", comment_id, project_id, task_id)
