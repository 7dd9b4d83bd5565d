from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import comments
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api", tags=["comments"])


@router.get("/tasks/{task_id}/comments", response_model=schemas.Page[schemas.Comment])
def list_comments(
    task_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List comments on a task, newest first."""
    return comments.list_comments(db, current_user, task_id, page, limit)


@router.post("/tasks/{task_id}/comments", response_model=schemas.Comment, status_code=status.HTTP_201_CREATED)
async def create_comment(
    task_id: int,
    comment: schemas.CommentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a comment. Any project member may comment, viewers included."""
    return await comments.create_comment(db, current_user, task_id, comment)


@router.patch("/comments/{comment_id}", response_model=schemas.Comment)
async def update_comment(
    comment_id: int,
    comment_update: schemas.CommentUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edit a comment (author only)."""
    return await comments.update_comment(db, current_user, comment_id, comment_update)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete a comment (author only)."""
    await comments.delete_comment(db, current_user, comment_id)
