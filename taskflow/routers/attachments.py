from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import attachments
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api", tags=["attachments"])


@router.get("/tasks/{task_id}/attachments", response_model=schemas.Page[schemas.Attachment])
def list_attachments(
    task_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return attachments.list_attachments(db, current_user, task_id, page, limit)


@router.post(
    "/tasks/{task_id}/attachments",
    response_model=schemas.Attachment,
    status_code=status.HTTP_201_CREATED,
)
async def create_attachment(
    task_id: int,
    attachment: schemas.AttachmentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register an attachment (file metadata plus an http(s) URL)."""
    return await attachments.create_attachment(db, current_user, task_id, attachment)


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await attachments.delete_attachment(db, current_user, attachment_id)
