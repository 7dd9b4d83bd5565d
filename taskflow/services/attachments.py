"""
Attachment service.

Attachments are metadata records pointing at a file stored elsewhere; the API
never receives file bodies.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Attachment, User
from taskflow.auth.permissions import Action, require_task_access
from taskflow.services import fanout
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB


def validate_external_url(url: str) -> str:
    """
    Validate an attachment URL.

    Only http:// and https:// are accepted, which also rules out
    javascript:, data: and file: URLs.

    Raises:
        HTTPException: 400 for empty or non-http(s) URLs
    """
    if not url or not url.strip():
        raise HTTPException(status_code=400, detail="URL cannot be empty")

    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        raise HTTPException(
            status_code=400,
            detail="Invalid URL protocol. Allowed protocols: http://, https://",
        )
    return url


def list_attachments(db: Session, user: User, task_id: int, page: int = 1, limit: int = 20) -> dict:
    require_task_access(db, user, task_id, Action.READ)
    query = (
        db.query(Attachment)
        .filter(Attachment.task_id == task_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
    )
    return paginate(query, page, limit)


async def create_attachment(db: Session, user: User, task_id: int, data: schemas.AttachmentCreate) -> Attachment:
    task, _ = require_task_access(db, user, task_id, Action.EDIT_TASK_CONTENT)

    url = validate_external_url(data.url)
    if data.size > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size: {MAX_FILE_SIZE / (1024*1024):.0f}MB",
        )

    attachment = Attachment(
        filename=data.filename,
        url=url,
        size=data.size,
        mime_type=data.mime_type,
        task_id=task.id,
        uploaded_by=user.id,
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    logger.debug(f"Attachment {attachment.id} added to task {task.id}: {attachment.filename}")

    await fanout.record(
        db, user, "attachment_added", "Task", task.id, task.project_id, task.id,
        {"attachment_id": attachment.id, "filename": attachment.filename},
    )
    return attachment


async def delete_attachment(db: Session, user: User, attachment_id: int) -> None:
    attachment = db.query(Attachment).filter(Attachment.id == attachment_id).first()
    if attachment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")

    task, _ = require_task_access(db, user, attachment.task_id, Action.EDIT_TASK_CONTENT)
    filename = attachment.filename

    db.delete(attachment)
    db.commit()

    await fanout.record(
        db, user, "attachment_deleted", "Task", task.id, task.project_id, task.id,
        {"attachment_id": attachment_id, "filename": filename},
    )
