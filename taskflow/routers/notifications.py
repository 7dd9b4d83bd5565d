from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_user
from taskflow.services import notifications
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notifications.list_notifications(db, current_user, unread_only, page, limit)


@router.get("/unread-count", response_model=schemas.UnreadCount)
def get_unread_count(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"unread_count": notifications.unread_count(db, current_user.id)}


# Must be declared before /{notification_id}/read
@router.patch("/read-all")
async def mark_all_as_read(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = await notifications.mark_all_as_read(db, current_user)
    return {"updated": updated}


@router.patch("/{notification_id}/read", response_model=schemas.Notification)
async def mark_as_read(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a notification read. Repeating the call is harmless."""
    return await notifications.mark_as_read(db, current_user, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    await notifications.delete_notification(db, current_user, notification_id)
