"""
Notification service.

Every write here is followed by a push on the recipient's live channel. The
unread count pushed to clients is always recomputed from the database rather
than tracked incrementally, so it cannot drift from what the count endpoint
reports.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import live, schemas
from taskflow.models import Notification, NotificationType, User
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


async def create_notification(
    db: Session,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    entity_id: Optional[int] = None,
) -> Notification:
    """
    Persist an unread notification and push it to the recipient.

    Pushes ``new_notification`` followed by the recomputed ``unread_count``.
    """
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        entity_id=entity_id,
        is_read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.debug(f"Created {type.value} notification {notification.id} for user {user_id}")

    payload = schemas.Notification.model_validate(notification).model_dump(mode="json")
    await live.push_new_notification(user_id, payload)
    await live.push_unread_count(user_id, unread_count(db, user_id))
    return notification


def list_notifications(
    db: Session, user: User, unread_only: bool = False, page: int = 1, limit: int = 20
) -> dict:
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    return paginate(query, page, limit)


def get_own_notification(db: Session, user: User, notification_id: int) -> Notification:
    """Load a notification of the caller. Someone else's notification is a 404 too."""
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user.id)
        .first()
    )
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


async def mark_as_read(db: Session, user: User, notification_id: int) -> Notification:
    """Mark one notification read. Marking an already-read notification is a no-op."""
    notification = get_own_notification(db, user, notification_id)
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)

    await live.push_notification_read(user.id, notification.id)
    await live.push_unread_count(user.id, unread_count(db, user.id))
    return notification


async def mark_all_as_read(db: Session, user: User) -> int:
    """Mark every unread notification of the caller read. Returns how many changed."""
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user.id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"Marked {updated} notifications read for user {user.id}")

    await live.push_unread_count(user.id, unread_count(db, user.id))
    return updated


async def delete_notification(db: Session, user: User, notification_id: int) -> None:
    notification = get_own_notification(db, user, notification_id)
    db.delete(notification)
    db.commit()

    await live.push_unread_count(user.id, unread_count(db, user.id))
