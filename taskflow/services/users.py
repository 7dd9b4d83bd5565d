"""User account service: profiles, passwords and admin management."""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import User, UserRole
from taskflow.auth.security import hash_password, verify_password
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


def list_users(db: Session, page: int = 1, limit: int = 20) -> dict:
    return paginate(db.query(User).order_by(User.created_at.desc(), User.id.desc()), page, limit)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def get_visible_user(db: Session, caller: User, user_id: int) -> User:
    """Admins may read any account, everyone else only their own."""
    if caller.role != UserRole.ADMIN and caller.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to view this user")
    return get_user(db, user_id)


def update_profile(db: Session, user: User, data: schemas.UserProfileUpdate) -> User:
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, data: schemas.ChangePassword) -> None:
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="New passwords do not match")

    if not verify_password(data.current_password, user.password_hash):
        logger.info(f"Password change rejected for user {user.id}: wrong current password")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")

    user.password_hash = hash_password(data.new_password)
    db.commit()
    logger.critical(f"Password changed for user {user.email} (ID: {user.id})")


def _active_admin_count(db: Session) -> int:
    return db.query(User).filter(User.role == UserRole.ADMIN, User.is_active.is_(True)).count()


def admin_update_user(db: Session, admin: User, user_id: int, data: schemas.AdminUserUpdate) -> User:
    user = get_user(db, user_id)
    updates = data.model_dump(exclude_unset=True)

    demoting = updates.get("role") not in (None, UserRole.ADMIN) or updates.get("is_active") is False
    if user.role == UserRole.ADMIN and user.is_active and demoting and _active_admin_count(db) <= 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot demote or disable the last active admin",
        )

    for field, value in updates.items():
        if value is None and field in ("name", "role", "is_active"):
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} updated by admin {admin.id}: {sorted(updates)}")
    return user


def delete_account(db: Session, user: User) -> None:
    """Delete the caller's own account and everything it owns."""
    if user.role == UserRole.ADMIN and user.is_active and _active_admin_count(db) <= 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete the last active admin",
        )
    email, user_id = user.email, user.id
    db.delete(user)
    db.commit()
    logger.critical(f"User account deleted: {email} (ID: {user_id})")


def delete_user(db: Session, admin: User, user_id: int) -> None:
    if admin.id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account from the admin panel",
        )

    user = get_user(db, user_id)
    if user.role == UserRole.ADMIN and user.is_active and _active_admin_count(db) <= 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete the last active admin",
        )

    db.delete(user)
    db.commit()
    logger.critical(f"User {user_id} deleted by admin {admin.id}")
