import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_admin, get_current_user
from taskflow.services import users
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=schemas.Page[schemas.User])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """List all users (admin only)."""
    return users.list_users(db, page, limit)


@router.get("/me", response_model=schemas.User)
def get_profile(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=schemas.User)
def update_profile(
    profile: schemas.UserProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return users.update_profile(db, current_user, profile)


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    passwords: schemas.ChangePassword,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    users.change_password(db, current_user, passwords)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the caller's account together with everything it owns."""
    users.delete_account(db, current_user)


@router.get("/{user_id}", response_model=schemas.User)
def get_user(
    user_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return users.get_visible_user(db, current_user, user_id)


@router.patch("/{user_id}", response_model=schemas.User)
def update_user(
    user_id: int,
    user_update: schemas.AdminUserUpdate,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Update a user's profile, role or active flag (admin only)."""
    return users.admin_update_user(db, current_user, user_id, user_update)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Delete user (admin only)."""
    logger.debug(f"Admin {current_user.id} deleting user {user_id}")
    users.delete_user(db, current_user, user_id)
