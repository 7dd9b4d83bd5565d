from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskflow import models, schemas
from taskflow.database import get_db
from taskflow.auth.dependencies import get_current_admin, get_current_user
from taskflow.services import labels
from taskflow.services.search import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter(prefix="/api/labels", tags=["labels"])


@router.get("", response_model=schemas.Page[schemas.Label])
def list_labels(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return labels.list_labels(db, page, limit)


@router.post("", response_model=schemas.Label, status_code=status.HTTP_201_CREATED)
def create_label(
    label: schemas.LabelCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return labels.create_label(db, label)


@router.patch("/{label_id}", response_model=schemas.Label)
def update_label(
    label_id: int,
    label_update: schemas.LabelUpdate,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Rename or recolor a label (admin only)."""
    return labels.update_label(db, label_id, label_update)


@router.delete("/{label_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_label(
    label_id: int,
    current_user: models.User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Delete a label and detach it from every task (admin only)."""
    labels.delete_label(db, label_id)
