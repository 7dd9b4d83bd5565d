"""Label service. Labels are shared across projects."""

import logging

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from taskflow import schemas
from taskflow.models import Label
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


def _ensure_unique_name(db: Session, name: str, exclude_id: int = None):
    query = db.query(Label).filter(func.lower(Label.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Label.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Label '{name}' already exists",
        )


def list_labels(db: Session, page: int = 1, limit: int = 20) -> dict:
    return paginate(db.query(Label).order_by(Label.name, Label.id), page, limit)


def get_label(db: Session, label_id: int) -> Label:
    label = db.query(Label).filter(Label.id == label_id).first()
    if label is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Label not found")
    return label


def create_label(db: Session, data: schemas.LabelCreate) -> Label:
    _ensure_unique_name(db, data.name)
    label = Label(name=data.name, color=data.color)
    db.add(label)
    db.commit()
    db.refresh(label)
    logger.info(f"Label {label.id} '{label.name}' created")
    return label


def update_label(db: Session, label_id: int, data: schemas.LabelUpdate) -> Label:
    label = get_label(db, label_id)
    updates = data.model_dump(exclude_unset=True)
    if updates.get("name"):
        _ensure_unique_name(db, updates["name"], exclude_id=label.id)
    for field, value in updates.items():
        if value is not None:
            setattr(label, field, value)
    db.commit()
    db.refresh(label)
    return label


def delete_label(db: Session, label_id: int) -> None:
    label = get_label(db, label_id)
    db.delete(label)
    db.commit()
    logger.info(f"Label {label_id} deleted")
