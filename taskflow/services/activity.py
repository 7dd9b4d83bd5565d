"""Activity log: an append-only record of who did what to which entity."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from taskflow.models import Activity, User
from taskflow.auth.permissions import Action, require_project_access, require_task_access
from taskflow.services.search import paginate

logger = logging.getLogger(__name__)


def record_activity(
    db: Session,
    action: str,
    entity: str,
    entity_id: int,
    user_id: Optional[int] = None,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> Activity:
    activity = Activity(
        action=action,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        activity_metadata=metadata or {},
    )
    db.add(activity)
    db.commit()
    db.refresh(activity)
    logger.debug(f"Activity recorded: {entity} {entity_id} {action} by user {user_id}")
    return activity


def list_project_activity(db: Session, user: User, project_id: int, page: int = 1, limit: int = 20) -> dict:
    require_project_access(db, user, project_id, Action.READ)
    query = (
        db.query(Activity)
        .filter(Activity.project_id == project_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
    )
    return paginate(query, page, limit)


def list_task_activity(db: Session, user: User, task_id: int, page: int = 1, limit: int = 20) -> dict:
    require_task_access(db, user, task_id, Action.READ)
    query = (
        db.query(Activity)
        .filter(Activity.task_id == task_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
    )
    return paginate(query, page, limit)
