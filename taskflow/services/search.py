"""
Listing and search helpers.

``paginate`` and ``apply_task_filters`` are shared by every list endpoint so
that filtering and the ``{"data", "meta"}`` page envelope behave the same
across projects, tasks, comments and notifications.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from taskflow.models import Comment, Label, Task, TaskPriority, TaskStatus, User
from taskflow.auth.permissions import accessible_project_ids

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def paginate(query: Query, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> dict:
    """
    Run ``query`` for one page and wrap it in the list envelope.

    Pages past the end return an empty ``data`` list but still report the
    real ``total``.
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "data": items,
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


def empty_page(page: int, limit: int) -> dict:
    return {"data": [], "meta": {"total": 0, "page": page, "limit": limit, "total_pages": 0}}


def apply_task_filters(
    query: Query,
    status_filter: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assignee_id: Optional[int] = None,
    label_id: Optional[int] = None,
    search: Optional[str] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
) -> Query:
    """Apply the optional task filters to a query over ``Task``."""
    if status_filter:
        query = query.filter(Task.status == status_filter)
    if priority:
        query = query.filter(Task.priority == priority)
    if assignee_id is not None:
        query = query.filter(Task.assignees.any(User.id == assignee_id))
    if label_id is not None:
        query = query.filter(Task.labels.any(Label.id == label_id))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
    if due_from:
        query = query.filter(Task.due_date >= due_from)
    if due_to:
        query = query.filter(Task.due_date <= due_to)
    return query


def resolve_project_scope(db: Session, user: User, project_id: Optional[int]):
    """
    Restrict a search to the caller's projects.

    Returns the set of project ids to search. Asking for a project outside the
    caller's reach is a 403.
    """
    accessible = accessible_project_ids(db, user)
    if project_id is None:
        return accessible
    if project_id not in accessible:
        logger.info(f"User {user.id} searched inaccessible project {project_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized for this project",
        )
    return {project_id}


def search_tasks(
    db: Session,
    user: User,
    q: Optional[str] = None,
    project_id: Optional[int] = None,
    status_filter: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assignee_id: Optional[int] = None,
    label_id: Optional[int] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    scope = resolve_project_scope(db, user, project_id)
    if not scope:
        return empty_page(page, limit)

    query = db.query(Task).filter(Task.project_id.in_(list(scope)))
    query = apply_task_filters(
        query,
        status_filter=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        label_id=label_id,
        search=q,
        due_from=due_from,
        due_to=due_to,
    )
    query = query.order_by(Task.updated_at.desc(), Task.created_at.desc(), Task.id.desc())
    return paginate(query, page, limit)


def search_comments(
    db: Session,
    user: User,
    q: Optional[str] = None,
    project_id: Optional[int] = None,
    task_status: Optional[TaskStatus] = None,
    task_priority: Optional[TaskPriority] = None,
    label_id: Optional[int] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
) -> dict:
    scope = resolve_project_scope(db, user, project_id)
    if not scope:
        return empty_page(page, limit)

    query = db.query(Comment).join(Task, Comment.task_id == Task.id).filter(Task.project_id.in_(list(scope)))
    query = apply_task_filters(
        query,
        status_filter=task_status,
        priority=task_priority,
        label_id=label_id,
        due_from=due_from,
        due_to=due_to,
    )
    if q:
        query = query.filter(Comment.content.ilike(f"%{q}%"))
    query = query.order_by(Comment.created_at.desc(), Comment.id.desc())
    return paginate(query, page, limit)
