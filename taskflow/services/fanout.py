"""
Notification and activity fan-out.

Each helper here is called after the triggering mutation has been committed.
It derives the notifications (one per affected user, never the actor) and the
activity record for the event and dispatches every one of them through
``best_effort``. A failing side effect is logged and rolled back; it never
reaches the caller, so the mutation's response does not depend on fan-out.
"""

import inspect
import logging
import re
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from taskflow.models import NotificationType, Project, ProjectMember, Task, User
from taskflow.services import activity, notifications

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,})")


async def best_effort(db: Session, description: str, func, *args, **kwargs) -> None:
    """
    Run one fan-out side effect. Never raises.

    Any exception is logged with its traceback and the session is rolled back
    so the next side effect starts from a clean transaction.
    """
    try:
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Fan-out step failed: {description}")
        db.rollback()


def unique_recipients(user_ids: Iterable[int], actor_id: int) -> List[int]:
    """Deduplicate recipient ids in order and drop the actor."""
    recipients = []
    for user_id in user_ids:
        if user_id is None or user_id == actor_id or user_id in recipients:
            continue
        recipients.append(user_id)
    return recipients


def task_recipients(task: Task, actor_id: int) -> List[int]:
    return unique_recipients([task.owner_id] + [a.id for a in task.assignees], actor_id)


async def _notify(db: Session, user_id: int, type_: NotificationType, title: str, message: str, entity_id: int):
    await best_effort(
        db,
        f"{type_.value} notification for user {user_id}",
        notifications.create_notification,
        db,
        user_id,
        type_,
        title,
        message,
        entity_id,
    )


async def record(
    db: Session,
    actor: User,
    action: str,
    entity: str,
    entity_id: int,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
    metadata: Optional[dict] = None,
):
    """Write one activity record without letting a failure escape."""
    await best_effort(
        db,
        f"activity {entity} {entity_id} {action}",
        activity.record_activity,
        db,
        action,
        entity,
        entity_id,
        user_id=actor.id,
        project_id=project_id,
        task_id=task_id,
        metadata=metadata,
    )


async def task_created(db: Session, task: Task, actor: User):
    task_id, project_id, title = task.id, task.project_id, task.title
    assignee_ids = unique_recipients([a.id for a in task.assignees], actor.id)

    for user_id in assignee_ids:
        await _notify(
            db, user_id, NotificationType.TASK_ASSIGNED,
            "Task assigned", f'{actor.name} assigned you to "{title}"', task_id,
        )
    await record(db, actor, "created", "Task", task_id, project_id, task_id, {"title": title})


async def task_updated(db: Session, task: Task, actor: User, changes: dict, completed: bool):
    """Notify owner and assignees of an update, as TASK_COMPLETED if it moved to DONE."""
    task_id, project_id, title = task.id, task.project_id, task.title
    recipients = task_recipients(task, actor.id)

    if completed:
        type_, heading, text = NotificationType.TASK_COMPLETED, "Task completed", f'{actor.name} completed "{title}"'
    else:
        type_, heading, text = NotificationType.TASK_UPDATED, "Task updated", f'{actor.name} updated "{title}"'

    for user_id in recipients:
        await _notify(db, user_id, type_, heading, text, task_id)
    await record(db, actor, "updated", "Task", task_id, project_id, task_id, {"changes": changes})


async def task_assigned(db: Session, task: Task, actor: User, assignee_id: int):
    task_id, project_id, title = task.id, task.project_id, task.title

    if assignee_id != actor.id:
        await _notify(
            db, assignee_id, NotificationType.TASK_ASSIGNED,
            "Task assigned", f'{actor.name} assigned you to "{title}"', task_id,
        )
    await record(db, actor, "assigned", "Task", task_id, project_id, task_id, {"user_id": assignee_id})


async def task_unassigned(db: Session, task: Task, actor: User, assignee_id: int):
    await record(db, actor, "unassigned", "Task", task.id, task.project_id, task.id, {"user_id": assignee_id})


async def task_deleted(db: Session, project_id: int, task_id: int, title: str, actor: User):
    # The task row is gone, so the entry is scoped to the project only
    await record(db, actor, "deleted", "Task", task_id, project_id, None, {"title": title})


async def comment_added(db: Session, task: Task, comment_id: int, content: str, actor: User):
    """
    Notify the task's owner and assignees of a new comment and every project
    member mentioned as ``@email`` in it.
    """
    task_id, project_id, title = task.id, task.project_id, task.title
    project = task.project

    for user_id in task_recipients(task, actor.id):
        await _notify(
            db, user_id, NotificationType.COMMENT_ADDED,
            "New comment", f'{actor.name} commented on "{title}"', task_id,
        )

    await best_effort(db, f"mentions on task {task_id}", _notify_mentions, db, project, content, actor, title, task_id)

    await record(db, actor, "added", "Comment", comment_id, project_id, task_id, {"task_title": title})


def mentioned_members(db: Session, project: Project, content: str, actor_id: int) -> List[int]:
    emails = {match.lower() for match in MENTION_PATTERN.findall(content or "")}
    if not emails:
        return []

    member_ids = {project.owner_id} | {
        row[0]
        for row in db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project.id).all()
    }
    users = db.query(User).filter(User.id.in_(list(member_ids))).all()
    return unique_recipients(
        sorted(u.id for u in users if u.email.lower() in emails), actor_id
    )


async def _notify_mentions(db: Session, project: Project, content: str, actor: User, title: str, task_id: int):
    for user_id in mentioned_members(db, project, content, actor.id):
        await _notify(
            db, user_id, NotificationType.MENTION,
            "You were mentioned", f'{actor.name} mentioned you on "{title}"', task_id,
        )


async def member_added(db: Session, project: Project, actor: User, member_user_id: int, role: str):
    project_id, name = project.id, project.name

    if member_user_id != actor.id:
        await _notify(
            db, member_user_id, NotificationType.PROJECT_INVITE,
            "Added to project", f'{actor.name} added you to "{name}" as {role}', project_id,
        )
    await record(
        db, actor, "added_member", "Project", project_id, project_id, None,
        {"user_id": member_user_id, "role": role},
    )
