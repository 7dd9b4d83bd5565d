"""
Tests for notification endpoints and fan-out behavior.

Tests cover:
- Listing (newest first, unread filter) and the unread count
- Idempotent mark-as-read, mark-all and delete
- Foreign notifications look missing (404)
- A failing notification writer never fails the triggering mutation
"""

import logging

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskflow import models
from taskflow.services import notifications
from tests.conftest import notification_count

logger = logging.getLogger(__name__)


def _notify(db: Session, user: models.User, title: str = "Task assigned", is_read: bool = False) -> models.Notification:
    notification = models.Notification(
        user_id=user.id,
        type=models.NotificationType.TASK_ASSIGNED,
        title=title,
        message=f"{title} message",
        is_read=is_read,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def test_list_notifications(
    client: TestClient, test_db: Session, editor_user: models.User, viewer_user: models.User, editor_headers: dict
):
    older = _notify(test_db, editor_user, "older", is_read=True)
    newer = _notify(test_db, editor_user, "newer")
    _notify(test_db, viewer_user, "not mine")

    response = client.get("/api/notifications", headers=editor_headers)

    assert response.status_code == 200
    body = response.json()
    assert [n["id"] for n in body["data"]] == [newer.id, older.id]
    assert body["meta"]["total"] == 2

    unread = client.get("/api/notifications", params={"unread_only": True}, headers=editor_headers).json()
    assert [n["id"] for n in unread["data"]] == [newer.id]
    logger.info("✓ Notifications listed newest first for the caller only")


def test_unread_count(client: TestClient, test_db: Session, editor_user: models.User, editor_headers: dict):
    _notify(test_db, editor_user)
    _notify(test_db, editor_user)
    _notify(test_db, editor_user, is_read=True)

    response = client.get("/api/notifications/unread-count", headers=editor_headers)

    assert response.status_code == 200
    assert response.json() == {"unread_count": 2}


def test_mark_as_read_is_idempotent(client: TestClient, test_db: Session, editor_user: models.User, editor_headers: dict):
    notification = _notify(test_db, editor_user)

    first = client.patch(f"/api/notifications/{notification.id}/read", headers=editor_headers)
    second = client.patch(f"/api/notifications/{notification.id}/read", headers=editor_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["is_read"] is True
    assert client.get("/api/notifications/unread-count", headers=editor_headers).json() == {"unread_count": 0}
    logger.info("✓ Marking read twice is harmless")


def test_foreign_notification_is_not_found(
    client: TestClient, test_db: Session, editor_user: models.User, viewer_headers: dict
):
    notification = _notify(test_db, editor_user)

    read = client.patch(f"/api/notifications/{notification.id}/read", headers=viewer_headers)
    delete = client.delete(f"/api/notifications/{notification.id}", headers=viewer_headers)

    assert read.status_code == 404
    assert read.json()["message"] == "Notification not found"
    assert delete.status_code == 404
    test_db.expire_all()
    assert test_db.query(models.Notification).filter_by(id=notification.id).one().is_read is False


def test_mark_all_as_read(
    client: TestClient, test_db: Session, editor_user: models.User, viewer_user: models.User, editor_headers: dict
):
    _notify(test_db, editor_user)
    _notify(test_db, editor_user)
    _notify(test_db, editor_user, is_read=True)
    _notify(test_db, viewer_user)

    response = client.patch("/api/notifications/read-all", headers=editor_headers)

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert notifications.unread_count(test_db, editor_user.id) == 0
    assert notifications.unread_count(test_db, viewer_user.id) == 1


def test_delete_notification(client: TestClient, test_db: Session, editor_user: models.User, editor_headers: dict):
    notification = _notify(test_db, editor_user)
    notification_id = notification.id

    response = client.delete(f"/api/notifications/{notification_id}", headers=editor_headers)

    assert response.status_code == 204
    test_db.expire_all()
    assert test_db.query(models.Notification).filter_by(id=notification_id).first() is None


def test_notifications_require_auth(client: TestClient):
    assert client.get("/api/notifications").status_code == 401


# ============== Fan-out isolation ==============


def test_failing_notification_writer_does_not_fail_mutation(
    client: TestClient,
    test_db: Session,
    monkeypatch,
    task: models.Task,
    owner_user: models.User,
    editor_headers: dict,
):
    """The status change commits and returns 200 even when every notification write blows up."""
    async def boom(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(notifications, "create_notification", boom)

    response = client.patch(f"/api/tasks/{task.id}", json={"status": "DONE"}, headers=editor_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "DONE"
    test_db.expire_all()
    assert test_db.query(models.Task).filter_by(id=task.id).one().status == models.TaskStatus.DONE
    assert notification_count(test_db, owner_user.id) == 0
    # Activity is an independent side effect and still gets written
    assert test_db.query(models.Activity).filter_by(task_id=task.id, action="updated").count() == 1
    logger.info("✓ Fan-out failure is isolated from the mutation")


def test_failing_activity_writer_does_not_block_notifications(
    client: TestClient,
    test_db: Session,
    monkeypatch,
    project: models.Project,
    editor_user: models.User,
    owner_headers: dict,
):
    from taskflow.services import activity

    def broken(*args, **kwargs):
        raise RuntimeError("activity table locked")

    monkeypatch.setattr(activity, "record_activity", broken)

    response = client.post(
        "/api/tasks",
        json={"project_id": project.id, "title": "Resilient", "assignee_ids": [editor_user.id]},
        headers=owner_headers,
    )

    assert response.status_code == 201
    assert notification_count(test_db, editor_user.id, models.NotificationType.TASK_ASSIGNED) == 1
    assert test_db.query(models.Activity).count() == 0
