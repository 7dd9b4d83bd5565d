"""
Tests for project and membership endpoints.

Tests cover:
- Creating a project (owner membership and activity)
- Visibility of projects per role, 403 for non-members
- Owner/admin-only management (update, archive, delete, members)
- Membership rules (duplicates, owner cannot be removed, PROJECT_INVITE)
"""

import logging

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskflow import models
from tests.conftest import notification_count

logger = logging.getLogger(__name__)


def test_create_project(client: TestClient, test_db: Session, owner_user: models.User, owner_headers: dict):
    response = client.post(
        "/api/projects",
        json={"name": "Mobile App", "description": "iOS and Android", "color": "#ff0000"},
        headers=owner_headers,
    )

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["owner_id"] == owner_user.id
    assert data["is_archived"] is False
    assert data["owner"]["email"] == owner_user.email

    membership = (
        test_db.query(models.ProjectMember)
        .filter_by(project_id=data["id"], user_id=owner_user.id)
        .one()
    )
    assert membership.role == models.ProjectRole.OWNER

    activities = test_db.query(models.Activity).filter_by(project_id=data["id"], action="created").all()
    assert len(activities) == 1
    assert activities[0].entity == "Project"
    logger.info("✓ Project created with owner membership and activity")


def test_create_project_requires_name(client: TestClient, owner_headers: dict):
    response = client.post("/api/projects", json={"name": ""}, headers=owner_headers)
    assert response.status_code == 400


def test_list_projects_is_scoped_to_membership(
    client: TestClient,
    project: models.Project,
    viewer_headers: dict,
    outsider_headers: dict,
    admin_headers: dict,
):
    viewer_list = client.get("/api/projects", headers=viewer_headers).json()
    assert [p["id"] for p in viewer_list["data"]] == [project.id]
    assert viewer_list["meta"] == {"total": 1, "page": 1, "limit": 20, "totalPages": 1}

    outsider_list = client.get("/api/projects", headers=outsider_headers).json()
    assert outsider_list["data"] == []
    assert outsider_list["meta"]["total"] == 0
    assert outsider_list["meta"]["totalPages"] == 0

    admin_list = client.get("/api/projects", headers=admin_headers).json()
    assert admin_list["meta"]["total"] == 1
    logger.info("✓ Project list only shows accessible projects")


def test_get_project_as_member_and_outsider(
    client: TestClient, project: models.Project, viewer_headers: dict, outsider_headers: dict
):
    assert client.get(f"/api/projects/{project.id}", headers=viewer_headers).status_code == 200

    response = client.get(f"/api/projects/{project.id}", headers=outsider_headers)
    assert response.status_code == 403
    assert response.json()["message"] == "Not authorized for this project"


def test_get_missing_project(client: TestClient, owner_headers: dict):
    response = client.get("/api/projects/9999", headers=owner_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Project not found"


def test_check_name_is_case_insensitive(client: TestClient, project: models.Project, owner_headers: dict):
    taken = client.get("/api/projects/check-name", params={"name": "website RELAUNCH"}, headers=owner_headers)
    assert taken.json() == {"exists": True}

    excluded = client.get(
        "/api/projects/check-name",
        params={"name": "Website Relaunch", "exclude_id": project.id},
        headers=owner_headers,
    )
    assert excluded.json() == {"exists": False}

    free = client.get("/api/projects/check-name", params={"name": "Something else"}, headers=owner_headers)
    assert free.json() == {"exists": False}


def test_update_project_by_owner_records_changes(
    client: TestClient, test_db: Session, project: models.Project, owner_headers: dict
):
    response = client.patch(f"/api/projects/{project.id}", json={"name": "Relaunch v2"}, headers=owner_headers)

    assert response.status_code == 200
    assert response.json()["name"] == "Relaunch v2"

    activity = test_db.query(models.Activity).filter_by(project_id=project.id, action="updated").one()
    assert activity.activity_metadata["changes"]["name"] == {"from": "Website Relaunch", "to": "Relaunch v2"}


def test_update_project_by_editor_is_forbidden(client: TestClient, project: models.Project, editor_headers: dict):
    response = client.patch(f"/api/projects/{project.id}", json={"name": "Hijacked"}, headers=editor_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Only the project owner can modify this project"
    logger.info("✓ Editor cannot update project")


def test_admin_can_update_any_project(client: TestClient, project: models.Project, admin_headers: dict):
    response = client.patch(f"/api/projects/{project.id}", json={"color": "#00ff00"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["color"] == "#00ff00"


def test_archive_and_unarchive(client: TestClient, project: models.Project, owner_headers: dict, viewer_headers: dict):
    assert client.post(f"/api/projects/{project.id}/archive", headers=viewer_headers).status_code == 403

    archived = client.post(f"/api/projects/{project.id}/archive", headers=owner_headers)
    assert archived.status_code == 200
    assert archived.json()["is_archived"] is True

    listed = client.get("/api/projects", params={"archived": "true"}, headers=owner_headers).json()
    assert [p["id"] for p in listed["data"]] == [project.id]

    unarchived = client.post(f"/api/projects/{project.id}/unarchive", headers=owner_headers)
    assert unarchived.json()["is_archived"] is False


def test_delete_project_cascades(
    client: TestClient, test_db: Session, project: models.Project, task: models.Task, owner_headers: dict
):
    project_id, task_id = project.id, task.id

    response = client.delete(f"/api/projects/{project_id}", headers=owner_headers)

    assert response.status_code == 204
    test_db.expire_all()
    assert test_db.query(models.Project).filter_by(id=project_id).first() is None
    assert test_db.query(models.Task).filter_by(id=task_id).first() is None
    assert test_db.query(models.ProjectMember).filter_by(project_id=project_id).count() == 0
    logger.info("✓ Project delete removes members and tasks")


def test_delete_project_by_editor_is_forbidden(client: TestClient, project: models.Project, editor_headers: dict):
    assert client.delete(f"/api/projects/{project.id}", headers=editor_headers).status_code == 403


# ============== Members ==============


def test_list_members(client: TestClient, project: models.Project, viewer_headers: dict):
    response = client.get(f"/api/projects/{project.id}/members", headers=viewer_headers)

    assert response.status_code == 200
    body = response.json()
    roles = sorted(m["role"] for m in body["data"])
    assert roles == ["EDITOR", "OWNER", "VIEWER"]
    assert body["meta"] == {"total": 3, "page": 1, "limit": 20, "totalPages": 1}

    second = client.get(
        f"/api/projects/{project.id}/members", params={"page": 2, "limit": 2}, headers=viewer_headers
    ).json()
    assert len(second["data"]) == 1
    assert second["meta"]["totalPages"] == 2


def test_add_member_sends_invite(
    client: TestClient,
    test_db: Session,
    project: models.Project,
    outsider_user: models.User,
    owner_headers: dict,
):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": outsider_user.id, "role": "EDITOR"},
        headers=owner_headers,
    )

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    assert response.json()["role"] == "EDITOR"
    assert response.json()["user"]["id"] == outsider_user.id
    assert notification_count(test_db, outsider_user.id, models.NotificationType.PROJECT_INVITE) == 1
    assert test_db.query(models.Activity).filter_by(project_id=project.id, action="added_member").count() == 1
    logger.info("✓ New member receives PROJECT_INVITE")


def test_add_member_duplicate(client: TestClient, project: models.Project, editor_user: models.User, owner_headers: dict):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": editor_user.id, "role": "VIEWER"},
        headers=owner_headers,
    )
    assert response.status_code == 400


def test_add_member_unknown_user(client: TestClient, project: models.Project, owner_headers: dict):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": 4242, "role": "VIEWER"},
        headers=owner_headers,
    )
    assert response.status_code == 404


def test_add_member_by_editor_is_forbidden(
    client: TestClient, project: models.Project, outsider_user: models.User, editor_headers: dict
):
    response = client.post(
        f"/api/projects/{project.id}/members",
        json={"user_id": outsider_user.id, "role": "VIEWER"},
        headers=editor_headers,
    )
    assert response.status_code == 403


def test_update_member_role(
    client: TestClient, test_db: Session, project: models.Project, viewer_user: models.User, owner_headers: dict
):
    response = client.patch(
        f"/api/projects/{project.id}/members/{viewer_user.id}",
        json={"role": "EDITOR"},
        headers=owner_headers,
    )

    assert response.status_code == 200
    assert response.json()["role"] == "EDITOR"


def test_update_missing_member(client: TestClient, project: models.Project, outsider_user: models.User, owner_headers: dict):
    response = client.patch(
        f"/api/projects/{project.id}/members/{outsider_user.id}",
        json={"role": "EDITOR"},
        headers=owner_headers,
    )
    assert response.status_code == 404


def test_remove_member(
    client: TestClient, test_db: Session, project: models.Project, viewer_user: models.User,
    owner_headers: dict, viewer_headers: dict,
):
    response = client.delete(f"/api/projects/{project.id}/members/{viewer_user.id}", headers=owner_headers)

    assert response.status_code == 204
    assert client.get(f"/api/projects/{project.id}", headers=viewer_headers).status_code == 403
    logger.info("✓ Removed member loses access")


def test_owner_cannot_be_removed(client: TestClient, project: models.Project, owner_user: models.User, admin_headers: dict):
    response = client.delete(f"/api/projects/{project.id}/members/{owner_user.id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot remove the project owner"


def test_assignable_users(
    client: TestClient,
    project: models.Project,
    owner_user: models.User,
    editor_user: models.User,
    viewer_user: models.User,
    editor_headers: dict,
):
    response = client.get(f"/api/projects/{project.id}/assignable-users", headers=editor_headers)

    assert response.status_code == 200
    body = response.json()
    ids = {u["id"] for u in body["data"]}
    assert ids == {owner_user.id, editor_user.id, viewer_user.id}
    assert set(body["data"][0].keys()) == {"id", "name", "email", "avatar"}
    assert body["meta"] == {"total": 3, "page": 1, "limit": 20, "totalPages": 1}


def test_project_activity_feed(client: TestClient, project: models.Project, owner_headers: dict, outsider_headers: dict):
    client.post(f"/api/projects/{project.id}/archive", headers=owner_headers)

    feed = client.get(f"/api/projects/{project.id}/activity", headers=owner_headers)
    assert feed.status_code == 200
    assert feed.json()["data"][0]["action"] == "archived"
    assert feed.json()["data"][0]["metadata"] == {}

    assert client.get(f"/api/projects/{project.id}/activity", headers=outsider_headers).status_code == 403


def test_null_project_name_is_rejected(client: TestClient, project: models.Project, owner_headers: dict):
    response = client.patch(f"/api/projects/{project.id}", json={"name": None}, headers=owner_headers)

    assert response.status_code == 400
    assert response.json()["message"] == ["name: Value error, name cannot be null"]

    archived = client.patch(f"/api/projects/{project.id}", json={"is_archived": None}, headers=owner_headers)
    assert archived.status_code == 400
