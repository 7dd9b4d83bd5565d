"""
Test configuration and fixtures for TaskFlow tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Users for every role (admin, owner, editor, viewer, outsider), a project
  with memberships and a task assigned to the editor
"""

import os
import logging
from datetime import timedelta
from typing import Dict, Generator

# Must be set before the application modules are imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ["SEED_ADMIN"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from taskflow import database, models
from taskflow.database import Base, get_db
from taskflow.main import app
from taskflow.auth.security import create_access_token, hash_password

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "password123"


@pytest.fixture(scope="function")
def testing_session_local() -> Generator[sessionmaker, None, None]:
    """
    Session factory bound to a fresh in-memory SQLite database.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def test_db(testing_session_local: sessionmaker) -> Generator[Session, None, None]:
    """
    Create a session on the test database for each test.
    """
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(test_db: Session, testing_session_local: sessionmaker, monkeypatch) -> TestClient:
    """
    Create FastAPI test client with database dependency override.

    The live socket opens its own short-lived sessions, so the session
    factory is pointed at the test database as well.
    """
    monkeypatch.setattr(database, "SessionLocal", testing_session_local)

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def create_user(
    db: Session,
    name: str,
    email: str,
    role: models.UserRole = models.UserRole.USER,
    is_active: bool = True,
) -> models.User:
    user = models.User(
        name=name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email} with ID: {user.id}")
    return user


def create_auth_token(user: models.User, expires_delta: timedelta = None) -> str:
    """
    Helper to create JWT access token for a user.
    """
    token_data = {
        "sub": str(user.id),
        "role": user.role.value,
        "email": user.email,
    }
    return create_access_token(token_data, expires_delta)


def auth_headers_for(user: models.User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_auth_token(user)}"}


@pytest.fixture(scope="function")
def admin_user(test_db: Session) -> models.User:
    return create_user(test_db, "Admin User", "admin@test.com", models.UserRole.ADMIN)


@pytest.fixture(scope="function")
def owner_user(test_db: Session) -> models.User:
    return create_user(test_db, "Olivia Owner", "owner@test.com")


@pytest.fixture(scope="function")
def editor_user(test_db: Session) -> models.User:
    return create_user(test_db, "Eddie Editor", "editor@test.com")


@pytest.fixture(scope="function")
def viewer_user(test_db: Session) -> models.User:
    return create_user(test_db, "Vera Viewer", "viewer@test.com")


@pytest.fixture(scope="function")
def outsider_user(test_db: Session) -> models.User:
    return create_user(test_db, "Oscar Outsider", "outsider@test.com")


@pytest.fixture(scope="function")
def admin_headers(admin_user: models.User) -> Dict[str, str]:
    return auth_headers_for(admin_user)


@pytest.fixture(scope="function")
def owner_headers(owner_user: models.User) -> Dict[str, str]:
    return auth_headers_for(owner_user)


@pytest.fixture(scope="function")
def editor_headers(editor_user: models.User) -> Dict[str, str]:
    return auth_headers_for(editor_user)


@pytest.fixture(scope="function")
def viewer_headers(viewer_user: models.User) -> Dict[str, str]:
    return auth_headers_for(viewer_user)


@pytest.fixture(scope="function")
def outsider_headers(outsider_user: models.User) -> Dict[str, str]:
    return auth_headers_for(outsider_user)


@pytest.fixture(scope="function")
def project(
    test_db: Session,
    owner_user: models.User,
    editor_user: models.User,
    viewer_user: models.User,
) -> models.Project:
    """
    Project owned by owner_user with editor_user as EDITOR and viewer_user as VIEWER.
    """
    project = models.Project(name="Website Relaunch", description="Q3 relaunch", owner_id=owner_user.id)
    test_db.add(project)
    test_db.commit()
    test_db.refresh(project)

    test_db.add_all([
        models.ProjectMember(project_id=project.id, user_id=owner_user.id, role=models.ProjectRole.OWNER),
        models.ProjectMember(project_id=project.id, user_id=editor_user.id, role=models.ProjectRole.EDITOR),
        models.ProjectMember(project_id=project.id, user_id=viewer_user.id, role=models.ProjectRole.VIEWER),
    ])
    test_db.commit()
    logger.info(f"Created test project with ID: {project.id}")
    return project


@pytest.fixture(scope="function")
def task(test_db: Session, project: models.Project, owner_user: models.User, editor_user: models.User) -> models.Task:
    """
    TODO task in the project, owned by owner_user and assigned to editor_user.
    """
    task = models.Task(
        title="Draft landing page",
        description="Hero section and pricing table",
        project_id=project.id,
        owner_id=owner_user.id,
    )
    task.assignees = [editor_user]
    test_db.add(task)
    test_db.commit()
    test_db.refresh(task)
    logger.info(f"Created test task with ID: {task.id}")
    return task


@pytest.fixture(scope="function")
def unassigned_task(test_db: Session, project: models.Project, owner_user: models.User) -> models.Task:
    task = models.Task(title="Write copy", project_id=project.id, owner_id=owner_user.id)
    test_db.add(task)
    test_db.commit()
    test_db.refresh(task)
    return task


def notification_count(db: Session, user_id: int, type_: models.NotificationType = None) -> int:
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if type_ is not None:
        query = query.filter(models.Notification.type == type_)
    return query.count()
