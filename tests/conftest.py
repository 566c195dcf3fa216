import os

# Must be set before task_manager.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session

from task_manager.models import User, Task
from task_manager.security import get_password_hash

# --- Test Database Setup ---
# Use an in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(name="test_engine")
def test_engine_fixture():
    # StaticPool hands out the same connection so the in-memory DB is shared
    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="test_db_session")
def test_db_session_fixture(test_engine: Engine):
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(test_engine: Engine):
    from task_manager.main import create_app

    app = create_app(engine=test_engine)
    with TestClient(app) as client:
        yield client


def register(client: TestClient, username: str, email: str, password: str = "password123") -> dict:
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="authenticated_client")
def authenticated_client_fixture(client: TestClient):
    """
    Registers a user and returns a client that sends their token.
    """
    token = register(client, "taskuser", "tasks@example.com")["token"]
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture(name="other_headers")
def other_headers_fixture(client: TestClient):
    """
    Auth headers for a second, unrelated user.
    """
    token = register(client, "other", "other@example.com")["token"]
    return auth_headers(token)


def make_user(session: Session, username: str, email: str = None) -> User:
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        hashed_password=get_password_hash("password123"),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def add_task(session: Session, user: User, title: str, priority: str = "Medium", **fields) -> Task:
    """
    Inserts a task directly so tests can control timestamps.
    """
    fields.setdefault("created_at", datetime.now(timezone.utc))
    task = Task(user_id=user.id, title=title, priority=priority, **fields)
    session.add(task)
    session.commit()
    session.refresh(task)
    return task


@pytest.fixture(name="alice")
def alice_fixture(test_db_session: Session) -> User:
    return make_user(test_db_session, "alice")


@pytest.fixture(name="bob")
def bob_fixture(test_db_session: Session) -> User:
    return make_user(test_db_session, "bob")
