import os
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport

# Set up test environment variables before anything else
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test_secret_key_12345"

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import get_db, init_models
from app.core.security import create_access_token
from app.models.user import User, UserRoleEnum
from app.models.client import Client
from app.models.task import Task, TaskStatusEnum, PerformanceRatingEnum
from app.models.notification import Notification, NotificationTypeEnum

BASE_TIME = datetime(2026, 1, 10, 9, 0, 0)


@pytest.fixture(scope="function")
async def engine():
    """In-memory SQLite shared by every session of one test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite delays BEGIN; emit it ourselves so SAVEPOINT behaves
    @event.listens_for(test_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    await init_models(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_maker(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def async_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(user_id, role, name=None, client_id=None, is_active=True):
    return User(
        user_id=user_id,
        name=name or user_id,
        email=f"{user_id}@agency.io",
        password_hash="not-a-real-hash",
        role=role,
        client_id=client_id,
        is_active=is_active,
    )


def headers_for(user_id, role):
    token = create_access_token(
        data={"sub": f"{user_id}@agency.io", "user_id": user_id, "role": role.value},
        expires_delta=timedelta(minutes=60),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
async def seed(session_maker):
    """
    Two AMs, each managing one client:

    am-1 -> client-1 (tasks task-1, task-2, task-4; agent-1)
    am-2 -> client-2 (task task-3; agent-2)
    """
    async with session_maker() as session:
        session.add_all([
            make_user("am-1", UserRoleEnum.am, name="Alice AM"),
            make_user("am-2", UserRoleEnum.am, name="Bob AM"),
            make_user("agent-1", UserRoleEnum.agent, name="Ada Agent"),
            make_user("agent-2", UserRoleEnum.agent, name="Ben Agent"),
            make_user("qc-1", UserRoleEnum.qc, name="Quinn QC"),
            make_user("admin-1", UserRoleEnum.admin, name="Root Admin"),
            make_user("manager-1", UserRoleEnum.manager, name="Mia Manager"),
            make_user("client-user-1", UserRoleEnum.client, name="Carl Client", client_id="client-1"),
            make_user("client-user-2", UserRoleEnum.client, name="Cleo Client", client_id="client-2"),
            make_user("disabled-1", UserRoleEnum.agent, is_active=False),
        ])
        await session.flush()

        session.add_all([
            Client(client_id="client-1", name="Acme Corp", am_id="am-1"),
            Client(client_id="client-2", name="Globex", am_id="am-2"),
        ])
        await session.flush()

        session.add_all([
            Task(
                task_id="task-1", name="Write landing page", status=TaskStatusEnum.completed,
                client_id="client-1", assigned_to_id="agent-1",
                performance_rating=PerformanceRatingEnum.good,
                ideal_duration_minutes=60, actual_duration_minutes=75.5,
                created_at=BASE_TIME, updated_at=BASE_TIME + timedelta(days=1),
            ),
            Task(
                task_id="task-2", name=None, status=TaskStatusEnum.qc_approved,
                client_id="client-1", assigned_to_id="agent-1",
                created_at=BASE_TIME + timedelta(days=2), updated_at=BASE_TIME + timedelta(days=3),
            ),
            Task(
                task_id="task-3", name="Globex blog", status=TaskStatusEnum.completed,
                client_id="client-2", assigned_to_id="agent-2",
                created_at=BASE_TIME, updated_at=BASE_TIME,
            ),
            Task(
                task_id="task-4", name="Draft newsletter", status=TaskStatusEnum.in_progress,
                client_id="client-1", assigned_to_id="agent-1",
                created_at=BASE_TIME + timedelta(days=4), updated_at=BASE_TIME + timedelta(days=4),
            ),
        ])
        await session.flush()

        session.add_all([
            Notification(
                notification_id=1, task_id="task-1", type=NotificationTypeEnum.general,
                message="Task started", is_read=False, created_at=BASE_TIME,
            ),
            Notification(
                notification_id=2, task_id="task-1", type=NotificationTypeEnum.performance,
                message="Task completed early", is_read=True, created_at=BASE_TIME + timedelta(days=1),
            ),
            Notification(
                notification_id=3, task_id="task-2", type=NotificationTypeEnum.frequency_missed,
                message="Frequency missed: 100% done", is_read=False, created_at=BASE_TIME + timedelta(days=2),
            ),
            Notification(
                notification_id=4, task_id="task-4", type=NotificationTypeEnum.general,
                message="Task STARTED again", is_read=False, created_at=BASE_TIME + timedelta(days=3),
            ),
            Notification(
                notification_id=5, task_id="task-3", type=NotificationTypeEnum.general,
                message="Globex task started", is_read=False, created_at=BASE_TIME + timedelta(days=1),
            ),
            Notification(
                notification_id=6, task_id="task-1", type=NotificationTypeEnum.performance,
                message="QC result for you", is_read=False, user_id="agent-1",
                created_at=BASE_TIME + timedelta(days=5),
            ),
        ])
        await session.commit()

    return SimpleNamespace(base_time=BASE_TIME)


@pytest.fixture(scope="function")
def am_headers(seed):
    return headers_for("am-1", UserRoleEnum.am)


@pytest.fixture(scope="function")
def other_am_headers(seed):
    return headers_for("am-2", UserRoleEnum.am)


@pytest.fixture(scope="function")
def agent_headers(seed):
    return headers_for("agent-1", UserRoleEnum.agent)


@pytest.fixture(scope="function")
def qc_headers(seed):
    return headers_for("qc-1", UserRoleEnum.qc)


@pytest.fixture(scope="function")
def client_headers(seed):
    return headers_for("client-user-1", UserRoleEnum.client)


@pytest.fixture(scope="function")
def make_headers(seed):
    return headers_for
