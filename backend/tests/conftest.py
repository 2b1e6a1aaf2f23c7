"""Shared pytest fixtures for ReportDesk.

Tests run against an in-memory SQLite database (aiosqlite) that is shared by
every session through a ``StaticPool``. Socket emits are replaced with
``AsyncMock`` so tests can assert on them.
"""

import os
import tempfile

# Settings are cached on first use; configure before importing reportdesk
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENVIRONMENT"] = "development"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="reportdesk-uploads-")
os.environ["INITIAL_SUPERADMIN_EMAIL"] = ""
os.environ["SOCKETIO_REDIS_URL"] = ""

from datetime import datetime
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reportdesk import tables
from reportdesk.api.auth import create_access_token, hash_password
from reportdesk.config import get_settings
from reportdesk.db import Base, get_db
from reportdesk.models import AdminRequestStatus, ReportCategory, Role
from reportdesk.notifications.realtime import RealtimeHub, get_realtime_hub
from reportdesk.storage import LocalStorage, get_storage

PASSWORD = "password123"
_password_hash = None


def password_hash() -> str:
    """Hash the shared test password once per run."""
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(PASSWORD)
    return _password_hash


# =========================
# Database
# =========================


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A session for driving services directly."""
    async with session_factory() as session:
        yield session


# =========================
# Collaborators
# =========================


@pytest.fixture
def hub(session_factory):
    """Realtime hub with socket I/O mocked out, reading accounts from the test database."""
    hub = RealtimeHub(get_settings(), session_factory=session_factory)
    hub.sio.emit = AsyncMock()
    hub.sio.enter_room = AsyncMock()
    return hub


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "uploads")


# =========================
# Accounts
# =========================


@pytest.fixture
def make_user(session_factory):
    """Factory inserting a user row directly.

    Usage:
        admin = await make_user(Role.ADMIN, department=ReportCategory.FINANCE)
    """

    async def _make_user(
        role: Role | str = Role.USER,
        department: ReportCategory | str | None = None,
        name: str | None = None,
        email: str | None = None,
        admin_request: AdminRequestStatus | str = AdminRequestStatus.NONE,
        requested_department: str | None = None,
    ) -> tables.User:
        now = datetime.utcnow()
        suffix = uuid4().hex[:8]
        user = tables.User(
            id=uuid4(),
            name=name or f"{Role(role).value.title()} {suffix}",
            email=email or f"{Role(role).value}-{suffix}@example.com",
            password_hash=password_hash(),
            role=Role(role).value,
            department=ReportCategory(department).value if department else None,
            admin_request=AdminRequestStatus(admin_request).value,
            requested_department=requested_department,
            created_at=now,
            updated_at=now,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def password():
    return PASSWORD


def auth_headers(user: tables.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def headers():
    return auth_headers


# =========================
# HTTP client
# =========================


@pytest_asyncio.fixture
async def app(session_factory, storage, hub):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_realtime_hub] = lambda: hub
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    # ASGITransport does not run the lifespan, so no bootstrap superadmin
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def create_report(client, headers):
    """Submit a report through the API and return its JSON."""

    async def _create_report(
        owner: tables.User,
        category: ReportCategory | str = ReportCategory.FINANCE,
        title: str = "Quarterly figures",
        files: dict | None = None,
    ) -> dict:
        response = await client.post(
            "/api/reports",
            data={
                "title": title,
                "description": "Numbers for the quarter",
                "category": ReportCategory(category).value,
                "urgency": "High",
            },
            files=files,
            headers=headers(owner),
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create_report
