"""Tests for the reportdesk command-line tools.

The commands open their own event loop, so each run gets a file-backed
SQLite database created inside that loop.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest
from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from reportdesk import db
from reportdesk.cli import main
from reportdesk.models import AdminRequestStatus, Role
from reportdesk.tables import User


@pytest.fixture
def session_scope(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"

    @asynccontextmanager
    async def scope():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(db.Base.metadata.create_all)
        try:
            async with async_sessionmaker(engine, expire_on_commit=False)() as session:
                yield session
        finally:
            await engine.dispose()

    async def close_all_connections():
        pass

    monkeypatch.setattr(db, "get_db_session", scope)
    monkeypatch.setattr(db, "close_all_connections", close_all_connections)
    return scope


def _load(scope, email: str) -> User | None:
    async def run():
        async with scope() as session:
            return await session.scalar(select(User).where(User.email == email))

    return asyncio.run(run())


class TestCreateSuperadmin:
    def test_creates_missing_account(self, session_scope):
        result = CliRunner().invoke(
            main,
            ["create-superadmin", "--email", "Root@Example.com", "--password", "secret123"],
        )

        assert result.exit_code == 0, result.output
        assert "Created superadmin root@example.com" in result.output
        user = _load(session_scope, "root@example.com")
        assert user.role == Role.SUPERADMIN.value
        assert user.name == "Super Admin"

    def test_promotes_existing_account(self, session_scope):
        runner = CliRunner()
        args = ["create-superadmin", "--email", "lead@example.com", "--password", "secret123"]
        runner.invoke(main, args)

        async def demote():
            async with session_scope() as session:
                user = await session.scalar(select(User).where(User.email == "lead@example.com"))
                user.role = Role.USER.value
                user.admin_request = AdminRequestStatus.PENDING.value
                user.requested_department = "Sales Report"
                await session.commit()

        asyncio.run(demote())

        result = runner.invoke(main, args)

        assert result.exit_code == 0, result.output
        assert "Promoted superadmin lead@example.com" in result.output
        user = _load(session_scope, "lead@example.com")
        assert user.role == Role.SUPERADMIN.value
        assert user.admin_request == AdminRequestStatus.NONE.value
        assert user.requested_department is None

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "reportdesk" in result.output
