"""CLI entry points for ReportDesk.

Usage:
    reportdesk serve [--host HOST] [--port PORT] [--reload]
    reportdesk init-db
    reportdesk create-superadmin --email EMAIL --name NAME --password PASSWORD
"""

import asyncio
import sys

import click

from .. import __version__
from ..logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="reportdesk")
def main():
    """ReportDesk - report submission and review service.

    Command-line tools for running the server and managing the database.
    """
    setup_logging()


@main.command(name="serve")
@click.option("--host", default=None, help="Bind address (default: API_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: API_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve_command(host: str | None, port: int | None, reload: bool):
    """Run the API and Socket.IO server with uvicorn."""
    import uvicorn

    from ..config import get_settings

    settings = get_settings()
    uvicorn.run(
        "main:application",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_config=None,
    )


@main.command(name="init-db")
def init_db_command():
    """Create all tables (quick start; use alembic for managed schemas)."""
    from ..db import close_all_connections, create_all_tables

    async def run():
        try:
            await create_all_tables()
        finally:
            await close_all_connections()

    try:
        asyncio.run(run())
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("Database tables created")


@main.command(name="create-superadmin")
@click.option("--email", required=True, help="Account email")
@click.option("--name", default="Super Admin", help="Display name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_superadmin_command(email: str, name: str, password: str):
    """Create a superadmin account, or promote an existing one."""
    from ..db import close_all_connections, get_db_session
    from ..exceptions import DomainError
    from ..users.service import UserService

    async def run():
        try:
            async with get_db_session() as db:
                return await UserService(db).make_superadmin(email, password, name)
        finally:
            await close_all_connections()

    try:
        user, created = asyncio.run(run())
    except DomainError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    action = "Created" if created else "Promoted"
    click.echo(f"{action} superadmin {user.email} ({user.id})")


if __name__ == "__main__":
    main()
