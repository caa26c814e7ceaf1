"""taskhub CLI — operator commands.

Usage:
    taskhub serve --port 5000                    # Run the API with uvicorn
    taskhub create-admin --email a@x.com ...     # Create an admin account (direct DB)
    taskhub create-admin --email a@x.com --promote  # Promote an existing account
    taskhub tasks --status pending               # My tasks (HTTP, TASKHUB_TOKEN)
    taskhub stats                                # Admin statistics (HTTP, TASKHUB_TOKEN)

Learn: Admin accounts cannot be created through the HTTP API (registration
always yields a regular user), so create-admin talks to the database
directly. The listing commands are thin HTTP clients over the API.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
from typing import Optional

import click
import httpx

from taskhub import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:5000"


def _api_url() -> str:
    return os.environ.get("TASKHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _token() -> str:
    token = os.environ.get("TASKHUB_TOKEN")
    if not token:
        click.secho("Error: set TASKHUB_TOKEN to a bearer token", fg="red", err=True)
        sys.exit(1)
    return token


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the taskhub API."""
    return httpx.AsyncClient(
        base_url=_api_url(),
        timeout=30.0,
        headers={"Authorization": f"Bearer {_token()}"},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(
            click.style(
                str(row.get(k) or "—")[:w].ljust(w),
                fg=_status_color(row.get(k)) if k == "status" else None,
            )
            for _, k, w in columns
        )
        click.echo(line)


def _status_color(status: Optional[str]) -> str:
    """Map task status strings to click colors."""
    colors = {
        "pending": "yellow",
        "in-progress": "cyan",
        "completed": "green",
    }
    return colors.get(status or "", "white")


def _fail_on_error(r: httpx.Response) -> dict:
    data = r.json()
    if r.status_code >= 400:
        click.secho(f"Error {r.status_code}: {data.get('message')}", fg="red", err=True)
        sys.exit(1)
    return data


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="taskhub")
def main():
    """taskhub — task management API server and operator tools."""


# ---------------------------------------------------------------------------
# taskhub serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: TASKHUB_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: TASKHUB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from taskhub.config import settings

    uvicorn.run(
        "taskhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# taskhub create-admin
# ---------------------------------------------------------------------------


@main.command("create-admin")
@click.option("--email", required=True, help="Admin email address")
@click.option("--first-name", default="Admin", show_default=True)
@click.option("--last-name", default="User", show_default=True)
@click.option(
    "--password",
    help="Password (prompted when omitted)",
)
@click.option("--promote", is_flag=True, help="Promote an existing account instead")
def create_admin(
    email: str,
    first_name: str,
    last_name: str,
    password: Optional[str],
    promote: bool,
):
    """Create an admin account, or promote an existing one."""
    if not promote and not password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
    _run(_create_admin_impl(email, first_name, last_name, password, promote))


async def _create_admin_impl(
    email: str,
    first_name: str,
    last_name: str,
    password: Optional[str],
    promote: bool,
):
    from taskhub.db.engine import async_session_factory
    from taskhub.db.models import ROLE_ADMIN
    from taskhub.errors import Conflict
    from taskhub.services.user_service import UserService

    async with async_session_factory() as session:
        svc = UserService(session)

        if promote:
            user = await svc.find_by_email(email)
            if not user:
                click.secho(f"No account with email {email}", fg="red", err=True)
                sys.exit(1)
            await svc.make_admin(user)
            click.secho(f"Promoted {email} to admin ({user.id})", fg="green")
            return

        if len(password or "") < 6:
            click.secho("Password must be at least 6 characters", fg="red", err=True)
            sys.exit(1)
        try:
            user = await svc.register(
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                role=ROLE_ADMIN,
            )
        except Conflict:
            click.secho(
                f"{email} already exists (use --promote to make it admin)",
                fg="red",
                err=True,
            )
            sys.exit(1)
        click.secho(f"Created admin {email} ({user.id})", fg="green")


# ---------------------------------------------------------------------------
# taskhub tasks
# ---------------------------------------------------------------------------


@main.command()
@click.option("--status", "-s", "status_filter", help="Filter by status")
@click.option("--priority", "-p", help="Filter by priority")
@click.option("--sort", "sort_by", default="-createdAt", show_default=True)
def tasks(status_filter: Optional[str], priority: Optional[str], sort_by: str):
    """List tasks you created or are assigned to."""
    _run(_tasks_impl(status_filter, priority, sort_by))


async def _tasks_impl(
    status_filter: Optional[str], priority: Optional[str], sort_by: str
):
    async with _client() as c:
        params: dict = {"sortBy": sort_by}
        if status_filter:
            params["status"] = status_filter
        if priority:
            params["priority"] = priority

        data = _fail_on_error(await c.get("/api/tasks", params=params))
        rows = data["tasks"]

        if not rows:
            click.echo("No tasks found.")
            return

        click.secho(f"Tasks ({data['count']}):", bold=True)
        click.echo()
        _print_table(rows, [
            ("ID", "id", 36),
            ("Status", "status", 12),
            ("Priority", "priority", 8),
            ("Due", "dueDate", 10),
            ("Title", "title", 50),
        ])


# ---------------------------------------------------------------------------
# taskhub stats
# ---------------------------------------------------------------------------


@main.command()
def stats():
    """Show task statistics (admin token required)."""
    _run(_stats_impl())


async def _stats_impl():
    async with _client() as c:
        data = _fail_on_error(await c.get("/api/admin/statistics"))
        s = data["statistics"]

        click.secho("Statistics", bold=True)
        click.echo(f"  Users: {s['totalUsers']}")
        click.echo(f"  Tasks: {s['totalTasks']}")
        click.echo()
        click.secho("By status:", bold=True)
        for status, count in s["tasksByStatus"].items():
            click.echo("  " + click.style(status.ljust(12), fg=_status_color(status)) + str(count))
        click.secho("By priority:", bold=True)
        for priority, count in s["tasksByPriority"].items():
            click.echo(f"  {priority.ljust(12)}{count}")


if __name__ == "__main__":
    main()
