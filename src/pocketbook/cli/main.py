"""Pocketbook CLI — run the server, prepare the database, poke the API.

Usage:
    pocketbook serve                          # Run the API with uvicorn
    pocketbook init-db                        # Create all tables (dev only)
    pocketbook seed                           # Demo user + default categories
    pocketbook health                         # Ping a running server
    pocketbook login you@example.com          # Print a fresh token pair
    pocketbook stats --month 2024-05          # Dashboard for a month
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"

DEMO_EMAIL = "test@example.com"
DEMO_PASSWORD = "password123"
DEMO_NAME = "Test User"

DEFAULT_CATEGORIES = [
    ("Groceries", "Supermarket and grocery shopping", "#4caf50", "shopping_cart"),
    ("Pharmacy", "Medicine and health products", "#f44336", "local_pharmacy"),
    ("Restaurants", "Dining out and takeaway", "#ff9800", "restaurant"),
    ("Transport", "Fuel, tickets and rides", "#2196f3", "directions_car"),
    ("Entertainment", "Movies, games and events", "#9c27b0", "movie"),
    ("Other", "Everything else", "#607d8b", "category"),
]


def _api_url() -> str:
    return os.environ.get("POCKETBOOK_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Pocketbook backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else None
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

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


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail_on_error(response: httpx.Response) -> dict:
    """Print the API error envelope and exit, or return the JSON body."""
    try:
        body = response.json()
    except ValueError:
        # Not ours: a proxy or load balancer answered with HTML or plain text
        body = None
    if response.is_error or not isinstance(body, dict):
        if isinstance(body, dict):
            reason = f"{body.get('code')} — {body.get('message')}"
        else:
            reason = response.text.strip()[:200] or response.reason_phrase
        click.secho(f"Error {response.status_code}: {reason}", fg="red", err=True)
        sys.exit(1)
    return body


def _token_from_ctx(token: Optional[str]) -> str:
    tok = token or os.environ.get("POCKETBOOK_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set POCKETBOOK_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="pocketbook")
def main():
    """Pocketbook — personal finance API and tooling."""


# ---------------------------------------------------------------------------
# Local commands (talk to the database directly)
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", type=int, default=None, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from pocketbook.config import settings

    uvicorn.run(
        "pocketbook.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


def _local_engine(database_url: Optional[str]):
    """Engine for a one-off local command, separate from the app's engine."""
    from pocketbook.config import settings
    from pocketbook.db.engine import build_engine

    return build_engine(database_url or settings.database_url)


database_url_option = click.option(
    "--database-url",
    default=None,
    help="Database to use (default: POCKETBOOK_DATABASE_URL)",
)


@main.command("init-db")
@database_url_option
def init_db(database_url: Optional[str]):
    """Create every table from the models. Use alembic for real deployments."""
    _run(_init_db_impl(database_url))
    click.secho("Database tables created", fg="green")


async def _init_db_impl(database_url: Optional[str]):
    from pocketbook.db.models import Base

    engine = _local_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


@main.command()
@database_url_option
def seed(database_url: Optional[str]):
    """Create the demo user with a default set of categories."""
    created = _run(_seed_impl(database_url))
    if created is None:
        click.secho(f"{DEMO_EMAIL} already exists — nothing to do", fg="yellow")
        return
    click.secho(f"Created {DEMO_EMAIL} / {DEMO_PASSWORD}", fg="green")
    for name in created:
        click.echo(f"  + {name}")


async def _seed_impl(database_url: Optional[str]) -> Optional[list[str]]:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from pocketbook.auth.dependencies import get_password_hasher, get_token_codec
    from pocketbook.auth.identity import AuthContext
    from pocketbook.config import settings
    from pocketbook.errors import DuplicateEmail
    from pocketbook.services.auth_service import SessionManager
    from pocketbook.services.category_service import CategoryService
    from pocketbook.store.sql import SqlCredentialStore

    engine = _local_engine(database_url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as db:
            manager = SessionManager(
                store=SqlCredentialStore(db),
                codec=get_token_codec(),
                hasher=get_password_hasher(),
                password_min_length=settings.password_min_length,
            )
            try:
                result = await manager.register(DEMO_EMAIL, DEMO_PASSWORD, DEMO_NAME)
            except DuplicateEmail:
                return None

            identity = AuthContext(user_id=result.user.id, email=result.user.email)
            categories = CategoryService(db, identity)
            for name, description, color, icon in DEFAULT_CATEGORIES:
                await categories.create_category(
                    name=name, description=description, color=color, icon=icon
                )
            return [name for name, *_ in DEFAULT_CATEGORIES]
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Remote commands (talk to a running server)
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Check that a running server and its database respond."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/api/v1/health")
        except httpx.HTTPError as e:
            click.secho(f"Server unreachable at {_api_url()}: {e}", fg="red", err=True)
            sys.exit(1)
    body = _fail_on_error(r)
    click.secho(f"{body.get('status')} (v{body.get('version')})", fg="green")


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
def login(email: str, password: str):
    """Log in and print a fresh token pair as JSON."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/login", json={"email": email, "password": password})
    body = _fail_on_error(r)
    click.echo(_pretty_json(body["tokens"]))


@main.command()
@click.option("--token", help="Access token (or set POCKETBOOK_TOKEN)")
@click.option("--month", help="Month as YYYY-MM (default: current month)")
def stats(token: Optional[str], month: Optional[str]):
    """Show dashboard numbers for one month."""
    _run(_stats_impl(_token_from_ctx(token), month))


async def _stats_impl(token: str, month: Optional[str]):
    params = {"month": month} if month else None
    async with _client(token) as c:
        r = await c.get("/api/v1/dashboard/stats", params=params)
    body = _fail_on_error(r)

    click.secho(f"Month {body['month']}", bold=True)
    click.echo(f"  Total spent:  {body['monthly_total']}")
    click.echo(f"  Purchases:    {body['purchase_count']}")
    if body["expenses_by_category"]:
        click.secho("By category", bold=True)
        for row in body["expenses_by_category"]:
            click.echo(f"  {row['category_name'][:24].ljust(24)}  {row['total']}")
    if body["budgets"]:
        click.secho("Budgets", bold=True)
        for row in body["budgets"]:
            color = "red" if float(row["remaining"]) < 0 else "green"
            click.secho(
                f"  {row['category_name'][:24].ljust(24)}  "
                f"{row['spent']} / {row['limit_amount']}",
                fg=color,
            )


if __name__ == "__main__":
    main()
