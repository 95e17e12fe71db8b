"""Typer CLI for TownConnect."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from sqlalchemy.exc import OperationalError

from .config import (
    BACKENDS,
    Settings,
    load_settings,
    settings_as_dict,
    update_config_file,
)
from .context import AppContext, create_context
from .database import create_db_engine
from .errors import TownConnectError
from .reconcile import reconcile
from .seed import seed_demo_data, seed_fake_data
from .storage import init_db, upgrade_database
from .utils import humanize_time

app = typer.Typer(help="TownConnect command-line interface")


def _fail(message: str) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _read_only_message(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "readonly" in message or "read-only" in message


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
    try:
        settings = load_settings()
    except ValueError as exc:
        _fail(str(exc))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


def _current_settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else load_settings()


@app.command("init-db")
def init_database(ctx: typer.Context) -> None:
    """Create the SQLite schema for the SQL data store."""
    settings = _current_settings(ctx)
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(settings.database_path)
    try:
        init_db(engine)
    except OperationalError as exc:
        if _read_only_message(exc):
            _fail(
                "Unable to initialize because the database is read-only. "
                f"Ensure write access to {settings.database_path}."
            )
        raise
    finally:
        engine.dispose()
    typer.echo(f"Database ready at {settings.database_path}")


@app.command("upgrade-db")
def upgrade_db(
    ctx: typer.Context,
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the SQLite database schema if needed."""
    settings = _current_settings(ctx)
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(settings.database_path)
    try:
        actions = upgrade_database(
            engine, settings.database_path, make_backup=not no_backup
        )
    except OperationalError as exc:
        if _read_only_message(exc):
            _fail(
                "Unable to upgrade because the database is read-only. "
                f"Ensure write access to {settings.database_path}."
            )
        raise
    finally:
        engine.dispose()

    if not actions:
        typer.echo("Database already up to date.")
        return
    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


async def _with_context(settings: Settings, work):
    context = create_context(settings)
    try:
        await context.bootstrap()
        return await work(context)
    finally:
        await context.close()


@app.command("seed-data")
def seed_data(
    ctx: typer.Context,
    demo: bool = typer.Option(
        False, "--demo", help="Create the jay/sam/mia demo neighbors instead"
    ),
    users: int | None = typer.Option(
        None, "--users", min=0, help="Number of users to create"
    ),
    max_events: int | None = typer.Option(
        None, "--max-events", min=0, help="Maximum events hosted by each user"
    ),
    follows: int | None = typer.Option(
        None, "--follows", min=0, help="Users each new user follows"
    ),
    max_rsvps: int | None = typer.Option(
        None, "--max-rsvps", min=0, help="Maximum RSVPs to attach to each event"
    ),
    private_percent: int | None = typer.Option(
        None,
        "--private-percent",
        min=0,
        max=100,
        help="Percentage of events that should be private (0-100)",
    ),
    seed: int | None = typer.Option(None, "--seed", help="Random seed"),
) -> None:
    """Populate the data store with fake neighbors and events for testing."""
    settings = _current_settings(ctx)
    if not settings.uses_sql:
        typer.secho(
            "The memory backend keeps nothing after this command exits; "
            "set TOWNCONNECT_BACKEND=sql to persist seed data.",
            fg=typer.colors.YELLOW,
        )

    async def work(context: AppContext) -> dict[str, int]:
        if demo:
            return await seed_demo_data(context)
        return await seed_fake_data(
            context,
            user_count=settings.seed_users if users is None else users,
            events_per_user=(
                settings.seed_events_per_user if max_events is None else max_events
            ),
            follows_per_user=(
                settings.seed_follows_per_user if follows is None else follows
            ),
            rsvps_per_event=(
                settings.seed_rsvps_per_event if max_rsvps is None else max_rsvps
            ),
            private_percentage=(
                settings.seed_private_percent
                if private_percent is None
                else private_percent
            ),
            seed=seed,
        )

    try:
        stats = asyncio.run(_with_context(settings, work))
    except (TownConnectError, ValueError) as exc:
        _fail(f"Seeding failed: {exc}")
    summary = ", ".join(f"{count} {name}" for name, count in stats.items())
    typer.echo(f"Seed complete: {summary} created.")


@app.command("feed")
def show_feed(
    ctx: typer.Context,
    handle: str = typer.Argument(..., help="Handle of the user whose feed to show"),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Maximum events"),
) -> None:
    """Print a user's home feed."""
    settings = _current_settings(ctx)

    async def work(context: AppContext) -> list[str]:
        if not settings.uses_sql:
            await seed_demo_data(context)
        user = await context.users.get_by_handle(handle)
        lines = []
        for event in context.feed.feed_for(user.id, limit):
            host = context.users.cached(event.host_id)
            host_label = f"@{host.handle}" if host else event.host_id
            lines.append(
                f"{event.start_time:%Y-%m-%d %H:%M} ({humanize_time(event.start_time)}) "
                f"{event.title} @ {event.location} - hosted by {host_label}, "
                f"{context.events.attendee_count(event.id)} going"
            )
        return lines

    try:
        lines = asyncio.run(_with_context(settings, work))
    except TownConnectError as exc:
        _fail(exc.message)
    if not lines:
        typer.echo(f"No events in @{handle.lstrip('@')}'s feed.")
        return
    for line in lines:
        typer.echo(line)


@app.command("reconcile")
def run_reconcile(ctx: typer.Context) -> None:
    """Recompute denormalized counters and attendee lists."""
    settings = _current_settings(ctx)
    try:
        stats = asyncio.run(_with_context(settings, reconcile))
    except TownConnectError as exc:
        _fail(exc.message)
    typer.echo(f"Reconcile complete: {stats}")


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    backend: str | None = typer.Option(
        None, "--backend", help="Data store backend: memory or sql"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    feed_limit: int | None = typer.Option(
        None, "--feed-limit", min=1, help="Default number of feed events"
    ),
    seed_users: int | None = typer.Option(
        None, "--seed-users", min=0, help="Default seed-data users"
    ),
    seed_events_per_user: int | None = typer.Option(
        None, "--seed-events-per-user", min=0, help="Default seed-data events/user"
    ),
    seed_follows_per_user: int | None = typer.Option(
        None, "--seed-follows-per-user", min=0, help="Default seed-data follows/user"
    ),
    seed_rsvps_per_event: int | None = typer.Option(
        None, "--seed-rsvps-per-event", min=0, help="Default seed-data RSVPs per event"
    ),
    seed_private_percent: int | None = typer.Option(
        None,
        "--seed-private-percent",
        min=0,
        max=100,
        help="Default percent of private events for seed-data",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config-path",
        help="Path to townconnect.toml (default: ./townconnect.toml)",
    ),
) -> None:
    """View or update the persistent configuration file."""
    updates = {
        "backend": backend,
        "log_level": log_level,
        "feed_limit": feed_limit,
        "seed_users": seed_users,
        "seed_events_per_user": seed_events_per_user,
        "seed_follows_per_user": seed_follows_per_user,
        "seed_rsvps_per_event": seed_rsvps_per_event,
        "seed_private_percent": seed_private_percent,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}
    if backend is not None and backend.strip().lower() not in BACKENDS:
        _fail(f"Unknown backend {backend!r}; expected one of {sorted(BACKENDS)}")

    target_path = config_path or load_settings().config_path
    try:
        if clean_updates:
            settings_ref = update_config_file(clean_updates, path=target_path)
            typer.echo(f"Updated configuration in {target_path}")
        else:
            settings_ref = load_settings(target_path)
    except ValueError as exc:
        _fail(str(exc))
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))
