"""Schema management for the SQL data store."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def _alembic_config(engine: Engine) -> Config:
    package_dir = Path(__file__).resolve().parent
    script_location = package_dir / "alembic"
    ini_path = script_location.parent / "alembic.ini"

    config = Config(str(ini_path)) if ini_path.exists() else Config()
    config.set_main_option("script_location", str(script_location))
    config.set_main_option(
        "sqlalchemy.url", engine.url.render_as_string(hide_password=False)
    )
    return config


def upgrade_database(
    engine: Engine, database_path: Path | None = None, *, make_backup: bool = True
) -> list[str]:
    """Upgrade the database schema in-place.

    Returns a list of applied actions; empty if already up-to-date.
    """
    actions: list[str] = []

    if make_backup and database_path is not None and Path(database_path).exists():
        backup_path = Path(database_path).with_suffix(
            Path(database_path).suffix + ".bak"
        )
        shutil.copy(database_path, backup_path)
        actions.append(f"Backup created at {backup_path}")

    inspector = inspect(engine)
    has_alembic = inspector.has_table("alembic_version")
    has_users = inspector.has_table("users")
    config = _alembic_config(engine)

    with engine.begin() as connection:
        config.attributes["connection"] = connection
        if not has_alembic and not has_users:
            # Fresh database: run migrations normally.
            command.upgrade(config, "head")
            actions.append("Ran Alembic upgrade to head (fresh database)")
        elif not has_alembic:
            # Existing database without Alembic tracking: baseline it.
            command.stamp(config, "head")
            actions.append("Stamped existing database to Alembic head")
        else:
            command.upgrade(config, "head")
            actions.append("Applied Alembic migrations to head")

    for action in actions:
        logger.info("%s", action)
    return actions


def init_db(engine: Engine) -> None:
    upgrade_database(engine, make_backup=False)
