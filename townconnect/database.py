"""Database helpers for the TownConnect SQL data store."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def database_url(database_path: Path | str) -> str:
    return f"sqlite:///{database_path}"


def create_db_engine(database_path: Path | str) -> Engine:
    return create_engine(
        database_url(database_path),
        connect_args={"check_same_thread": False},
        future=True,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )


@contextmanager
def get_session(session_factory: sessionmaker):
    """Context manager returning a SQLAlchemy session."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
