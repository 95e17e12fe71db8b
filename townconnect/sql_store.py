"""SQLAlchemy-backed ``DataStore`` standing in for the managed backend."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .backend import DataStore, EntityKind, Record
from .database import create_session_factory, get_session
from .errors import BackendError, NotFoundError
from .models import MODELS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_column_value(item) for item in value]
    return value


def _as_record(row: object) -> Record:
    mapper = inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}


class SqlDataStore(DataStore):
    """Each call runs in its own session on a worker thread."""

    def __init__(self, engine: Engine, session_factory: sessionmaker | None = None):
        self.engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def _run(self, work: Callable[[Session], T]) -> T:
        def _in_session() -> T:
            with get_session(self._session_factory) as session:
                return work(session)

        try:
            return await asyncio.to_thread(_in_session)
        except SQLAlchemyError as exc:
            raw = str(getattr(exc, "orig", None) or exc)
            logger.error("Data store operation failed: %s", raw)
            raise BackendError("The data store is unavailable. Please try again.") from exc

    @staticmethod
    def _columns(kind: EntityKind, record: Record) -> Record:
        model = MODELS[kind]
        known = {attr.key for attr in inspect(model).column_attrs}
        return {
            key: _column_value(value) for key, value in record.items() if key in known
        }

    async def fetch_all(self, kind: EntityKind) -> list[Record]:
        model = MODELS[kind]

        def work(session: Session) -> list[Record]:
            return [_as_record(row) for row in session.scalars(select(model)).all()]

        return await self._run(work)

    async def fetch_by_id(self, kind: EntityKind, entity_id: str) -> Record:
        model = MODELS[kind]

        def work(session: Session) -> Record | None:
            row = session.get(model, entity_id)
            return _as_record(row) if row is not None else None

        record = await self._run(work)
        if record is None:
            raise NotFoundError(kind.value, entity_id)
        return record

    async def insert(self, kind: EntityKind, record: Record) -> Record:
        model = MODELS[kind]
        values = self._columns(kind, record)
        if not values.get("id"):
            values.pop("id", None)

        def work(session: Session) -> Record:
            row = model(**values)
            session.add(row)
            session.flush()
            return _as_record(row)

        return await self._run(work)

    async def update(self, kind: EntityKind, entity_id: str, partial: Record) -> Record:
        model = MODELS[kind]
        values = self._columns(kind, partial)
        values.pop("id", None)

        def work(session: Session) -> Record | None:
            row = session.get(model, entity_id)
            if row is None:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            session.add(row)
            session.flush()
            return _as_record(row)

        record = await self._run(work)
        if record is None:
            raise NotFoundError(kind.value, entity_id)
        return record

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        model = MODELS[kind]

        def work(session: Session) -> bool:
            row = session.get(model, entity_id)
            if row is None:
                return False
            session.delete(row)
            return True

        if not await self._run(work):
            raise NotFoundError(kind.value, entity_id)

    async def filtered_query(self, kind: EntityKind, **equals: Any) -> list[Record]:
        model = MODELS[kind]
        conditions = {key: _column_value(value) for key, value in equals.items()}

        def work(session: Session) -> list[Record]:
            stmt = select(model).filter_by(**conditions)
            return [_as_record(row) for row in session.scalars(stmt).all()]

        return await self._run(work)

    async def close(self) -> None:
        await asyncio.to_thread(self.engine.dispose)
