"""Data store interface consumed by the TownConnect stores.

Stores talk to the backing service only through ``DataStore``. Every call is
independent: two calls are never atomic together.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from .errors import NotFoundError

Record = dict[str, Any]


class EntityKind(StrEnum):
    USERS = "users"
    EVENTS = "events"
    FOLLOWS = "follows"
    INVITES = "invites"
    REACTIONS = "reactions"
    COMMENTS = "comments"
    EVENT_PHOTOS = "event_photos"


class DataStore(ABC):
    """Interface for the remote data store holding every entity."""

    @abstractmethod
    async def fetch_all(self, kind: EntityKind) -> list[Record]:
        """Return every record of ``kind`` in insertion order."""
        ...

    @abstractmethod
    async def fetch_by_id(self, kind: EntityKind, entity_id: str) -> Record:
        """Return one record, or raise ``NotFoundError``."""
        ...

    @abstractmethod
    async def insert(self, kind: EntityKind, record: Record) -> Record:
        """Store a new record, assigning an id when it has none."""
        ...

    @abstractmethod
    async def update(self, kind: EntityKind, entity_id: str, partial: Record) -> Record:
        """Apply ``partial`` to a stored record and return the stored result."""
        ...

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Remove a record, or raise ``NotFoundError``."""
        ...

    @abstractmethod
    async def filtered_query(self, kind: EntityKind, **equals: Any) -> list[Record]:
        """Return records whose fields equal every given value."""
        ...

    async def close(self) -> None:
        """Release any resources held by the store."""


class MemoryDataStore(DataStore):
    """In-memory fallback store used for development and tests."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._tables: dict[EntityKind, dict[str, Record]] = {
            kind: {} for kind in EntityKind
        }

    async def fetch_all(self, kind: EntityKind) -> list[Record]:
        async with self._lock:
            return [copy.deepcopy(row) for row in self._tables[kind].values()]

    async def fetch_by_id(self, kind: EntityKind, entity_id: str) -> Record:
        async with self._lock:
            row = self._tables[kind].get(entity_id)
            if row is None:
                raise NotFoundError(kind.value, entity_id)
            return copy.deepcopy(row)

    async def insert(self, kind: EntityKind, record: Record) -> Record:
        async with self._lock:
            row = copy.deepcopy(record)
            if not row.get("id"):
                row["id"] = str(uuid.uuid4())
            self._tables[kind][row["id"]] = row
            return copy.deepcopy(row)

    async def update(self, kind: EntityKind, entity_id: str, partial: Record) -> Record:
        async with self._lock:
            row = self._tables[kind].get(entity_id)
            if row is None:
                raise NotFoundError(kind.value, entity_id)
            row.update(copy.deepcopy(partial))
            row["id"] = entity_id
            return copy.deepcopy(row)

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        async with self._lock:
            if self._tables[kind].pop(entity_id, None) is None:
                raise NotFoundError(kind.value, entity_id)

    async def filtered_query(self, kind: EntityKind, **equals: Any) -> list[Record]:
        async with self._lock:
            return [
                copy.deepcopy(row)
                for row in self._tables[kind].values()
                if all(row.get(field) == value for field, value in equals.items())
            ]
