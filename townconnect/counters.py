"""Single update path for denormalized counters."""

from __future__ import annotations

import asyncio
import logging

from .backend import DataStore, EntityKind, Record
from .errors import BackendError, NotFoundError
from .utils import utcnow

logger = logging.getLogger(__name__)

COUNTER_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.USERS: frozenset(
        {"follower_count", "following_count", "event_count", "photo_count"}
    ),
    EntityKind.EVENTS: frozenset({"like_count", "comment_count"}),
    EntityKind.EVENT_PHOTOS: frozenset({"like_count", "comment_count"}),
    EntityKind.COMMENTS: frozenset({"like_count"}),
}


class CounterLedger:
    """Owns every read-modify-write of a counter field.

    Stores never write counter fields themselves; they call ``adjust`` so that
    concurrent updates to the same record are serialized.
    """

    def __init__(self, datastore: DataStore) -> None:
        self._datastore = datastore
        self._lock = asyncio.Lock()

    async def adjust(self, kind: EntityKind, entity_id: str, **deltas: int) -> Record:
        unknown = set(deltas) - COUNTER_FIELDS.get(kind, frozenset())
        if unknown:
            raise ValueError(f"Not a counter of {kind.value}: {sorted(unknown)}")
        async with self._lock:
            try:
                record = await self._datastore.fetch_by_id(kind, entity_id)
                partial = {
                    field: max(int(record.get(field) or 0) + delta, 0)
                    for field, delta in deltas.items()
                }
                partial["updated_at"] = utcnow()
                return await self._datastore.update(kind, entity_id, partial)
            except (BackendError, NotFoundError) as exc:
                logger.error(
                    "Counter update %s on %s %s failed; counters may have diverged: %s",
                    deltas,
                    kind.value,
                    entity_id,
                    exc,
                )
                raise BackendError(
                    f"Could not update counters for {kind.value} {entity_id}"
                ) from exc

    async def set(self, kind: EntityKind, entity_id: str, **values: int) -> Record:
        """Overwrite counters with recomputed values (used by the repair pass)."""
        unknown = set(values) - COUNTER_FIELDS.get(kind, frozenset())
        if unknown:
            raise ValueError(f"Not a counter of {kind.value}: {sorted(unknown)}")
        partial = {field: max(int(value), 0) for field, value in values.items()}
        partial["updated_at"] = utcnow()
        async with self._lock:
            try:
                return await self._datastore.update(kind, entity_id, partial)
            except (BackendError, NotFoundError) as exc:
                logger.error(
                    "Counter reset %s on %s %s failed: %s", values, kind.value, entity_id, exc
                )
                raise BackendError(
                    f"Could not set counters for {kind.value} {entity_id}"
                ) from exc
