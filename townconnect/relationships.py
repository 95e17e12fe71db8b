"""Follow edges between users and the follower/following counters."""

from __future__ import annotations

import asyncio
import logging

from .backend import DataStore, EntityKind
from .counters import CounterLedger
from .domain import Follow
from .errors import ValidationError
from .profiles import UserDirectory

logger = logging.getLogger(__name__)


class RelationshipStore:
    """Serializes follow/unfollow and keeps a snapshot of every edge."""

    def __init__(
        self, datastore: DataStore, ledger: CounterLedger, directory: UserDirectory
    ) -> None:
        self._datastore = datastore
        self._ledger = ledger
        self._directory = directory
        self._lock = asyncio.Lock()
        self._follows: list[Follow] = []

    @property
    def follows(self) -> list[Follow]:
        return list(self._follows)

    async def refresh(self) -> list[Follow]:
        records = await self._datastore.fetch_all(EntityKind.FOLLOWS)
        self._follows = [Follow.from_record(record) for record in records]
        return self.follows

    def is_following(self, follower_id: str, target_id: str) -> bool:
        return any(
            edge.follower_id == follower_id and edge.following_id == target_id
            for edge in self._follows
        )

    def following_set(self, user_id: str) -> set[str]:
        return {edge.following_id for edge in self._follows if edge.follower_id == user_id}

    def followers_of(self, user_id: str) -> set[str]:
        return {edge.follower_id for edge in self._follows if edge.following_id == user_id}

    async def _edges(self, follower_id: str, target_id: str) -> list[Follow]:
        records = await self._datastore.filtered_query(
            EntityKind.FOLLOWS, follower_id=follower_id, following_id=target_id
        )
        return [Follow.from_record(record) for record in records]

    async def follow(self, follower_id: str, target_id: str) -> Follow:
        """Create the edge ``follower -> target``; returns the existing one if present."""
        if follower_id == target_id:
            raise ValidationError("Users cannot follow themselves")

        async with self._lock:
            await self._directory.get_user(follower_id)
            await self._directory.get_user(target_id)

            existing = await self._edges(follower_id, target_id)
            if existing:
                return existing[0]

            edge = Follow(follower_id=follower_id, following_id=target_id)
            record = await self._datastore.insert(EntityKind.FOLLOWS, edge.to_record())
            await self._ledger.adjust(EntityKind.USERS, follower_id, following_count=1)
            await self._ledger.adjust(EntityKind.USERS, target_id, follower_count=1)
            await self.refresh()

        await self._directory.get_user(follower_id)
        await self._directory.get_user(target_id)
        logger.info("User %s followed %s", follower_id, target_id)
        return Follow.from_record(record)

    async def unfollow(self, follower_id: str, target_id: str) -> bool:
        """Remove the edge; returns False when there was nothing to remove."""
        async with self._lock:
            await self._directory.get_user(follower_id)
            await self._directory.get_user(target_id)

            existing = await self._edges(follower_id, target_id)
            if not existing:
                return False
            for edge in existing:
                await self._datastore.delete(EntityKind.FOLLOWS, edge.id)
            removed = len(existing)
            await self._ledger.adjust(
                EntityKind.USERS, follower_id, following_count=-removed
            )
            await self._ledger.adjust(EntityKind.USERS, target_id, follower_count=-removed)
            await self.refresh()

        await self._directory.get_user(follower_id)
        await self._directory.get_user(target_id)
        logger.info("User %s unfollowed %s", follower_id, target_id)
        return True
