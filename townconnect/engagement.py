"""Reactions, comments and event photos."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Callable

from .backend import DataStore, EntityKind
from .counters import CounterLedger
from .domain import Comment, EventPhoto, Reaction, ReactionType, Target, TargetKind
from .errors import PermissionDeniedError, ValidationError
from .permissions import Permission, has_permission
from .profiles import UserDirectory
from .utils import utcnow

logger = logging.getLogger(__name__)

TARGET_ENTITIES: dict[TargetKind, EntityKind] = {
    TargetKind.EVENT: EntityKind.EVENTS,
    TargetKind.PHOTO: EntityKind.EVENT_PHOTOS,
    TargetKind.COMMENT: EntityKind.COMMENTS,
}


def _parse_reaction(reaction_type: ReactionType | str) -> ReactionType:
    try:
        return ReactionType(reaction_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown reaction type {reaction_type!r}") from exc


def _on_target(item: Reaction | Comment, target: Target) -> bool:
    return getattr(item, target.record_field) == target.id


async def purge_comment(datastore: DataStore, comment_id: str) -> None:
    """Delete a comment and the reactions on it. Counters are left to the caller."""
    for record in await datastore.filtered_query(
        EntityKind.REACTIONS, comment_id=comment_id
    ):
        await datastore.delete(EntityKind.REACTIONS, record["id"])
    await datastore.delete(EntityKind.COMMENTS, comment_id)


async def purge_photo(datastore: DataStore, ledger: CounterLedger, photo: EventPhoto) -> None:
    """Delete a photo with its reactions and comments, and the uploader's count."""
    for record in await datastore.filtered_query(EntityKind.REACTIONS, photo_id=photo.id):
        await datastore.delete(EntityKind.REACTIONS, record["id"])
    for record in await datastore.filtered_query(EntityKind.COMMENTS, photo_id=photo.id):
        await purge_comment(datastore, record["id"])
    await datastore.delete(EntityKind.EVENT_PHOTOS, photo.id)
    await ledger.adjust(EntityKind.USERS, photo.uploader_id, photo_count=-1)


async def purge_event_engagement(
    datastore: DataStore, ledger: CounterLedger, event_id: str
) -> list[EventPhoto]:
    """Delete everything attached to an event; returns the removed photos."""
    photos = [
        EventPhoto.from_record(record)
        for record in await datastore.filtered_query(
            EntityKind.EVENT_PHOTOS, event_id=event_id
        )
    ]
    for photo in photos:
        await purge_photo(datastore, ledger, photo)
    for record in await datastore.filtered_query(EntityKind.COMMENTS, event_id=event_id):
        await purge_comment(datastore, record["id"])
    for record in await datastore.filtered_query(EntityKind.REACTIONS, event_id=event_id):
        await datastore.delete(EntityKind.REACTIONS, record["id"])
    return photos


class EngagementTally:
    """Keeps one reaction per user and target, and the like/comment counters."""

    def __init__(
        self,
        datastore: DataStore,
        ledger: CounterLedger,
        directory: UserDirectory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._datastore = datastore
        self._ledger = ledger
        self._directory = directory
        self._clock = clock
        self._lock = asyncio.Lock()
        self._reactions: list[Reaction] = []
        self._comments: list[Comment] = []
        self._photos: list[EventPhoto] = []

    async def refresh(self) -> None:
        reactions = await self._datastore.fetch_all(EntityKind.REACTIONS)
        comments = await self._datastore.fetch_all(EntityKind.COMMENTS)
        photos = await self._datastore.fetch_all(EntityKind.EVENT_PHOTOS)
        self._reactions = [Reaction.from_record(record) for record in reactions]
        self._comments = [Comment.from_record(record) for record in comments]
        self._photos = [EventPhoto.from_record(record) for record in photos]

    async def _ensure_target(self, target: Target) -> None:
        await self._datastore.fetch_by_id(TARGET_ENTITIES[target.kind], target.id)

    def _is_moderator(self, user_id: str) -> bool:
        user = self._directory.cached(user_id)
        return user is not None and has_permission(user.role, Permission.MODERATE_CONTENT)

    # Reactions -------------------------------------------------------------

    def reactions_for(self, target: Target) -> list[Reaction]:
        return [reaction for reaction in self._reactions if _on_target(reaction, target)]

    def reaction_for(self, user_id: str, target: Target) -> Reaction | None:
        for reaction in self.reactions_for(target):
            if reaction.user_id == user_id:
                return reaction
        return None

    def has_reacted(self, user_id: str, target: Target) -> bool:
        return self.reaction_for(user_id, target) is not None

    def reaction_counts(self, target: Target) -> dict[ReactionType, int]:
        """Counts per reaction type; types nobody used are left out."""
        counts = Counter(reaction.reaction_type for reaction in self.reactions_for(target))
        return {kind: counts[kind] for kind in ReactionType if counts[kind]}

    async def toggle_reaction(
        self, user_id: str, target: Target, reaction_type: ReactionType | str
    ) -> Reaction | None:
        """React to ``target``.

        Reacting again with the same type removes the reaction and returns None.
        A different type replaces the previous one.
        """
        new_type = _parse_reaction(reaction_type)

        async with self._lock:
            await self._directory.get_user(user_id)
            await self._ensure_target(target)
            records = await self._datastore.filtered_query(
                EntityKind.REACTIONS, user_id=user_id, **{target.record_field: target.id}
            )
            existing = [Reaction.from_record(record) for record in records]
            toggled_off = any(reaction.reaction_type == new_type for reaction in existing)

            for reaction in existing:
                await self._datastore.delete(EntityKind.REACTIONS, reaction.id)
            saved = None
            if not toggled_off:
                reaction = Reaction(
                    user_id=user_id,
                    reaction_type=new_type,
                    created_at=self._clock(),
                    **{target.record_field: target.id},
                )
                record = await self._datastore.insert(
                    EntityKind.REACTIONS, reaction.to_record()
                )
                saved = Reaction.from_record(record)

            delta = (0 if toggled_off else 1) - len(existing)
            if delta:
                await self._ledger.adjust(
                    TARGET_ENTITIES[target.kind], target.id, like_count=delta
                )
            await self.refresh()

        if saved is None:
            logger.info("User %s removed reaction from %s %s", user_id, target.kind, target.id)
        else:
            logger.info(
                "User %s reacted %s to %s %s", user_id, new_type, target.kind, target.id
            )
        return saved

    # Comments --------------------------------------------------------------

    def comments_for(self, target: Target) -> list[Comment]:
        """Comments on ``target``, oldest first."""
        found = [comment for comment in self._comments if _on_target(comment, target)]
        return sorted(found, key=lambda comment: comment.created_at)

    async def add_comment(
        self,
        target: Target,
        author_id: str,
        content: str,
        reply_to: str | None = None,
    ) -> Comment:
        if target.kind == TargetKind.COMMENT:
            raise ValidationError("Comments can only be added to events or photos")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment cannot be empty")

        async with self._lock:
            await self._directory.get_user(author_id)
            await self._ensure_target(target)
            if reply_to is not None:
                parent = Comment.from_record(
                    await self._datastore.fetch_by_id(EntityKind.COMMENTS, reply_to)
                )
                if parent.target != target:
                    raise ValidationError("Replies must be on the same item as the comment")
            now = self._clock()
            comment = Comment(
                author_id=author_id,
                content=content,
                reply_to_id=reply_to,
                created_at=now,
                updated_at=now,
                **{target.record_field: target.id},
            )
            record = await self._datastore.insert(EntityKind.COMMENTS, comment.to_record())
            await self._ledger.adjust(
                TARGET_ENTITIES[target.kind], target.id, comment_count=1
            )
            await self.refresh()

        saved = Comment.from_record(record)
        logger.info("User %s commented on %s %s", author_id, target.kind, target.id)
        return saved

    async def delete_comment(self, actor_id: str, comment_id: str) -> None:
        """Delete a comment as its author or as a moderator."""
        async with self._lock:
            await self._directory.get_user(actor_id)
            comment = Comment.from_record(
                await self._datastore.fetch_by_id(EntityKind.COMMENTS, comment_id)
            )
            if comment.author_id != actor_id and not self._is_moderator(actor_id):
                raise PermissionDeniedError(actor_id, Permission.MODERATE_CONTENT.value)

            await purge_comment(self._datastore, comment_id)
            target = comment.target
            await self._ledger.adjust(
                TARGET_ENTITIES[target.kind], target.id, comment_count=-1
            )
            await self.refresh()

        logger.info("User %s deleted comment %s", actor_id, comment_id)

    # Photos ----------------------------------------------------------------

    def photos_for(self, event_id: str) -> list[EventPhoto]:
        found = [
            photo
            for photo in self._photos
            if photo.event_id == event_id and photo.is_visible
        ]
        return sorted(found, key=lambda photo: photo.created_at)

    async def add_photo(
        self,
        event_id: str,
        uploader_id: str,
        caption: str = "",
        image_url: str | None = None,
    ) -> EventPhoto:
        async with self._lock:
            await self._directory.get_user(uploader_id)
            await self._datastore.fetch_by_id(EntityKind.EVENTS, event_id)
            now = self._clock()
            photo = EventPhoto(
                event_id=event_id,
                uploader_id=uploader_id,
                caption=(caption or "").strip(),
                image_url=image_url,
                created_at=now,
                updated_at=now,
            )
            record = await self._datastore.insert(
                EntityKind.EVENT_PHOTOS, photo.to_record()
            )
            await self._ledger.adjust(EntityKind.USERS, uploader_id, photo_count=1)
            await self.refresh()

        await self._directory.get_user(uploader_id)
        saved = EventPhoto.from_record(record)
        logger.info("User %s added photo %s to event %s", uploader_id, saved.id, event_id)
        return saved

    async def delete_photo(self, actor_id: str, photo_id: str) -> None:
        """Delete a photo with its comments and reactions."""
        async with self._lock:
            await self._directory.get_user(actor_id)
            photo = EventPhoto.from_record(
                await self._datastore.fetch_by_id(EntityKind.EVENT_PHOTOS, photo_id)
            )
            if photo.uploader_id != actor_id and not self._is_moderator(actor_id):
                raise PermissionDeniedError(actor_id, Permission.MODERATE_CONTENT.value)

            await purge_photo(self._datastore, self._ledger, photo)
            await self.refresh()

        await self._directory.get_user(photo.uploader_id)
        logger.info("User %s deleted photo %s", actor_id, photo_id)
