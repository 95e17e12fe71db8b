"""User profiles: signup, edits, lookups and profile stats."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .backend import DataStore, EntityKind
from .domain import User, build_entity
from .errors import NotFoundError, ValidationError
from .permissions import Permission, UserRole, require_manage, require_permission
from .utils import contains_text, normalize_handle, utcnow

logger = logging.getLogger(__name__)

# Fields a profile edit may touch. Role and counters have their own paths.
PROFILE_FIELDS = frozenset(
    {
        "handle",
        "display_name",
        "bio",
        "interests",
        "email",
        "phone",
        "city",
        "state",
        "is_profile_public",
        "show_email",
        "show_phone",
        "is_onboarding_complete",
    }
)


@dataclass(frozen=True)
class ProfileStats:
    followers: int
    following: int
    events: int
    photos: int

    @property
    def posts(self) -> int:
        return self.photos + self.events


class UserDirectory:
    """Holds the users snapshot and serializes profile mutations."""

    def __init__(self, datastore: DataStore) -> None:
        self._datastore = datastore
        self._lock = asyncio.Lock()
        self._users: dict[str, User] = {}

    @property
    def users(self) -> list[User]:
        return list(self._users.values())

    def cached(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def refresh(self) -> list[User]:
        records = await self._datastore.fetch_all(EntityKind.USERS)
        self._users = {record["id"]: User.from_record(record) for record in records}
        return self.users

    async def get_user(self, user_id: str) -> User:
        """Read a user from the data store and refresh its snapshot entry."""
        user = User.from_record(
            await self._datastore.fetch_by_id(EntityKind.USERS, user_id)
        )
        self._users[user.id] = user
        return user

    async def get_by_handle(self, handle: str) -> User:
        normalized = normalize_handle(handle)
        records = await self._datastore.filtered_query(
            EntityKind.USERS, handle=normalized
        )
        if not records:
            raise NotFoundError(EntityKind.USERS.value, handle)
        user = User.from_record(records[0])
        self._users[user.id] = user
        return user

    async def _ensure_handle_free(self, handle: str, *, owner_id: str | None) -> None:
        records = await self._datastore.filtered_query(EntityKind.USERS, handle=handle)
        if any(record["id"] != owner_id for record in records):
            raise ValidationError(f"Handle @{handle} is already taken")

    async def create_user(
        self,
        *,
        handle: str,
        display_name: str,
        role: UserRole | str = UserRole.RESIDENT,
        bio: str = "",
        interests: list[str] | tuple[str, ...] = (),
        email: str | None = None,
        phone: str | None = None,
        city: str | None = None,
        state: str | None = None,
    ) -> User:
        """Register a new user at signup or onboarding."""
        normalized = normalize_handle(handle)
        if not normalized:
            raise ValidationError("Handle is required")
        if not (display_name or "").strip():
            raise ValidationError("Display name is required")
        user = build_entity(
            User,
            handle=normalized,
            display_name=display_name.strip(),
            role=role,
            bio=bio,
            interests=tuple(interests),
            email=email,
            phone=phone,
            city=city,
            state=state,
        )

        async with self._lock:
            await self._ensure_handle_free(normalized, owner_id=None)
            record = await self._datastore.insert(EntityKind.USERS, user.to_record())
        saved = User.from_record(record)
        self._users[saved.id] = saved
        logger.info("Created user %s (@%s, %s)", saved.id, saved.handle, saved.role)
        return saved

    async def update_profile(self, actor_id: str, user_id: str, **changes: Any) -> User:
        """Apply a profile edit made by ``actor_id`` to ``user_id``."""
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit profile fields: {sorted(unknown)}")
        if "handle" in changes:
            changes["handle"] = normalize_handle(changes["handle"])
            if not changes["handle"]:
                raise ValidationError("Handle is required")
        if "display_name" in changes:
            changes["display_name"] = (changes["display_name"] or "").strip()
            if not changes["display_name"]:
                raise ValidationError("Display name is required")
        if "interests" in changes:
            changes["interests"] = tuple(changes["interests"] or ())

        async with self._lock:
            actor = await self.get_user(actor_id)
            current = await self.get_user(user_id)
            require_manage(
                actor,
                current.id,
                own=Permission.EDIT_OWN_PROFILE,
                any_=Permission.EDIT_ALL_PROFILES,
            )
            candidate = build_entity(User, **{**current.to_record(), **changes})
            if "handle" in changes and changes["handle"] != current.handle:
                await self._ensure_handle_free(changes["handle"], owner_id=current.id)
            partial = {key: getattr(candidate, key) for key in changes}
            partial["updated_at"] = utcnow()
            record = await self._datastore.update(EntityKind.USERS, user_id, partial)
        saved = User.from_record(record)
        self._users[saved.id] = saved
        logger.info("Updated profile %s (%s)", saved.id, ", ".join(sorted(changes)))
        return saved

    async def change_role(self, actor_id: str, user_id: str, role: UserRole | str) -> User:
        try:
            new_role = UserRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role {role!r}") from exc
        async with self._lock:
            actor = await self.get_user(actor_id)
            require_permission(actor, Permission.MANAGE_USERS)
            await self.get_user(user_id)
            record = await self._datastore.update(
                EntityKind.USERS, user_id, {"role": new_role, "updated_at": utcnow()}
            )
        saved = User.from_record(record)
        self._users[saved.id] = saved
        logger.info("User %s changed role of %s to %s", actor_id, user_id, new_role)
        return saved

    def search_users(self, query: str) -> list[User]:
        query = (query or "").strip()
        if not query:
            return self.users
        return [
            user
            for user in self._users.values()
            if contains_text(user.handle, query) or contains_text(user.display_name, query)
        ]

    def profile_stats(self, user_id: str) -> ProfileStats:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(EntityKind.USERS.value, user_id)
        return ProfileStats(
            followers=user.follower_count,
            following=user.following_count,
            events=user.event_count,
            photos=user.photo_count,
        )
