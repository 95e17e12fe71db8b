"""Domain entities for TownConnect.

Entities are immutable pydantic models. Each one round-trips through the plain
record mapping persisted by a ``DataStore`` via ``to_record()`` and
``from_record()``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Self

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ValidationError
from .permissions import Permission, UserRole, has_permission, permissions_for
from .utils import duration_between, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class RSVPStatus(StrEnum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    MAYBE = "maybe"


class EventStatus(StrEnum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventVisibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class EventCategory(StrEnum):
    COMMUNITY = "community"
    SPORTS = "sports"
    CULTURE = "culture"
    FOOD = "food"
    BUSINESS = "business"
    EDUCATION = "education"
    FAMILY = "family"
    MUSIC = "music"
    ART = "art"
    SOCIAL = "social"

    @property
    def info(self) -> CategoryInfo:
        return CATEGORY_INFO[self]


class ReactionType(StrEnum):
    LIKE = "like"
    LOVE = "love"
    LAUGH = "laugh"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"

    @property
    def emoji(self) -> str:
        return REACTION_EMOJI[self]


class TargetKind(StrEnum):
    EVENT = "event"
    PHOTO = "photo"
    COMMENT = "comment"


@dataclass(frozen=True)
class CategoryInfo:
    display_name: str
    icon: str


CATEGORY_INFO: dict[EventCategory, CategoryInfo] = {
    EventCategory.COMMUNITY: CategoryInfo("Community", "building.2.fill"),
    EventCategory.SPORTS: CategoryInfo("Sports", "sportscourt.fill"),
    EventCategory.CULTURE: CategoryInfo("Culture", "theatermasks.fill"),
    EventCategory.FOOD: CategoryInfo("Food & Dining", "fork.knife"),
    EventCategory.BUSINESS: CategoryInfo("Business", "briefcase.fill"),
    EventCategory.EDUCATION: CategoryInfo("Education", "book.fill"),
    EventCategory.FAMILY: CategoryInfo("Family", "house.fill"),
    EventCategory.MUSIC: CategoryInfo("Music", "music.note"),
    EventCategory.ART: CategoryInfo("Art", "paintpalette.fill"),
    EventCategory.SOCIAL: CategoryInfo("Social", "person.3.fill"),
}

REACTION_EMOJI: dict[ReactionType, str] = {
    ReactionType.LIKE: "\U0001f44d",
    ReactionType.LOVE: "❤️",
    ReactionType.LAUGH: "\U0001f602",
    ReactionType.WOW: "\U0001f62e",
    ReactionType.SAD: "\U0001f622",
    ReactionType.ANGRY: "\U0001f620",
}

TARGET_FIELDS: dict[TargetKind, str] = {
    TargetKind.EVENT: "event_id",
    TargetKind.PHOTO: "photo_id",
    TargetKind.COMMENT: "comment_id",
}


class Target(BaseModel):
    """The single entity a reaction or comment is attached to."""

    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    id: str

    @classmethod
    def event(cls, event_id: str) -> Self:
        return cls(kind=TargetKind.EVENT, id=event_id)

    @classmethod
    def photo(cls, photo_id: str) -> Self:
        return cls(kind=TargetKind.PHOTO, id=photo_id)

    @classmethod
    def comment(cls, comment_id: str) -> Self:
        return cls(kind=TargetKind.COMMENT, id=comment_id)

    @property
    def record_field(self) -> str:
        return TARGET_FIELDS[self.kind]


def _target_from(record: BaseModel, kinds: tuple[TargetKind, ...]) -> Target:
    present = [
        kind for kind in kinds if getattr(record, TARGET_FIELDS[kind]) is not None
    ]
    if len(present) != 1:
        allowed = ", ".join(TARGET_FIELDS[kind] for kind in kinds)
        raise ValueError(f"exactly one of {allowed} must be set")
    kind = present[0]
    return Target(kind=kind, id=getattr(record, TARGET_FIELDS[kind]))


class Entity(BaseModel):
    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        return cls.model_validate(record)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump()


def build_entity(cls: type[Entity], **data: Any) -> Any:
    """Construct an entity from caller data, raising the domain ``ValidationError``."""
    try:
        return cls.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or cls.__name__
        raise ValidationError(f"Invalid {location}: {first['msg']}") from exc


class User(Entity):
    id: str = Field(default_factory=_uuid)
    handle: str
    display_name: str
    bio: str = ""
    interests: tuple[str, ...] = ()
    role: UserRole = UserRole.RESIDENT
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    follower_count: int = 0
    following_count: int = 0
    event_count: int = 0
    photo_count: int = 0
    is_profile_public: bool = True
    show_email: bool = False
    show_phone: bool = False
    is_onboarding_complete: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def permissions(self) -> frozenset[Permission]:
        return permissions_for(self.role)

    def has_permission(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)

    @property
    def display_location(self) -> str | None:
        if not self.city:
            return None
        if self.state:
            return f"{self.city}, {self.state}"
        return self.city

    @property
    def post_count(self) -> int:
        return self.photo_count + self.event_count


class Event(Entity):
    id: str = Field(default_factory=_uuid)
    title: str
    description: str = ""
    location: str
    start_time: datetime
    end_time: datetime
    host_id: str
    attendee_ids: tuple[str, ...] = ()
    category: EventCategory = EventCategory.COMMUNITY
    status: EventStatus = EventStatus.UPCOMING
    visibility: EventVisibility = EventVisibility.PUBLIC
    capacity: int | None = None
    tags: tuple[str, ...] = ()
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_public(self) -> bool:
        return self.visibility == EventVisibility.PUBLIC

    @property
    def spots_left(self) -> int | None:
        if self.capacity is None:
            return None
        return max(self.capacity - len(self.attendee_ids), 0)

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and len(self.attendee_ids) >= self.capacity

    @property
    def duration_label(self) -> str:
        return duration_between(self.start_time, self.end_time)

    def has_ended(self, now: datetime | None = None) -> bool:
        return self.end_time <= (now or utcnow())


class Follow(Entity):
    id: str = Field(default_factory=_uuid)
    follower_id: str
    following_id: str
    created_at: datetime = Field(default_factory=utcnow)


class Invite(Entity):
    """The single RSVP record for one invitee and one event."""

    id: str = Field(default_factory=_uuid)
    event_id: str
    inviter_id: str
    invitee_id: str
    status: RSVPStatus = RSVPStatus.INVITED
    message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Reaction(Entity):
    id: str = Field(default_factory=_uuid)
    user_id: str
    event_id: str | None = None
    photo_id: str | None = None
    comment_id: str | None = None
    reaction_type: ReactionType
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _single_target(self) -> Self:
        _target_from(self, (TargetKind.EVENT, TargetKind.PHOTO, TargetKind.COMMENT))
        return self

    @property
    def target(self) -> Target:
        return _target_from(
            self, (TargetKind.EVENT, TargetKind.PHOTO, TargetKind.COMMENT)
        )


class Comment(Entity):
    id: str = Field(default_factory=_uuid)
    event_id: str | None = None
    photo_id: str | None = None
    author_id: str
    content: str
    reply_to_id: str | None = None
    like_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _single_target(self) -> Self:
        _target_from(self, (TargetKind.EVENT, TargetKind.PHOTO))
        return self

    @property
    def target(self) -> Target:
        return _target_from(self, (TargetKind.EVENT, TargetKind.PHOTO))


class EventPhoto(Entity):
    id: str = Field(default_factory=_uuid)
    event_id: str
    uploader_id: str
    caption: str = ""
    image_url: str | None = None
    is_visible: bool = True
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
