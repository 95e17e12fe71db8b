"""SQLAlchemy models for the TownConnect SQL data store."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from .backend import EntityKind
from .utils import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return utcnow()


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    handle = Column(String(64), nullable=False, unique=True)
    display_name = Column(String(120), nullable=False)
    bio = Column(Text, nullable=False, default="")
    interests = Column(JSON, nullable=False, default=list)
    role = Column(String(32), nullable=False, default="resident")
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    city = Column(String(120), nullable=True)
    state = Column(String(64), nullable=True)
    follower_count = Column(Integer, nullable=False, default=0)
    following_count = Column(Integer, nullable=False, default=0)
    event_count = Column(Integer, nullable=False, default=0)
    photo_count = Column(Integer, nullable=False, default=0)
    is_profile_public = Column(Boolean, nullable=False, default=True)
    show_email = Column(Boolean, nullable=False, default=False)
    show_phone = Column(Boolean, nullable=False, default=False)
    is_onboarding_complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    location = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    host_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    attendee_ids = Column(JSON, nullable=False, default=list)
    category = Column(String(32), nullable=False, default="community")
    status = Column(String(16), nullable=False, default="upcoming")
    visibility = Column(String(16), nullable=False, default="public")
    capacity = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    like_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class Follow(Base):
    __tablename__ = "follows"
    __table_args__ = (UniqueConstraint("follower_id", "following_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    follower_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    following_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Invite(Base):
    __tablename__ = "invites"
    __table_args__ = (UniqueConstraint("event_id", "invitee_id"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    inviter_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    invitee_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(String(16), nullable=False, default="invited")
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class Reaction(Base):
    __tablename__ = "reactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    event_id = Column(String(36), nullable=True)
    photo_id = Column(String(36), nullable=True)
    comment_id = Column(String(36), nullable=True)
    reaction_type = Column(String(16), nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(String(36), nullable=True)
    photo_id = Column(String(36), nullable=True)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    reply_to_id = Column(String(36), nullable=True)
    like_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class EventPhoto(Base):
    __tablename__ = "event_photos"

    id = Column(String(36), primary_key=True, default=_uuid)
    event_id = Column(
        String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    uploader_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    caption = Column(Text, nullable=False, default="")
    image_url = Column(String(500), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    like_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


MODELS: dict[EntityKind, type] = {
    EntityKind.USERS: User,
    EntityKind.EVENTS: Event,
    EntityKind.FOLLOWS: Follow,
    EntityKind.INVITES: Invite,
    EntityKind.REACTIONS: Reaction,
    EntityKind.COMMENTS: Comment,
    EntityKind.EVENT_PHOTOS: EventPhoto,
}
