from __future__ import annotations

from datetime import datetime, timedelta

import pydantic
import pytest

from townconnect.domain import (
    Comment,
    Event,
    EventCategory,
    Reaction,
    ReactionType,
    Target,
    TargetKind,
    User,
    build_entity,
)
from townconnect.errors import PermissionDeniedError, ValidationError
from townconnect.permissions import (
    PERMISSION_SETS,
    Permission,
    UserRole,
    can_manage,
    has_permission,
    require_manage,
    require_permission,
)

START = datetime(2025, 3, 1, 9, 0)


def test_permission_table():
    resident = PERMISSION_SETS[UserRole.RESIDENT]
    organizer = PERMISSION_SETS[UserRole.EVENT_ORGANIZER]
    leader = PERMISSION_SETS[UserRole.COMMUNITY_LEADER]

    assert Permission.CREATE_EVENTS in resident
    assert Permission.MODERATE_CONTENT not in resident
    assert PERMISSION_SETS[UserRole.BUSINESS_OWNER] == organizer
    assert organizer - resident == {Permission.PROMOTE_EVENTS, Permission.ACCESS_ANALYTICS}
    assert leader - organizer == {Permission.MODERATE_CONTENT, Permission.EDIT_ALL_EVENTS}
    assert PERMISSION_SETS[UserRole.ADMIN] == frozenset(Permission)
    assert has_permission("admin", Permission.SYSTEM_ADMIN)


def test_can_manage_own_versus_any():
    resident = User(id="r", handle="r", display_name="R")
    leader = User(id="l", handle="l", display_name="L", role=UserRole.COMMUNITY_LEADER)
    rules = {"own": Permission.EDIT_OWN_EVENTS, "any_": Permission.EDIT_ALL_EVENTS}

    assert can_manage(resident, "r", **rules)
    assert not can_manage(resident, "l", **rules)
    assert can_manage(leader, "r", **rules)

    with pytest.raises(PermissionDeniedError) as excinfo:
        require_manage(resident, "l", **rules)
    assert excinfo.value.permission == "edit_all_events"
    with pytest.raises(PermissionDeniedError):
        require_permission(resident, Permission.MANAGE_USERS)


def test_lookup_tables_cover_every_variant():
    assert {role.info.display_name for role in UserRole} >= {"Resident", "Administrator"}
    assert EventCategory.FOOD.info.display_name == "Food & Dining"
    assert all(category.info.icon for category in EventCategory)
    assert ReactionType.LIKE.emoji == "\U0001f44d"
    assert len({reaction.emoji for reaction in ReactionType}) == len(ReactionType)


def test_user_derived_fields():
    user = User(handle="sam", display_name="Sam", city="Dayton", photo_count=2, event_count=3)
    assert user.display_location == "Dayton"
    assert user.post_count == 5
    assert User(handle="x", display_name="X").display_location is None
    assert user.permissions == PERMISSION_SETS[UserRole.RESIDENT]


def test_event_capacity_and_duration():
    event = Event(
        title="Swim",
        location="Pool",
        start_time=START,
        end_time=START + timedelta(hours=2, minutes=30),
        host_id="h",
        attendee_ids=("h", "g"),
        capacity=3,
    )
    assert event.is_public
    assert event.spots_left == 1
    assert not event.is_full
    assert event.duration_label == "2h 30m"
    assert event.has_ended(START + timedelta(hours=3))
    assert not event.has_ended(START)


def test_entities_round_trip_through_records():
    event = Event(
        title="Swim",
        location="Pool",
        start_time=START,
        end_time=START + timedelta(hours=1),
        host_id="h",
        tags=("summer",),
    )
    record = event.to_record()
    record["tags"] = list(record["tags"])
    record["category"] = "community"

    assert Event.from_record(record) == event


def test_reaction_requires_exactly_one_target():
    reaction = Reaction(user_id="u", photo_id="p", reaction_type="wow")
    assert reaction.target == Target.photo("p")
    assert reaction.target.record_field == "photo_id"

    with pytest.raises(pydantic.ValidationError):
        Reaction(user_id="u", reaction_type="like")
    with pytest.raises(pydantic.ValidationError):
        Reaction(user_id="u", event_id="e", comment_id="c", reaction_type="like")


def test_comment_targets_events_or_photos_only():
    comment = Comment(event_id="e", author_id="u", content="hi")
    assert comment.target.kind == TargetKind.EVENT

    with pytest.raises(pydantic.ValidationError):
        Comment(author_id="u", content="orphan")


def test_build_entity_raises_domain_validation_error():
    with pytest.raises(ValidationError) as excinfo:
        build_entity(User, handle="x", display_name="X", role="mayor")
    assert "role" in excinfo.value.message
