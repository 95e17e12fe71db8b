from __future__ import annotations

import pytest

from townconnect.errors import NotFoundError, PermissionDeniedError, ValidationError
from townconnect.permissions import Permission, UserRole


async def test_create_user_normalizes_handle(context):
    user = await context.users.create_user(
        handle="  @Jay.P ", display_name=" Jay Patel ", city="Austin", state="TX"
    )

    assert user.handle == "jay.p"
    assert user.display_name == "Jay Patel"
    assert user.role == UserRole.RESIDENT
    assert user.display_location == "Austin, TX"
    assert (await context.users.get_by_handle("@JAY.P")).id == user.id


@pytest.mark.parametrize(
    "handle, display_name",
    [("", "Nobody"), ("@@@", "Symbols"), ("mia", "   ")],
)
async def test_create_user_validation(context, handle, display_name):
    with pytest.raises(ValidationError):
        await context.users.create_user(handle=handle, display_name=display_name)
    assert context.users.users == []


async def test_handles_are_unique(context, make_user):
    await make_user("sam")
    with pytest.raises(ValidationError):
        await context.users.create_user(handle="SAM", display_name="Another Sam")


async def test_create_user_rejects_unknown_role(context):
    with pytest.raises(ValidationError):
        await context.users.create_user(handle="x", display_name="X", role="mayor")


async def test_lookups_raise_not_found(context):
    with pytest.raises(NotFoundError):
        await context.users.get_user("missing")
    with pytest.raises(NotFoundError):
        await context.users.get_by_handle("ghost")
    with pytest.raises(NotFoundError):
        context.users.profile_stats("missing")


async def test_update_own_profile(context, make_user):
    mia = await make_user("mia")

    updated = await context.users.update_profile(
        mia.id, mia.id, bio="Painter", interests=["Art"], handle="@MiaC"
    )

    assert updated.bio == "Painter"
    assert updated.interests == ("Art",)
    assert updated.handle == "miac"
    assert context.users.cached(mia.id).bio == "Painter"


async def test_update_profile_permissions(context, make_user):
    mia = await make_user("mia")
    sam = await make_user("sam")
    admin = await make_user("root", role=UserRole.ADMIN)

    with pytest.raises(PermissionDeniedError) as excinfo:
        await context.users.update_profile(sam.id, mia.id, bio="Hacked")
    assert excinfo.value.permission == Permission.EDIT_ALL_PROFILES

    updated = await context.users.update_profile(admin.id, mia.id, bio="Moderated")
    assert updated.bio == "Moderated"


async def test_update_profile_rejects_protected_fields(context, make_user):
    mia = await make_user("mia")
    await make_user("sam")

    with pytest.raises(ValidationError):
        await context.users.update_profile(mia.id, mia.id, role=UserRole.ADMIN)
    with pytest.raises(ValidationError):
        await context.users.update_profile(mia.id, mia.id, follower_count=100)
    with pytest.raises(ValidationError):
        await context.users.update_profile(mia.id, mia.id, handle="sam")
    with pytest.raises(ValidationError):
        await context.users.update_profile(mia.id, mia.id, display_name="")

    assert (await context.users.get_user(mia.id)).role == UserRole.RESIDENT


async def test_change_role_requires_manage_users(context, make_user):
    mia = await make_user("mia")
    leader = await make_user("leader", role=UserRole.COMMUNITY_LEADER)
    admin = await make_user("root", role=UserRole.ADMIN)

    with pytest.raises(PermissionDeniedError):
        await context.users.change_role(leader.id, mia.id, UserRole.EVENT_ORGANIZER)

    promoted = await context.users.change_role(admin.id, mia.id, "event_organizer")
    assert promoted.role == UserRole.EVENT_ORGANIZER
    assert promoted.has_permission(Permission.PROMOTE_EVENTS)

    with pytest.raises(ValidationError):
        await context.users.change_role(admin.id, mia.id, "mayor")


async def test_search_users(context, make_user):
    await make_user("jay", display_name="Jay Patel")
    await make_user("sam", display_name="Sam Lee")
    await make_user("mia", display_name="Mia Chen")

    assert [user.handle for user in context.users.search_users("LEE")] == ["sam"]
    assert [user.handle for user in context.users.search_users("a")] == [
        "jay",
        "sam",
        "mia",
    ]
    assert len(context.users.search_users("")) == 3
