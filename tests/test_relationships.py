from __future__ import annotations

import asyncio

import pytest

from townconnect.backend import EntityKind
from townconnect.errors import NotFoundError, ValidationError


async def test_follow_twice_creates_one_edge(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")

    first = await context.relationships.follow(jay.id, sam.id)
    second = await context.relationships.follow(jay.id, sam.id)

    assert first.id == second.id
    assert len(await context.datastore.fetch_all(EntityKind.FOLLOWS)) == 1
    assert context.users.cached(jay.id).following_count == 1
    assert context.users.cached(sam.id).follower_count == 1
    assert context.relationships.is_following(jay.id, sam.id)
    assert not context.relationships.is_following(sam.id, jay.id)


async def test_unfollow_is_idempotent(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")
    await context.relationships.follow(jay.id, sam.id)

    assert await context.relationships.unfollow(jay.id, sam.id) is True
    assert await context.relationships.unfollow(jay.id, sam.id) is False

    assert await context.datastore.fetch_all(EntityKind.FOLLOWS) == []
    assert context.users.cached(jay.id).following_count == 0
    assert context.users.cached(sam.id).follower_count == 0


async def test_unfollow_never_goes_negative(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")
    await context.relationships.follow(jay.id, sam.id)
    await context.datastore.update(EntityKind.USERS, sam.id, {"follower_count": 0})

    await context.relationships.unfollow(jay.id, sam.id)

    assert context.users.cached(sam.id).follower_count == 0


async def test_concurrent_follows_are_serialized(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")

    await asyncio.gather(*(context.relationships.follow(jay.id, sam.id) for _ in range(5)))

    assert len(context.relationships.follows) == 1
    assert context.users.cached(sam.id).follower_count == 1
    assert context.users.cached(jay.id).following_count == 1


async def test_self_follow_is_rejected(context, make_user):
    jay = await make_user("jay")
    with pytest.raises(ValidationError):
        await context.relationships.follow(jay.id, jay.id)
    assert context.relationships.follows == []


async def test_follow_unknown_user(context, make_user):
    jay = await make_user("jay")
    with pytest.raises(NotFoundError):
        await context.relationships.follow(jay.id, "nobody")
    with pytest.raises(NotFoundError):
        await context.relationships.unfollow("nobody", jay.id)
    assert context.users.cached(jay.id).following_count == 0


async def test_following_and_followers_sets(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")
    mia = await make_user("mia")
    await context.relationships.follow(jay.id, sam.id)
    await context.relationships.follow(jay.id, mia.id)
    await context.relationships.follow(mia.id, sam.id)

    assert context.relationships.following_set(jay.id) == {sam.id, mia.id}
    assert context.relationships.following_set(sam.id) == set()
    assert context.relationships.followers_of(sam.id) == {jay.id, mia.id}
    assert context.users.profile_stats(sam.id).followers == 2


async def test_refresh_reads_edges_from_the_data_store(context, make_user):
    jay = await make_user("jay")
    sam = await make_user("sam")
    await context.datastore.insert(
        EntityKind.FOLLOWS, {"follower_id": jay.id, "following_id": sam.id}
    )
    assert not context.relationships.is_following(jay.id, sam.id)

    await context.relationships.refresh()

    assert context.relationships.is_following(jay.id, sam.id)
