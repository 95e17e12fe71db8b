from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from townconnect.backend import EntityKind
from townconnect.context import build_context
from townconnect.database import create_db_engine
from townconnect.domain import ReactionType, RSVPStatus, Target
from townconnect.errors import BackendError, NotFoundError
from townconnect.sql_store import SqlDataStore
from townconnect.storage import init_db


@pytest.fixture()
async def sql_store(tmp_path):
    engine = create_db_engine(tmp_path / "townconnect.db")
    init_db(engine)
    store = SqlDataStore(engine)
    yield store
    await store.close()


async def test_insert_fetch_update_delete(sql_store):
    created = await sql_store.insert(
        EntityKind.USERS,
        {"handle": "jay", "display_name": "Jay Patel", "interests": ("Hiking",)},
    )
    assert created["id"]
    assert created["interests"] == ["Hiking"]
    assert created["follower_count"] == 0

    updated = await sql_store.update(EntityKind.USERS, created["id"], {"bio": "Explorer"})
    assert updated["bio"] == "Explorer"
    assert (await sql_store.fetch_by_id(EntityKind.USERS, created["id"]))["bio"] == "Explorer"
    matches = await sql_store.filtered_query(EntityKind.USERS, handle="jay")
    assert [row["handle"] for row in matches] == ["jay"]

    await sql_store.delete(EntityKind.USERS, created["id"])
    assert await sql_store.fetch_all(EntityKind.USERS) == []


async def test_missing_records_raise_not_found(sql_store):
    with pytest.raises(NotFoundError):
        await sql_store.fetch_by_id(EntityKind.EVENTS, "missing")
    with pytest.raises(NotFoundError):
        await sql_store.update(EntityKind.EVENTS, "missing", {"title": "x"})
    with pytest.raises(NotFoundError):
        await sql_store.delete(EntityKind.EVENTS, "missing")


async def test_constraint_violation_becomes_backend_error(sql_store):
    await sql_store.insert(EntityKind.USERS, {"handle": "sam", "display_name": "Sam"})
    with pytest.raises(BackendError):
        await sql_store.insert(EntityKind.USERS, {"handle": "sam", "display_name": "Other"})


async def test_stores_run_against_sql(sql_store, settings, clock):
    context = build_context(sql_store, settings, clock=clock)
    host = await context.users.create_user(handle="host1", display_name="Host")
    guest = await context.users.create_user(handle="guest1", display_name="Guest")
    await context.relationships.follow(guest.id, host.id)
    event = await context.events.create_event(
        host.id,
        title="Dinner",
        location="Town Hall",
        start_time=datetime(2025, 1, 1, 18, 0),
        end_time=datetime(2025, 1, 1, 20, 0),
        category="food",
    )

    await context.events.rsvp(event.id, guest.id, RSVPStatus.ACCEPTED)
    await context.events.rsvp(event.id, guest.id, RSVPStatus.DECLINED)
    await context.engagement.toggle_reaction(guest.id, Target.event(event.id), "love")
    await context.bootstrap()

    assert context.events.get_event(event.id).attendee_ids == (host.id,)
    assert context.events.attendee_count(event.id) == 1
    assert context.events.declined_count(event.id) == 1
    assert context.feed.feed_for(guest.id) == [context.events.get_event(event.id)]
    assert context.users.cached(host.id).follower_count == 1
    counts = context.engagement.reaction_counts(Target.event(event.id))
    assert counts == {ReactionType.LOVE: 1}

    with sql_store.engine.connect() as conn:
        stored = conn.execute(
            text("select status from invites where invitee_id = :id"), {"id": guest.id}
        ).scalar()
        category = conn.execute(
            text("select category from events where id = :id"), {"id": event.id}
        ).scalar()
    assert stored == "declined"
    assert category == "food"


async def test_snapshots_survive_a_new_context(sql_store, settings, clock):
    first = build_context(sql_store, settings, clock=clock)
    host = await first.users.create_user(handle="host", display_name="Host")
    start = clock.now + timedelta(days=2)
    event = await first.events.create_event(
        host.id,
        title="Cleanup",
        location="Beach",
        start_time=start,
        end_time=start + timedelta(hours=3),
    )

    second = build_context(sql_store, settings, clock=clock)
    await second.bootstrap()

    assert [item.id for item in second.events.events] == [event.id]
    assert second.users.cached(host.id).event_count == 1
    assert second.events.current_status(event.id, host.id) == RSVPStatus.ACCEPTED
