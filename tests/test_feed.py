from __future__ import annotations

from datetime import datetime, timedelta

from townconnect.domain import Event, EventStatus, EventVisibility
from townconnect.feed import compose_feed, search_events, upcoming


def _event(event_id: str, host_id: str, start: datetime, **kwargs) -> Event:
    return Event(
        id=event_id,
        title=kwargs.pop("title", f"Event {event_id}"),
        location=kwargs.pop("location", "Main Street"),
        start_time=start,
        end_time=start + timedelta(hours=2),
        host_id=host_id,
        **kwargs,
    )


async def test_feed_contains_own_and_followed_public_events(
    context, now, make_user, make_event
):
    a = await make_user("a")
    b = await make_user("b")
    c = await make_user("c")
    d = await make_user("d")
    await context.relationships.follow(a.id, b.id)
    await context.relationships.follow(a.id, c.id)

    c_event = await make_event(c, title="C", start=now + timedelta(days=1))
    b_event = await make_event(b, title="B", start=now + timedelta(days=2))
    await make_event(d, title="D", start=now + timedelta(hours=5))
    a_event = await make_event(a, title="A", start=now + timedelta(days=3))

    feed = context.feed.feed_for(a.id)

    assert [event.id for event in feed] == [c_event.id, b_event.id, a_event.id]


async def test_feed_without_follows_shows_own_events(context, make_user, make_event):
    loner = await make_user("loner")
    other = await make_user("other")
    mine = await make_event(loner)
    await make_event(other)

    assert context.feed.feed_for(loner.id) == [mine]


async def test_feed_skips_private_events(context, make_user, make_event):
    a = await make_user("a")
    b = await make_user("b")
    await context.relationships.follow(a.id, b.id)
    await make_event(b, visibility=EventVisibility.PRIVATE)
    await make_event(a, visibility=EventVisibility.PRIVATE)

    assert context.feed.feed_for(a.id) == []


async def test_feed_limit(context, now, make_user, make_event):
    host = await make_user("host")
    for day in range(1, 4):
        await make_event(host, title=f"Day {day}", start=now + timedelta(days=day))

    assert [event.title for event in context.feed.feed_for(host.id, limit=2)] == [
        "Day 1",
        "Day 2",
    ]
    assert len(context.feed.feed_for(host.id)) == 3


def test_compose_feed_breaks_ties_by_id(now):
    start = now + timedelta(days=1)
    events = [
        _event("b", "host", start),
        _event("c", "stranger", start),
        _event("a", "friend", start),
        _event("0", "friend", start + timedelta(hours=1)),
    ]

    feed = compose_feed("host", events, {"friend"})

    assert [event.id for event in feed] == ["a", "b", "0"]


def test_search_events_matches_title_or_location(now):
    events = [
        _event("1", "h", now, title="Farmers Market", location="Town Square"),
        _event("2", "h", now, title="Book Club", location="Library"),
        _event("3", "h", now, title="Yoga", location="Riverside market hall"),
    ]

    assert [event.id for event in search_events(events, "MARKET")] == ["1", "3"]
    assert [event.id for event in search_events(events, "  ")] == ["1", "2", "3"]


def test_upcoming_drops_finished_and_cancelled(now):
    events = [
        _event("past", "h", now - timedelta(days=1)),
        _event("running", "h", now - timedelta(hours=1)),
        _event("soon", "h", now + timedelta(days=1)),
        _event("off", "h", now + timedelta(days=2), status=EventStatus.CANCELLED),
    ]

    assert [event.id for event in upcoming(events, now)] == ["running", "soon"]
