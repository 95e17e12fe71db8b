"""Home feed composition over already-fetched snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from .domain import Event, EventStatus
from .utils import contains_text, utcnow

if TYPE_CHECKING:
    from .events import EventAggregator
    from .relationships import RelationshipStore


def _sort_key(event: Event) -> tuple[datetime, str]:
    return (event.start_time, event.id)


def compose_feed(
    user_id: str, events: Iterable[Event], following: set[str]
) -> list[Event]:
    """Public events hosted by ``user_id`` or someone they follow, soonest first.

    Ties on start time are broken by event id. No I/O happens here.
    """
    hosts = set(following) | {user_id}
    visible = [event for event in events if event.is_public and event.host_id in hosts]
    return sorted(visible, key=_sort_key)


def search_events(events: Iterable[Event], query: str) -> list[Event]:
    query = (query or "").strip()
    matches = [
        event
        for event in events
        if not query
        or contains_text(event.title, query)
        or contains_text(event.location, query)
    ]
    return sorted(matches, key=_sort_key)


def upcoming(events: Iterable[Event], now: datetime | None = None) -> list[Event]:
    now = now or utcnow()
    return sorted(
        (
            event
            for event in events
            if event.end_time > now and event.status != EventStatus.CANCELLED
        ),
        key=_sort_key,
    )


class FeedComposer:
    """Reads the follow and event snapshots and hands them to ``compose_feed``."""

    def __init__(
        self,
        relationships: RelationshipStore,
        events: EventAggregator,
        *,
        default_limit: int | None = None,
    ) -> None:
        self._relationships = relationships
        self._events = events
        self._default_limit = default_limit

    def feed_for(self, user_id: str, limit: int | None = None) -> list[Event]:
        feed = compose_feed(
            user_id,
            self._events.events,
            self._relationships.following_set(user_id),
        )
        limit = limit if limit is not None else self._default_limit
        if limit is not None and limit > 0:
            return feed[:limit]
        return feed
