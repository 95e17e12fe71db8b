"""Repair pass for denormalized counters and attendee lists."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

from .backend import EntityKind, Record
from .domain import RSVPStatus

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger(__name__)


def _counter_diff(record: Record, expected: dict[str, int]) -> dict[str, int]:
    return {
        field: value
        for field, value in expected.items()
        if int(record.get(field) or 0) != value
    }


def _expected_attendees(current: list[str], accepted: list[str]) -> list[str]:
    """Keep the existing order for valid ids and append the missing ones."""
    wanted = set(accepted)
    kept = [user_id for user_id in dict.fromkeys(current) if user_id in wanted]
    return kept + [user_id for user_id in accepted if user_id not in kept]


async def reconcile(context: AppContext) -> dict[str, Any]:
    """Recompute every counter from its source records and fix any drift."""
    datastore = context.datastore
    ledger = context.ledger
    stats = {
        "users_fixed": 0,
        "events_fixed": 0,
        "attendee_lists_fixed": 0,
        "photos_fixed": 0,
        "comments_fixed": 0,
    }

    users = await datastore.fetch_all(EntityKind.USERS)
    events = await datastore.fetch_all(EntityKind.EVENTS)
    follows = await datastore.fetch_all(EntityKind.FOLLOWS)
    invites = await datastore.fetch_all(EntityKind.INVITES)
    reactions = await datastore.fetch_all(EntityKind.REACTIONS)
    comments = await datastore.fetch_all(EntityKind.COMMENTS)
    photos = await datastore.fetch_all(EntityKind.EVENT_PHOTOS)

    followers = Counter(edge["following_id"] for edge in follows)
    following = Counter(edge["follower_id"] for edge in follows)
    hosted = Counter(event["host_id"] for event in events)
    uploaded = Counter(photo["uploader_id"] for photo in photos)
    likes = {
        field: Counter(r[field] for r in reactions if r.get(field))
        for field in ("event_id", "photo_id", "comment_id")
    }
    comment_totals = {
        field: Counter(c[field] for c in comments if c.get(field))
        for field in ("event_id", "photo_id")
    }

    for user in users:
        diff = _counter_diff(
            user,
            {
                "follower_count": followers[user["id"]],
                "following_count": following[user["id"]],
                "event_count": hosted[user["id"]],
                "photo_count": uploaded[user["id"]],
            },
        )
        if diff:
            logger.warning("Correcting counters for user %s: %s", user["id"], diff)
            await ledger.set(EntityKind.USERS, user["id"], **diff)
            stats["users_fixed"] += 1

    accepted: dict[str, list[str]] = {}
    for invite in sorted(invites, key=lambda item: item["created_at"]):
        if invite["status"] == RSVPStatus.ACCEPTED:
            accepted.setdefault(invite["event_id"], []).append(invite["invitee_id"])

    for event in events:
        diff = _counter_diff(
            event,
            {
                "like_count": likes["event_id"][event["id"]],
                "comment_count": comment_totals["event_id"][event["id"]],
            },
        )
        if diff:
            logger.warning("Correcting counters for event %s: %s", event["id"], diff)
            await ledger.set(EntityKind.EVENTS, event["id"], **diff)
            stats["events_fixed"] += 1

        current = list(event.get("attendee_ids") or [])
        expected = _expected_attendees(current, accepted.get(event["id"], []))
        if current != expected:
            logger.warning(
                "Correcting attendees for event %s: %s -> %s",
                event["id"],
                current,
                expected,
            )
            await datastore.update(
                EntityKind.EVENTS, event["id"], {"attendee_ids": tuple(expected)}
            )
            stats["attendee_lists_fixed"] += 1

    for photo in photos:
        diff = _counter_diff(
            photo,
            {
                "like_count": likes["photo_id"][photo["id"]],
                "comment_count": comment_totals["photo_id"][photo["id"]],
            },
        )
        if diff:
            logger.warning("Correcting counters for photo %s: %s", photo["id"], diff)
            await ledger.set(EntityKind.EVENT_PHOTOS, photo["id"], **diff)
            stats["photos_fixed"] += 1

    for comment in comments:
        diff = _counter_diff(comment, {"like_count": likes["comment_id"][comment["id"]]})
        if diff:
            logger.warning("Correcting counters for comment %s: %s", comment["id"], diff)
            await ledger.set(EntityKind.COMMENTS, comment["id"], **diff)
            stats["comments_fixed"] += 1

    await context.bootstrap()

    logger.info(
        (
            "Reconcile finished: users fixed=%d, events fixed=%d, attendee lists fixed=%d, "
            "photos fixed=%d, comments fixed=%d"
        ),
        stats["users_fixed"],
        stats["events_fixed"],
        stats["attendee_lists_fixed"],
        stats["photos_fixed"],
        stats["comments_fixed"],
    )
    return stats
