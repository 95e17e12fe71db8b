"""Development helpers for populating demo and fake community data."""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from faker import Faker

from .context import AppContext
from .domain import Event, EventCategory, EventVisibility, ReactionType, RSVPStatus, Target
from .errors import EventFullError, ValidationError
from .permissions import UserRole
from .utils import utcnow

_event_types = [
    "Cleanup",
    "Potluck",
    "Meetup",
    "Workshop",
    "Pickup Game",
    "Open Mic",
    "Market",
    "Story Time",
]
_rsvp_statuses = [
    RSVPStatus.ACCEPTED,
    RSVPStatus.ACCEPTED,
    RSVPStatus.ACCEPTED,
    RSVPStatus.MAYBE,
    RSVPStatus.DECLINED,
    RSVPStatus.INVITED,
]
_roles = [
    UserRole.RESIDENT,
    UserRole.RESIDENT,
    UserRole.RESIDENT,
    UserRole.BUSINESS_OWNER,
    UserRole.EVENT_ORGANIZER,
    UserRole.COMMUNITY_LEADER,
]


async def seed_demo_data(context: AppContext, *, now: datetime | None = None) -> dict[str, int]:
    """Create the three demo neighbors with a follow, two events and an invite."""
    now = now or utcnow()
    jay = await context.users.create_user(
        handle="jay",
        display_name="Jay Patel",
        bio="Explorer of local events",
        interests=["Hiking", "Music", "Tech"],
    )
    sam = await context.users.create_user(
        handle="sam",
        display_name="Sam Lee",
        bio="Foodie & gamer",
        interests=["Food", "Games"],
    )
    mia = await context.users.create_user(
        handle="mia",
        display_name="Mia Chen",
        bio="Art & culture fan",
        interests=["Art", "Culture"],
    )
    await context.relationships.follow(jay.id, sam.id)

    hike = await context.events.create_event(
        sam.id,
        title="Saturday Hike",
        description="Morning hike up Pine Trail.",
        location="Pine Trailhead",
        start_time=now + timedelta(hours=24),
        end_time=now + timedelta(hours=26),
        category=EventCategory.SPORTS,
    )
    await context.events.rsvp(hike.id, jay.id, RSVPStatus.ACCEPTED)

    game_night = await context.events.create_event(
        mia.id,
        title="Board Game Night",
        description="Bring your favorite games!",
        location="Community Center Room B",
        start_time=now + timedelta(hours=72),
        end_time=now + timedelta(hours=76),
        category=EventCategory.SOCIAL,
    )
    await context.events.send_invite(game_night.id, mia.id, jay.id)

    return {"users": 3, "follows": 1, "events": 2, "rsvps": 1, "invites": 1}


async def seed_fake_data(
    context: AppContext,
    *,
    user_count: int = 12,
    events_per_user: int = 2,
    follows_per_user: int = 4,
    rsvps_per_event: int = 5,
    private_percentage: int = 10,
    seed: int | None = None,
) -> dict[str, int]:
    """Populate the data store with synthetic neighbors, events and activity."""
    if user_count < 0:
        raise ValueError("user_count must be >= 0")
    if events_per_user < 0:
        raise ValueError("events_per_user must be >= 0")
    if follows_per_user < 0:
        raise ValueError("follows_per_user must be >= 0")
    if rsvps_per_event < 0:
        raise ValueError("rsvps_per_event must be >= 0")
    if not 0 <= private_percentage <= 100:
        raise ValueError("private_percentage must be between 0 and 100")

    rng = random.Random(seed)
    fake = Faker()
    if seed is not None:
        fake.seed_instance(seed)
    stats = {"users": 0, "follows": 0, "events": 0, "rsvps": 0, "comments": 0, "reactions": 0}

    user_ids: list[str] = []
    for _ in range(user_count):
        user_ids.append(await _create_user(context, fake, rng))
        stats["users"] += 1

    for user_id in user_ids:
        others = [other for other in user_ids if other != user_id]
        for target_id in rng.sample(others, min(follows_per_user, len(others))):
            await context.relationships.follow(user_id, target_id)
            stats["follows"] += 1

    for host_id in user_ids:
        for _ in range(rng.randint(0, events_per_user)):
            event = await _create_event(context, fake, rng, host_id, private_percentage)
            stats["events"] += 1
            rsvps, comments, reactions = await _add_activity(
                context, fake, rng, event, user_ids, rsvps_per_event
            )
            stats["rsvps"] += rsvps
            stats["comments"] += comments
            stats["reactions"] += reactions

    return stats


async def _create_user(context: AppContext, fake: Faker, rng: random.Random) -> str:
    for _ in range(20):
        try:
            user = await context.users.create_user(
                handle=fake.user_name(),
                display_name=fake.name(),
                role=rng.choice(_roles),
                bio=fake.sentence(),
                interests=[word.title() for word in fake.words(nb=3)],
                email=fake.email(),
                city=fake.city(),
                state=fake.state_abbr(),
            )
        except ValidationError:
            continue
        return user.id
    raise RuntimeError("Failed to create a unique handle")


async def _create_event(
    context: AppContext,
    fake: Faker,
    rng: random.Random,
    host_id: str,
    private_percentage: int,
) -> Event:
    start_time = utcnow() + timedelta(
        days=rng.randint(1, 30), minutes=rng.randint(0, 23 * 60)
    )
    is_private = rng.randint(1, 100) <= private_percentage
    return await context.events.create_event(
        host_id,
        title=f"{fake.city()} {rng.choice(_event_types)}",
        description="\n\n".join(fake.paragraphs(nb=2)),
        location=fake.address().replace("\n", ", "),
        start_time=start_time,
        end_time=start_time + timedelta(hours=rng.randint(1, 6)),
        category=rng.choice(list(EventCategory)),
        visibility=EventVisibility.PRIVATE if is_private else EventVisibility.PUBLIC,
        capacity=rng.choice([None, None, None, rng.randint(3, 20)]),
        tags=fake.words(nb=rng.randint(0, 3)),
    )


async def _add_activity(
    context: AppContext,
    fake: Faker,
    rng: random.Random,
    event: Event,
    user_ids: list[str],
    rsvps_per_event: int,
) -> tuple[int, int, int]:
    guests = [user_id for user_id in user_ids if user_id != event.host_id]
    rsvps = comments = reactions = 0
    for guest_id in rng.sample(guests, min(rng.randint(0, rsvps_per_event), len(guests))):
        try:
            await context.events.rsvp(event.id, guest_id, rng.choice(_rsvp_statuses))
        except EventFullError:
            continue
        rsvps += 1
        target = Target.event(event.id)
        if rng.random() < 0.3:
            await context.engagement.add_comment(target, guest_id, fake.sentence())
            comments += 1
        if rng.random() < 0.5:
            await context.engagement.toggle_reaction(
                guest_id, target, rng.choice(list(ReactionType))
            )
            reactions += 1
    return rsvps, comments, reactions
