"""Events and RSVPs.

``EventAggregator`` owns the dual write at the heart of the RSVP flow: the
single ``Invite`` record per (event, invitee) and the event's
``attendee_ids`` list. Membership in ``attendee_ids`` always equals the set of
invitees whose invite status is ``accepted``. The host is recorded as an
accepted invitee when the event is created.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Iterable

from .backend import DataStore, EntityKind
from .counters import CounterLedger
from .domain import (
    Event,
    EventCategory,
    EventStatus,
    EventVisibility,
    Invite,
    RSVPStatus,
    build_entity,
)
from .engagement import purge_event_engagement
from .errors import BackendError, EventFullError, NotFoundError, ValidationError
from .permissions import Permission, require_manage, require_permission
from .profiles import UserDirectory
from .utils import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

EVENT_FIELDS = frozenset(
    {
        "title",
        "description",
        "location",
        "start_time",
        "end_time",
        "category",
        "status",
        "visibility",
        "capacity",
        "tags",
    }
)


def _parse_status(status: RSVPStatus | str) -> RSVPStatus:
    try:
        return RSVPStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown RSVP status {status!r}") from exc


def _event_sort_key(event: Event) -> tuple[datetime, str]:
    return (event.start_time, event.id)


def _check_event(event: Event) -> None:
    if not event.title.strip():
        raise ValidationError("Event title is required")
    if not event.location.strip():
        raise ValidationError("Event location is required")
    if event.start_time >= event.end_time:
        raise ValidationError("Event must end after it starts")
    if event.capacity is not None and event.capacity < 1:
        raise ValidationError("Capacity must be at least 1")


class EventAggregator:
    """Serializes event and RSVP mutations; reads come from snapshots."""

    def __init__(
        self,
        datastore: DataStore,
        ledger: CounterLedger,
        directory: UserDirectory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._datastore = datastore
        self._ledger = ledger
        self._directory = directory
        self._clock = clock
        self._lock = asyncio.Lock()
        self._events: dict[str, Event] = {}
        self._invites: list[Invite] = []

    # Snapshots -------------------------------------------------------------

    async def refresh(self) -> list[Event]:
        event_records = await self._datastore.fetch_all(EntityKind.EVENTS)
        invite_records = await self._datastore.fetch_all(EntityKind.INVITES)
        self._events = {
            record["id"]: Event.from_record(record) for record in event_records
        }
        self._invites = [Invite.from_record(record) for record in invite_records]
        return self.events

    @property
    def events(self) -> list[Event]:
        return sorted(self._events.values(), key=_event_sort_key)

    @property
    def invites(self) -> list[Invite]:
        return list(self._invites)

    def get_event(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFoundError(EntityKind.EVENTS.value, event_id)
        return event

    async def fetch_event(self, event_id: str) -> Event:
        event = Event.from_record(
            await self._datastore.fetch_by_id(EntityKind.EVENTS, event_id)
        )
        self._events[event.id] = event
        return event

    def _event_invites(self, event_id: str) -> Iterable[Invite]:
        return (invite for invite in self._invites if invite.event_id == event_id)

    def status_counts(self, event_id: str) -> dict[RSVPStatus, int]:
        counts = Counter(invite.status for invite in self._event_invites(event_id))
        return {status: counts.get(status, 0) for status in RSVPStatus}

    def attendee_count(self, event_id: str) -> int:
        return self.status_counts(event_id)[RSVPStatus.ACCEPTED]

    def declined_count(self, event_id: str) -> int:
        return self.status_counts(event_id)[RSVPStatus.DECLINED]

    def maybe_count(self, event_id: str) -> int:
        return self.status_counts(event_id)[RSVPStatus.MAYBE]

    def attendees(self, event_id: str) -> list[str]:
        return list(self.get_event(event_id).attendee_ids)

    def current_status(self, event_id: str, user_id: str) -> RSVPStatus:
        """Return the user's RSVP status; users without a record are ``invited``."""
        for invite in self._event_invites(event_id):
            if invite.invitee_id == user_id:
                return invite.status
        return RSVPStatus.INVITED

    def invites_for(
        self, user_id: str, status: RSVPStatus | None = None
    ) -> list[Invite]:
        """Invitations other users sent to ``user_id``, oldest first."""
        found = [
            invite
            for invite in self._invites
            if invite.invitee_id == user_id
            and invite.inviter_id != user_id
            and (status is None or invite.status == status)
        ]
        return sorted(found, key=lambda invite: invite.created_at)

    def hosted_by(self, user_id: str) -> list[Event]:
        return [event for event in self.events if event.host_id == user_id]

    # Mutations -------------------------------------------------------------

    async def create_event(
        self,
        host_id: str,
        *,
        title: str,
        location: str,
        start_time: datetime,
        end_time: datetime,
        description: str = "",
        category: EventCategory | str = EventCategory.COMMUNITY,
        visibility: EventVisibility | str = EventVisibility.PUBLIC,
        capacity: int | None = None,
        tags: Iterable[str] = (),
    ) -> Event:
        """Create an event with the host as its first attendee."""
        if start_time is None or end_time is None:
            raise ValidationError("Event start and end times are required")
        event = build_entity(
            Event,
            title=(title or "").strip(),
            description=description or "",
            location=(location or "").strip(),
            start_time=to_naive_utc(start_time),
            end_time=to_naive_utc(end_time),
            host_id=host_id,
            attendee_ids=(host_id,),
            category=category,
            visibility=visibility,
            capacity=capacity,
            tags=tuple(tags),
        )
        _check_event(event)

        async with self._lock:
            host = await self._directory.get_user(host_id)
            require_permission(host, Permission.CREATE_EVENTS)
            record = await self._datastore.insert(EntityKind.EVENTS, event.to_record())
            saved = Event.from_record(record)
            host_invite = Invite(
                event_id=saved.id,
                inviter_id=host_id,
                invitee_id=host_id,
                status=RSVPStatus.ACCEPTED,
            )
            try:
                await self._datastore.insert(EntityKind.INVITES, host_invite.to_record())
            except BackendError as exc:
                logger.error(
                    "Event %s stored but the host RSVP was not; attendees diverged: %s",
                    saved.id,
                    exc,
                )
                raise BackendError(
                    f"Event {saved.id} was created without its host RSVP"
                ) from exc
            await self._ledger.adjust(EntityKind.USERS, host_id, event_count=1)
            await self.refresh()

        await self._directory.get_user(host_id)
        logger.info("User %s created event %s (%s)", host_id, saved.id, saved.title)
        return saved

    async def _invite_records(self, event_id: str, user_id: str) -> list[Invite]:
        records = await self._datastore.filtered_query(
            EntityKind.INVITES, event_id=event_id, invitee_id=user_id
        )
        invites = sorted(
            (Invite.from_record(record) for record in records),
            key=lambda invite: invite.created_at,
        )
        if len(invites) > 1:
            logger.warning(
                "Found %d RSVP records for user %s on event %s; keeping the oldest",
                len(invites),
                user_id,
                event_id,
            )
            for duplicate in invites[1:]:
                await self._datastore.delete(EntityKind.INVITES, duplicate.id)
        return invites[:1]

    async def _sync_attendees(self, event: Event, user_id: str, *, attending: bool) -> Event:
        attendee_ids = list(event.attendee_ids)
        if attending and user_id not in attendee_ids:
            attendee_ids.append(user_id)
        elif not attending and user_id in attendee_ids:
            attendee_ids = [item for item in attendee_ids if item != user_id]
        else:
            return event
        try:
            record = await self._datastore.update(
                EntityKind.EVENTS,
                event.id,
                {"attendee_ids": tuple(attendee_ids), "updated_at": self._clock()},
            )
        except (BackendError, NotFoundError) as exc:
            logger.error(
                "RSVP for user %s on event %s saved but the attendee list was not; "
                "attendees may have diverged: %s",
                user_id,
                event.id,
                exc,
            )
            raise BackendError(
                f"Could not update attendees for event {event.id}"
            ) from exc
        return Event.from_record(record)

    async def rsvp(
        self, event_id: str, user_id: str, status: RSVPStatus | str
    ) -> Invite:
        """Record the user's response and keep the attendee list in step.

        Calling again with the same status changes nothing.
        """
        new_status = _parse_status(status)

        async with self._lock:
            event = await self.fetch_event(event_id)
            await self._directory.get_user(user_id)
            if event.status == EventStatus.CANCELLED:
                raise ValidationError("This event has been cancelled")
            if event.has_ended(self._clock()):
                raise ValidationError("This event has already ended")
            if (
                new_status == RSVPStatus.ACCEPTED
                and user_id not in event.attendee_ids
                and event.is_full
            ):
                raise EventFullError(event.id)

            existing = await self._invite_records(event.id, user_id)
            if existing:
                invite = existing[0]
                if invite.status != new_status:
                    record = await self._datastore.update(
                        EntityKind.INVITES,
                        invite.id,
                        {"status": new_status, "updated_at": self._clock()},
                    )
                    invite = Invite.from_record(record)
            else:
                created = Invite(
                    event_id=event.id,
                    inviter_id=event.host_id,
                    invitee_id=user_id,
                    status=new_status,
                )
                record = await self._datastore.insert(
                    EntityKind.INVITES, created.to_record()
                )
                invite = Invite.from_record(record)

            await self._sync_attendees(
                event, user_id, attending=new_status == RSVPStatus.ACCEPTED
            )
            await self.refresh()

        logger.info("User %s RSVP'd %s to event %s", user_id, new_status, event_id)
        return invite

    async def send_invite(
        self,
        event_id: str,
        inviter_id: str,
        invitee_id: str,
        message: str | None = None,
    ) -> Invite:
        """Invite a user; an existing record for the invitee is returned unchanged."""
        if inviter_id == invitee_id:
            raise ValidationError("Users cannot invite themselves")

        async with self._lock:
            event = await self.fetch_event(event_id)
            await self._directory.get_user(inviter_id)
            await self._directory.get_user(invitee_id)
            if event.status == EventStatus.CANCELLED:
                raise ValidationError("This event has been cancelled")
            if event.has_ended(self._clock()):
                raise ValidationError("This event has already ended")

            existing = await self._invite_records(event.id, invitee_id)
            if existing:
                return existing[0]
            invite = Invite(
                event_id=event.id,
                inviter_id=inviter_id,
                invitee_id=invitee_id,
                message=(message or "").strip() or None,
            )
            record = await self._datastore.insert(EntityKind.INVITES, invite.to_record())
            await self.refresh()

        logger.info("User %s invited %s to event %s", inviter_id, invitee_id, event_id)
        return Invite.from_record(record)

    async def update_event(self, actor_id: str, event_id: str, **changes: Any) -> Event:
        unknown = set(changes) - EVENT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit event fields: {sorted(unknown)}")
        for key in ("title", "location"):
            if key in changes:
                changes[key] = (changes[key] or "").strip()
        for key in ("start_time", "end_time"):
            if key in changes:
                if changes[key] is None:
                    raise ValidationError("Event start and end times are required")
                changes[key] = to_naive_utc(changes[key])
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"] or ())

        async with self._lock:
            actor = await self._directory.get_user(actor_id)
            current = await self.fetch_event(event_id)
            require_manage(
                actor,
                current.host_id,
                own=Permission.EDIT_OWN_EVENTS,
                any_=Permission.EDIT_ALL_EVENTS,
            )
            candidate = build_entity(Event, **{**current.to_record(), **changes})
            _check_event(candidate)
            if candidate.capacity is not None and candidate.capacity < len(
                candidate.attendee_ids
            ):
                raise ValidationError(
                    "Capacity cannot be lower than the number of attendees"
                )
            partial = {key: getattr(candidate, key) for key in changes}
            partial["updated_at"] = self._clock()
            record = await self._datastore.update(EntityKind.EVENTS, event_id, partial)
            await self.refresh()

        logger.info(
            "User %s updated event %s (%s)", actor_id, event_id, ", ".join(sorted(changes))
        )
        return Event.from_record(record)

    async def cancel_event(self, actor_id: str, event_id: str) -> Event:
        return await self.update_event(actor_id, event_id, status=EventStatus.CANCELLED)

    async def delete_event(self, actor_id: str, event_id: str) -> None:
        """Remove an event with its RSVP records, photos, comments and reactions."""
        async with self._lock:
            actor = await self._directory.get_user(actor_id)
            event = await self.fetch_event(event_id)
            require_manage(
                actor,
                event.host_id,
                own=Permission.DELETE_OWN_EVENTS,
                any_=Permission.DELETE_ALL_EVENTS,
            )
            photos = await purge_event_engagement(self._datastore, self._ledger, event_id)
            invites = await self._datastore.filtered_query(
                EntityKind.INVITES, event_id=event_id
            )
            for record in invites:
                await self._datastore.delete(EntityKind.INVITES, record["id"])
            await self._datastore.delete(EntityKind.EVENTS, event_id)
            await self._ledger.adjust(EntityKind.USERS, event.host_id, event_count=-1)
            await self.refresh()

        for user_id in {event.host_id, *(photo.uploader_id for photo in photos)}:
            await self._directory.get_user(user_id)
        logger.info(
            "User %s deleted event %s with %d RSVP records and %d photos",
            actor_id,
            event_id,
            len(invites),
            len(photos),
        )
