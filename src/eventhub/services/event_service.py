"""Event service — business logic for creating, editing and approving events.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database. Permission and
validation failures are raised as exceptions; the routes translate them
into status codes and trigger the realtime broadcast after a successful
commit.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventhub.auth.dependencies import CurrentIdentity
from eventhub.db.models import ROLE_ADMIN, Event, Rsvp, utcnow


class EventNotFoundError(Exception):
    pass


class EventPermissionError(Exception):
    """Raised when a user touches an event they don't own."""
    pass


class EventValidationError(Exception):
    pass


def as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _with_relations(query):
    return query.options(
        selectinload(Event.organizer),
        selectinload(Event.rsvps).selectinload(Rsvp.user),
    ).execution_options(populate_existing=True)


class EventService:
    """Business logic for events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Queries ────────────────────────────────────────

    async def list_approved(self) -> list[Event]:
        result = await self.db.execute(
            _with_relations(
                select(Event).where(Event.approved.is_(True)).order_by(Event.date)
            )
        )
        return list(result.scalars().all())

    async def list_pending(self) -> list[Event]:
        """Unapproved events, oldest first — the admin approval queue."""
        result = await self.db.execute(
            _with_relations(
                select(Event)
                .where(Event.approved.is_(False))
                .order_by(Event.created_at)
            )
        )
        return list(result.scalars().all())

    async def get_event(self, event_id: uuid.UUID) -> Event | None:
        result = await self.db.execute(
            _with_relations(select(Event).where(Event.id == event_id))
        )
        return result.scalars().first()

    async def get_visible_event(
        self, event_id: uuid.UUID, identity: CurrentIdentity
    ) -> Event:
        """Fetch an event the caller may see.

        Unapproved events exist only for their organizer and admins;
        everyone else gets the same not-found as for a missing id.
        """
        event = await self.get_event(event_id)
        if not event:
            raise EventNotFoundError(str(event_id))
        if not event.approved and not self._can_manage(event, identity):
            raise EventNotFoundError(str(event_id))
        return event

    # ─── Mutations ──────────────────────────────────────

    async def create_event(
        self,
        identity: CurrentIdentity,
        title: str,
        description: str,
        date: datetime,
        location: str,
    ) -> Event:
        """Create an event. Admin-created events skip the approval queue."""
        date = as_utc(date)
        if date < utcnow():
            raise EventValidationError("Event date cannot be in the past")

        event = Event(
            title=title,
            description=description,
            date=date,
            location=location,
            organizer_id=uuid.UUID(identity.user_id),
            approved=identity.has_role(ROLE_ADMIN),
        )
        self.db.add(event)
        await self.db.commit()
        return await self.get_event(event.id)

    async def update_event(
        self,
        event_id: uuid.UUID,
        identity: CurrentIdentity,
        title: str,
        description: str,
        date: datetime,
        location: str,
    ) -> Event:
        event = await self._get_managed(event_id, identity, "update")
        event.title = title
        event.description = description
        event.date = as_utc(date)
        event.location = location
        event.updated_at = utcnow()
        await self.db.commit()
        return await self.get_event(event_id)

    async def delete_event(
        self, event_id: uuid.UUID, identity: CurrentIdentity
    ) -> None:
        """Delete an event together with its RSVPs."""
        event = await self._get_managed(event_id, identity, "delete")
        await self.db.delete(event)
        await self.db.commit()

    async def approve_event(self, event_id: uuid.UUID) -> Event:
        """Mark an event approved. Approving twice is harmless."""
        event = await self.get_event(event_id)
        if not event:
            raise EventNotFoundError(str(event_id))
        event.approved = True
        event.updated_at = utcnow()
        await self.db.commit()
        return await self.get_event(event_id)

    # ─── Helpers ────────────────────────────────────────

    @staticmethod
    def _can_manage(event: Event, identity: CurrentIdentity) -> bool:
        return identity.has_role(ROLE_ADMIN) or str(event.organizer_id) == identity.user_id

    async def _get_managed(
        self, event_id: uuid.UUID, identity: CurrentIdentity, action: str
    ) -> Event:
        event = await self.get_event(event_id)
        if not event:
            raise EventNotFoundError(str(event_id))
        if not self._can_manage(event, identity):
            raise EventPermissionError(f"You can only {action} your own events")
        return event
