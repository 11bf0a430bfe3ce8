"""RSVP service — one answer per user per event.

Learn: The service checks for an existing RSVP before inserting so the
common case gets a clean 409. The unique constraint on (user_id,
event_id) still backs it up when two requests race; that IntegrityError
is reported as the same conflict.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventhub.db.models import Event, Rsvp, utcnow


class RsvpNotFoundError(Exception):
    pass


class RsvpConflictError(Exception):
    pass


class RsvpEventNotFoundError(Exception):
    pass


class EventNotApprovedError(Exception):
    pass


class RsvpService:
    """Business logic for RSVPs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rsvp(self, event_id: uuid.UUID, user_id: uuid.UUID) -> Rsvp | None:
        result = await self.db.execute(
            select(Rsvp)
            .where(Rsvp.event_id == event_id, Rsvp.user_id == user_id)
            .options(selectinload(Rsvp.user), selectinload(Rsvp.event))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def create_rsvp(
        self, event_id: uuid.UUID, user_id: uuid.UUID, status: str
    ) -> Rsvp:
        event = await self.db.get(Event, event_id)
        if not event:
            raise RsvpEventNotFoundError(str(event_id))
        if not event.approved:
            raise EventNotApprovedError("Cannot RSVP to unapproved events")

        if await self.get_rsvp(event_id, user_id):
            raise RsvpConflictError("RSVP already exists for this event")

        self.db.add(Rsvp(user_id=user_id, event_id=event_id, status=status))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise RsvpConflictError("RSVP already exists for this event")
        return await self.get_rsvp(event_id, user_id)

    async def update_rsvp(
        self, event_id: uuid.UUID, user_id: uuid.UUID, status: str
    ) -> Rsvp:
        rsvp = await self.get_rsvp(event_id, user_id)
        if not rsvp:
            raise RsvpNotFoundError("RSVP not found")
        rsvp.status = status
        rsvp.updated_at = utcnow()
        await self.db.commit()
        return await self.get_rsvp(event_id, user_id)

    async def delete_rsvp(self, event_id: uuid.UUID, user_id: uuid.UUID) -> None:
        rsvp = await self.get_rsvp(event_id, user_id)
        if not rsvp:
            raise RsvpNotFoundError("RSVP not found")
        await self.db.delete(rsvp)
        await self.db.commit()
