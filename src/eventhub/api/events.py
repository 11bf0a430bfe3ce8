"""Event API routes.

Learn: Each mutating route follows the same three steps:
1. Delegate to EventService (which commits)
2. Serialize the result once with EventRead
3. Publish the change to realtime clients and return the same dict

The broadcast is fire-and-forget — the response never waits on
websocket delivery. Organizer emails go out as background tasks.
"""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.dependencies import CurrentIdentity, get_current_user, require_roles
from eventhub.db.engine import get_db
from eventhub.db.models import ROLE_ADMIN, ROLE_ORGANIZER, Event
from eventhub.realtime.broadcaster import Broadcaster, get_broadcaster
from eventhub.schemas.event import (
    EventEnvelope,
    EventList,
    EventRead,
    EventWrite,
    MessageResponse,
)
from eventhub.services.email_service import send_event_notification_email
from eventhub.services.event_service import (
    EventNotFoundError,
    EventPermissionError,
    EventService,
    EventValidationError,
)

router = APIRouter(prefix="/events")


def _svc(db: AsyncSession = Depends(get_db)) -> EventService:
    return EventService(db)


def _serialize(event: Event) -> dict:
    return EventRead.model_validate(event).model_dump(mode="json")


# ─── Queries ────────────────────────────────────────────

@router.get("", response_model=EventList)
async def list_events(
    _: CurrentIdentity = Depends(get_current_user),
    svc: EventService = Depends(_svc),
):
    """Approved events, soonest first, with organizer and RSVPs."""
    return {"events": await svc.list_approved()}


@router.get("/pending", response_model=EventList)
async def list_pending_events(
    _: CurrentIdentity = Depends(require_roles(ROLE_ADMIN)),
    svc: EventService = Depends(_svc),
):
    """Events waiting for admin approval."""
    return {"events": await svc.list_pending()}


@router.get("/{event_id}", response_model=EventEnvelope)
async def get_event(
    event_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: EventService = Depends(_svc),
):
    try:
        event = await svc.get_visible_event(event_id, identity)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    return {"event": event}


# ─── Mutations ──────────────────────────────────────────

@router.post("", response_model=EventEnvelope, status_code=201)
async def create_event(
    body: EventWrite,
    background: BackgroundTasks,
    identity: CurrentIdentity = Depends(require_roles(ROLE_ORGANIZER, ROLE_ADMIN)),
    svc: EventService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Create an event (ORGANIZER or ADMIN). Admin events are pre-approved."""
    try:
        event = await svc.create_event(
            identity,
            title=body.title,
            description=body.description,
            date=body.date,
            location=body.location,
        )
    except EventValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = _serialize(event)
    broadcaster.event_created(payload)
    background.add_task(
        send_event_notification_email, identity.email, event.title, "created successfully"
    )
    return {"event": payload}


@router.put("/{event_id}", response_model=EventEnvelope)
async def update_event(
    event_id: uuid.UUID,
    body: EventWrite,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: EventService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Replace an event's details (its organizer or an ADMIN)."""
    try:
        event = await svc.update_event(
            event_id,
            identity,
            title=body.title,
            description=body.description,
            date=body.date,
            location=body.location,
        )
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    except EventPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))

    payload = _serialize(event)
    broadcaster.event_updated(payload)
    return {"event": payload}


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: EventService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Delete an event and its RSVPs (its organizer or an ADMIN)."""
    try:
        await svc.delete_event(event_id, identity)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    except EventPermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))

    broadcaster.event_deleted(str(event_id))
    return {"message": "Event deleted successfully"}


@router.put("/{event_id}/approve", response_model=EventEnvelope)
async def approve_event(
    event_id: uuid.UUID,
    background: BackgroundTasks,
    _: CurrentIdentity = Depends(require_roles(ROLE_ADMIN)),
    svc: EventService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """Approve an event (ADMIN only) and tell its organizer."""
    try:
        event = await svc.approve_event(event_id)
    except EventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")

    payload = _serialize(event)
    broadcaster.event_approved(payload)
    background.add_task(
        send_event_notification_email, event.organizer.email, event.title, "approved"
    )
    return {"event": payload}
