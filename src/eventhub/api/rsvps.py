"""RSVP API routes — nested under /events/{event_id}/rsvp.

Learn: A user has at most one RSVP per event, so the RSVP is addressed
by the event id plus the caller's identity; no RSVP id in the URL.
Creating and updating broadcast; removing an RSVP does not.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.dependencies import CurrentIdentity, get_current_user
from eventhub.db.engine import get_db
from eventhub.realtime.broadcaster import Broadcaster, get_broadcaster
from eventhub.schemas.event import MessageResponse, RsvpEnvelope, RsvpRead, RsvpWrite
from eventhub.services.rsvp_service import (
    EventNotApprovedError,
    RsvpConflictError,
    RsvpEventNotFoundError,
    RsvpNotFoundError,
    RsvpService,
)

router = APIRouter(prefix="/events/{event_id}/rsvp")


def _svc(db: AsyncSession = Depends(get_db)) -> RsvpService:
    return RsvpService(db)


@router.post("", response_model=RsvpEnvelope, status_code=201)
async def create_rsvp(
    event_id: uuid.UUID,
    body: RsvpWrite,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: RsvpService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        rsvp = await svc.create_rsvp(event_id, uuid.UUID(identity.user_id), body.status)
    except RsvpEventNotFoundError:
        raise HTTPException(status_code=404, detail="Event not found")
    except EventNotApprovedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RsvpConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    payload = RsvpRead.model_validate(rsvp).model_dump(mode="json")
    broadcaster.rsvp_created(payload)
    return {"rsvp": payload}


@router.put("", response_model=RsvpEnvelope)
async def update_rsvp(
    event_id: uuid.UUID,
    body: RsvpWrite,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: RsvpService = Depends(_svc),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    try:
        rsvp = await svc.update_rsvp(event_id, uuid.UUID(identity.user_id), body.status)
    except RsvpNotFoundError:
        raise HTTPException(status_code=404, detail="RSVP not found")

    payload = RsvpRead.model_validate(rsvp).model_dump(mode="json")
    broadcaster.rsvp_updated(payload)
    return {"rsvp": payload}


@router.delete("", response_model=MessageResponse)
async def delete_rsvp(
    event_id: uuid.UUID,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: RsvpService = Depends(_svc),
):
    try:
        await svc.delete_rsvp(event_id, uuid.UUID(identity.user_id))
    except RsvpNotFoundError:
        raise HTTPException(status_code=404, detail="RSVP not found")
    return {"message": "RSVP removed successfully"}
