"""Pydantic schemas for events and RSVPs.

Learn: The Read schemas double as the realtime payload. A route
serializes the ORM object once with model_dump(mode="json") and uses the
same dict for the HTTP response body and the broadcast, so clients see
one shape everywhere.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

RsvpStatus = Literal["GOING", "MAYBE", "NOT_GOING"]


# ─── Nested summaries ───────────────────────────────────

class UserSummary(BaseModel):
    id: uuid.UUID
    email: str

    model_config = {"from_attributes": True}


class EventSummary(BaseModel):
    id: uuid.UUID
    title: str
    date: datetime
    location: str

    model_config = {"from_attributes": True}


# ─── RSVPs ──────────────────────────────────────────────

class RsvpWrite(BaseModel):
    status: RsvpStatus


class RsvpInEvent(BaseModel):
    """An RSVP as listed under its event."""
    id: uuid.UUID
    user_id: uuid.UUID
    event_id: uuid.UUID
    status: str
    created_at: datetime
    updated_at: datetime
    user: UserSummary

    model_config = {"from_attributes": True}


class RsvpRead(RsvpInEvent):
    event: EventSummary


# ─── Events ─────────────────────────────────────────────

class EventWrite(BaseModel):
    """Body for both create (POST) and full update (PUT)."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    date: datetime
    location: str = Field(..., min_length=1, max_length=255)


class EventRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    date: datetime
    location: str
    organizer_id: uuid.UUID
    approved: bool
    created_at: datetime
    updated_at: datetime
    organizer: UserSummary
    rsvps: list[RsvpInEvent] = []

    model_config = {"from_attributes": True}


# ─── Envelopes ──────────────────────────────────────────

class EventEnvelope(BaseModel):
    event: EventRead


class EventList(BaseModel):
    events: list[EventRead]


class RsvpEnvelope(BaseModel):
    rsvp: RsvpRead


class MessageResponse(BaseModel):
    message: str
