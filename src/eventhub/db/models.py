"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Relationships, constraints, and indexes defined here.
Alembic auto-generates migrations by comparing these models to the actual DB.

Key concepts:
- UUID primary keys via the portable Uuid type (native on PostgreSQL,
  CHAR(32) on SQLite)
- Python-side timestamp defaults, so freshly flushed rows never need a
  refresh round-trip before serialization
- The one-RSVP-per-user-per-event rule lives in a unique constraint
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ─── Enumerations (stored as plain strings) ──────────────

ROLE_ADMIN = "ADMIN"
ROLE_ORGANIZER = "ORGANIZER"
ROLE_ATTENDEE = "ATTENDEE"
USER_ROLES = (ROLE_ADMIN, ROLE_ORGANIZER, ROLE_ATTENDEE)

RSVP_GOING = "GOING"
RSVP_MAYBE = "MAYBE"
RSVP_NOT_GOING = "NOT_GOING"
RSVP_STATUSES = (RSVP_GOING, RSVP_MAYBE, RSVP_NOT_GOING)


class User(Base):
    """A person who can log in. The role decides what they may do.

    Learn: ATTENDEEs browse and RSVP, ORGANIZERs also create events
    (which wait for approval), ADMINs approve and manage everything.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ROLE_ATTENDEE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    # Relationships
    events: Mapped[list["Event"]] = relationship(back_populates="organizer")
    rsvps: Mapped[list["Rsvp"]] = relationship(back_populates="user")


class Event(Base):
    """Something happening at a place and time.

    Learn: Events created by organizers start unapproved and are hidden
    from the public listing until an admin approves them. Admin-created
    events are approved on creation.
    """

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_approved_date", "approved", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    organizer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    organizer: Mapped["User"] = relationship(back_populates="events")
    rsvps: Mapped[list["Rsvp"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Rsvp(Base):
    """A user's answer to an event invitation.

    Learn: At most one RSVP per (user, event). The unique constraint
    enforces it even if two requests race past the service-level check.
    """

    __tablename__ = "rsvps"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_rsvps_user_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="rsvps")
    event: Mapped["Event"] = relationship(back_populates="rsvps")
