"""Auth API — signup, login, token refresh, current user.

Learn: Routes for user authentication:
- POST /auth/signup → create an account (welcome email in the background)
- POST /auth/login → email/password → JWT tokens
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → current user info
"""

import uuid

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.dependencies import CurrentIdentity, get_current_user
from eventhub.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from eventhub.auth.password import hash_password_async, verify_password_async
from eventhub.config import settings
from eventhub.db.engine import get_db
from eventhub.db.models import User
from eventhub.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    UserRead,
)
from eventhub.services.email_service import send_welcome_email

logger = structlog.get_logger()
router = APIRouter(prefix="/auth")


def _issue_tokens(user: User) -> dict:
    return {
        "access_token": create_access_token(str(user.id), user.email, user.role),
        "refresh_token": create_refresh_token(str(user.id)),
    }


# ─── Signup ──────────────────────────────────────────────


@router.post("/signup", response_model=SignupResponse, status_code=201)
async def signup(
    body: SignupRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    """Create a new user account (role defaults to ATTENDEE)."""
    result = await db.execute(select(User).where(User.email == body.email))
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="User with this email already exists")

    user = User(
        email=body.email,
        password_hash=await hash_password_async(body.password),
        role=body.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="User with this email already exists")

    logger.info("auth.signup", user_id=str(user.id), role=user.role)
    background.add_task(send_welcome_email, user.email, user.role)

    return {
        "message": "User created successfully",
        "user": user,
        "email_sent": bool(settings.sendgrid_api_key),
    }


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password → JWT tokens."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalars().first()

    if not user or not await verify_password_async(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {**_issue_tokens(user), "user": user}


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a refresh token for a new token pair.

    Learn: The user is re-read so a role change takes effect at the
    next refresh, and a deleted account can't mint new tokens.
    """
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
        user_id = uuid.UUID(payload["sub"])
    except (TokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return _issue_tokens(user)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current authenticated user's info."""
    user = await db.get(User, uuid.UUID(identity.user_id))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
