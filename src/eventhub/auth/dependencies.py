"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the Authorization header.

The identity is built straight from the access token claims — no
database lookup per request. Role checks are composed with
require_roles(), which returns a dependency.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from eventhub.auth.jwt import TokenError, verify_token


class CurrentIdentity:
    """Represents the authenticated user making the request."""

    def __init__(self, user_id: str, email: str, role: str):
        self.user_id = user_id
        self.email = email
        self.role = role

    def has_role(self, *roles: str) -> bool:
        return self.role in roles

    @classmethod
    def from_claims(cls, claims: dict) -> "CurrentIdentity":
        return cls(
            user_id=claims["sub"],
            email=claims.get("email", ""),
            role=claims.get("role", ""),
        )


def authenticate_token(token: str) -> CurrentIdentity:
    """Turn an access token into an identity. Raises TokenError."""
    claims = verify_token(token, expected_type="access")
    if "sub" not in claims:
        raise TokenError("Token has no subject")
    return CurrentIdentity.from_claims(claims)


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Extract current identity (optional — returns None if no auth).

    Learn: This is the "soft" auth dependency. A malformed or expired
    token is still a 401: a client that sends credentials expects them
    to be honoured, not silently ignored.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    try:
        return authenticate_token(authorization[7:])
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_roles(*roles: str):
    """Build a dependency that only lets the given roles through (403 otherwise)."""

    async def _check(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if not identity.has_role(*roles):
            raise HTTPException(
                status_code=403,
                detail=f"Requires role: {' or '.join(roles)}",
            )
        return identity

    return _check
