"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12) takes ~100ms per hash on modern hardware,
so hashing runs in a worker thread to keep the event loop responsive.
"""

import asyncio

import bcrypt

BCRYPT_ROUNDS = 12
_MAX_BYTES = 72  # bcrypt ignores everything past 72 bytes


def hash_password(password: str) -> str:
    """Hash a password with bcrypt. Produces a "$2b$..." string."""
    pw_bytes = password.encode("utf-8")[:_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash. Malformed hashes never match."""
    try:
        pw_bytes = password.encode("utf-8")[:_MAX_BYTES]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


async def hash_password_async(password: str) -> str:
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, password, password_hash)
