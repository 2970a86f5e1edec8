"""
JWT Token Utilities

This module handles the opaque reference handed out between the two login steps.
When a password check succeeds for a user with 2FA enabled, no session is issued.
Instead the caller gets a short-lived signed token naming the user, and must send
it back together with the TOTP code.

Flow:
1. /api/login succeeds on password, 2FA enabled -> create_pending_2fa_token()
2. Client posts the token and a TOTP code to /api/verify-2fa -> resolve_pending_2fa_token()
3. On a valid code the auth flow issues a real session (app/services/sessions.py)

The JWT contains:
- sub: The user id awaiting the second factor
- purpose: Always "2fa", so no other token type can be replayed here
- iat: Issued at timestamp
- exp: Expiration timestamp (configurable via PENDING_2FA_EXPIRE_SECONDS)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings


PENDING_2FA_PURPOSE = "2fa"

if not settings.ENCODE_KEY:
    raise RuntimeError("ENCODE_KEY is not configured")


def create_pending_2fa_token(user_id: int, now: Optional[datetime] = None) -> str:
    """
    Create the reference for a login that is waiting on its second factor.

    Args:
        user_id: Id of the user whose password was verified
        now: Issue time (current UTC time if None)

    Returns:
        A signed JWT string

    Raises:
        ValueError: If user_id is empty
    """
    if not user_id:
        raise ValueError("user_id is required")

    now = now or datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "purpose": PENDING_2FA_PURPOSE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.PENDING_2FA_EXPIRE_SECONDS)).timestamp()),
    }
    return jwt.encode(payload, settings.ENCODE_KEY, algorithm=settings.ENCODE_ALGORITHM)


def resolve_pending_2fa_token(token: str) -> Optional[int]:
    """
    Verify a pending 2FA reference and return the user id it names.

    Checks token signature, expiration, purpose and the subject format.

    Args:
        token: The reference returned by /api/login

    Returns:
        The user id, or None if the token is missing, expired, tampered
        or not a 2FA reference
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, settings.ENCODE_KEY, algorithms=[settings.ENCODE_ALGORITHM])
    except jwt.InvalidTokenError:
        return None

    if payload.get("purpose") != PENDING_2FA_PURPOSE:
        return None

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
