"""
Session manager: server-side login sessions keyed by an opaque bearer token.

issue()   -> new random token, stored as its SHA-256 hash with a fixed expiry
resolve() -> the user behind a token, or None if unknown / expired
revoke()  -> delete the session (logout)

A user may hold any number of sessions at once.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.auth import AuthSession
from app.models.users import User


TOKEN_NUM_BYTES = 32


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue(db: Session, user_id: int, now: Optional[datetime] = None) -> IssuedSession:
    """
    Create a session for a user.

    Args:
        db: SQLAlchemy database session
        user_id: Authenticated user
        now: Issue time (current UTC time if None)

    Returns:
        IssuedSession with the plaintext token (only ever returned here)
    """
    now = now or utc_now()
    token = secrets.token_urlsafe(TOKEN_NUM_BYTES)
    expires_at = now + timedelta(seconds=settings.SESSION_TTL_SECONDS)
    db.add(
        AuthSession(
            token_hash=hash_token(token),
            user_id=user_id,
            created_at=now,
            expires_at=expires_at,
        )
    )
    db.flush()
    return IssuedSession(token=token, expires_at=expires_at)


def resolve(db: Session, token: Optional[str], now: Optional[datetime] = None) -> Optional[User]:
    """
    Look up the user behind a session token.

    Expired sessions are deleted when found.

    Returns:
        The User, or None if the token is empty, unknown or expired
    """
    if not token:
        return None

    record = db.query(AuthSession).filter(AuthSession.token_hash == hash_token(token)).first()
    if record is None:
        return None

    now = now or utc_now()
    if as_utc(record.expires_at) <= now:
        db.delete(record)
        db.commit()
        return None

    return db.get(User, record.user_id)


def revoke(db: Session, token: Optional[str]) -> bool:
    """Delete a session. Returns False if there was nothing to delete."""
    if not token:
        return False
    deleted = (
        db.query(AuthSession)
        .filter(AuthSession.token_hash == hash_token(token))
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted > 0


def revoke_all_for_user(db: Session, user_id: int, keep_token: Optional[str] = None) -> int:
    """Delete every session of a user, optionally sparing the current one."""
    query = db.query(AuthSession).filter(AuthSession.user_id == user_id)
    if keep_token:
        query = query.filter(AuthSession.token_hash != hash_token(keep_token))
    deleted = query.delete(synchronize_session=False)
    db.flush()
    return deleted
