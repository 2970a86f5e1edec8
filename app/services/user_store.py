"""
Credential store: user lookups and writes.

All lookups on username, email and wallet address are case-insensitive,
matching the lower() unique indexes on the users table. Writes flush but do
not commit; the calling flow owns the transaction.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.users import AUTH_TYPE_CREDENTIAL, ROLE_USER, User


UPDATABLE_FIELDS = {
    "username",
    "email",
    "first_name",
    "last_name",
    "password_hash",
    "wallet_address",
    "auth_type",
    "role",
    "is_premium",
    "language",
    "is_2fa_enabled",
    "two_factor_secret",
    "two_factor_pending_secret",
    "last_login",
}


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def find_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def find_by_username(db: Session, username: str) -> Optional[User]:
    key = _normalize(username)
    if not key:
        return None
    return db.query(User).filter(func.lower(User.username) == key).first()


def find_by_email(db: Session, email: str) -> Optional[User]:
    key = _normalize(email)
    if not key:
        return None
    return db.query(User).filter(func.lower(User.email) == key).first()


def find_by_wallet_address(db: Session, wallet_address: str) -> Optional[User]:
    key = _normalize(wallet_address)
    if not key:
        return None
    return db.query(User).filter(func.lower(User.wallet_address) == key).first()


def create(
    db: Session,
    username: str,
    email: str,
    password_hash: Optional[str],
    wallet_address: Optional[str] = None,
    auth_type: str = AUTH_TYPE_CREDENTIAL,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    last_login: Optional[datetime] = None,
) -> User:
    """
    Insert a new user with 2FA off and the default role.

    Raises:
        ValueError: If neither a password hash nor a wallet address is given
    """
    if not password_hash and not wallet_address:
        raise ValueError("a user needs a password hash or a wallet address")

    user = User(
        username=username.strip(),
        email=email.strip(),
        password_hash=password_hash,
        wallet_address=wallet_address,
        auth_type=auth_type,
        first_name=first_name or None,
        last_name=last_name or None,
        role=ROLE_USER,
        is_premium=False,
        is_2fa_enabled=False,
        language="en",
        last_login=last_login,
    )
    db.add(user)
    db.flush()  # Flush to get the ID without committing
    db.refresh(user)
    return user


def update(db: Session, user: User, changes: Dict[str, Any]) -> User:
    """
    Apply a partial update to a user (last writer wins).

    Raises:
        ValueError: If a key is not an updatable column
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"cannot update fields: {sorted(unknown)}")
    for key, value in changes.items():
        setattr(user, key, value)
    db.flush()
    return user
