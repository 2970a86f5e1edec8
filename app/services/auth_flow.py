"""
Authentication flows: credential login with optional TOTP, wallet login,
registration and second factor management.

States:
    Unauthenticated -> AwaitingSecondFactor -> Authenticated
    Unauthenticated -> Authenticated   (wallet login, or 2FA disabled)

Each operation either returns an outcome or raises AuthError; a failed attempt
is final and the client has to submit again. Operations commit their own
transaction on success.

There is no throttling of failed password or TOTP attempts here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import passwords, siwe_auth, totp
from app.core.config import settings
from app.core.errors import AuthError, ErrorKind
from app.core.jwt_utils import create_pending_2fa_token, resolve_pending_2fa_token
from app.models.auth import AuthNonce
from app.models.users import AUTH_TYPE_CREDENTIAL, AUTH_TYPE_WALLET, User
from app.services import sessions, user_store
from app.services.sessions import IssuedSession, as_utc, utc_now

logger = logging.getLogger("auth")

WALLET_USERNAME_PREFIX = "wallet_"
WALLET_EMAIL_DOMAIN = "wallet.eth"
PROFILE_FIELDS = ("first_name", "last_name", "email", "language")


@dataclass(frozen=True)
class Authenticated:
    user: User
    session: IssuedSession


@dataclass(frozen=True)
class SecondFactorRequired:
    user_id: int
    pending_ref: str


@dataclass(frozen=True)
class WalletAuthenticated:
    user: User
    session: IssuedSession
    registered: bool  # True when this login created the account


LoginOutcome = Union[Authenticated, SecondFactorRequired]


def _complete_login(db: Session, user: User, now: datetime) -> IssuedSession:
    user_store.update(db, user, {"last_login": now})
    return sessions.issue(db, user.id, now=now)


@lru_cache(maxsize=1)
def _dummy_password_record() -> str:
    return passwords.unusable_password_hash()


def _totp_timestamp(now: Optional[datetime]) -> float:
    return (now or utc_now()).timestamp()


# ---------------------------------------------------------------------------
# Credential login
# ---------------------------------------------------------------------------


def submit_credentials(db: Session, username: str, password: str) -> LoginOutcome:
    """
    First login step with username and password.

    Returns:
        Authenticated when 2FA is off, SecondFactorRequired otherwise

    Raises:
        AuthError(InvalidCredentials): unknown user or wrong password
    """
    user = user_store.find_by_username(db, username)
    # unknown users still pay for one hash so both failures take as long
    record = user.password_hash if user is not None else _dummy_password_record()
    password_ok = passwords.verify_password(password, record)
    if user is None or not password_ok:
        logger.warning("Failed login for username=%r", username)
        raise AuthError(ErrorKind.INVALID_CREDENTIALS)

    if user.is_2fa_enabled:
        logger.info("Second factor required for user_id=%s", user.id)
        return SecondFactorRequired(user_id=user.id, pending_ref=create_pending_2fa_token(user.id))

    session = _complete_login(db, user, utc_now())
    db.commit()
    logger.info("Login succeeded for user_id=%s", user.id)
    return Authenticated(user=user, session=session)


def submit_second_factor(
    db: Session,
    pending_ref: str,
    code: str,
    now: Optional[datetime] = None,
) -> Authenticated:
    """
    Second login step: the pending reference from submit_credentials plus a TOTP code.

    Raises:
        AuthError(InvalidState): bad / expired reference, or 2FA not configured
        AuthError(InvalidCode): wrong code
    """
    user_id = resolve_pending_2fa_token(pending_ref)
    user = user_store.find_by_id(db, user_id) if user_id is not None else None
    if user is None or not user.two_factor_secret or not user.is_2fa_enabled:
        raise AuthError(ErrorKind.INVALID_STATE, "Invalid user or 2FA not set up")

    valid = totp.verify(
        user.two_factor_secret,
        code,
        window=settings.TOTP_VALID_WINDOW,
        for_time=_totp_timestamp(now),
    )
    if not valid:
        logger.warning("Invalid 2FA code for user_id=%s", user.id)
        raise AuthError(ErrorKind.INVALID_CODE)

    session = _complete_login(db, user, now or utc_now())
    db.commit()
    logger.info("Login with second factor succeeded for user_id=%s", user.id)
    return Authenticated(user=user, session=session)


# ---------------------------------------------------------------------------
# Wallet login
# ---------------------------------------------------------------------------


def issue_wallet_nonce(db: Session, now: Optional[datetime] = None) -> AuthNonce:
    """Generate and store a nonce for a wallet sign-in message."""
    now = now or utc_now()
    db.query(AuthNonce).filter(AuthNonce.expires_at < now).delete(synchronize_session=False)

    record = AuthNonce(
        nonce=siwe_auth.generate_nonce(),
        created_at=now,
        expires_at=now + timedelta(seconds=settings.NONCE_EXPIRY_SECONDS),
    )
    db.add(record)
    db.commit()
    return record


def wallet_sign_in_message(address: str, nonce_record: AuthNonce) -> str:
    """
    Ready-to-sign message for ``address`` around an issued nonce, valid for
    as long as the nonce is.

    Raises:
        AuthError(MalformedMessage): address is not a 0x-prefixed 20 byte hex string
    """
    address = (address or "").strip()
    if not siwe_auth.ADDRESS_RE.match(address):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid address")

    return siwe_auth.build_message(
        domain=settings.SIWE_DOMAIN or urlparse(settings.SIWE_URI).netloc,
        address=address,
        chain_id=settings.SIWE_CHAIN_ID,
        nonce=nonce_record.nonce,
        issued_at=as_utc(nonce_record.created_at),
        expires_at=as_utc(nonce_record.expires_at),
        statement=settings.SIWE_STATEMENT or None,
        uri=settings.SIWE_URI,
    )


def _consume_nonce(db: Session, nonce: str, now: datetime) -> None:
    record = db.get(AuthNonce, nonce)
    if record is None:
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Nonce not found or already used")
    expired = as_utc(record.expires_at) < now

    # a concurrent login may have consumed it between the read and here
    deleted = (
        db.query(AuthNonce)
        .filter(AuthNonce.nonce == nonce)
        .delete(synchronize_session=False)
    )
    if deleted == 0:
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Nonce not found or already used")
    if expired:
        db.commit()
        raise AuthError(ErrorKind.EXPIRED, "Nonce expired")


def _wallet_username(db: Session, address: str) -> str:
    base = f"{WALLET_USERNAME_PREFIX}{address[2:10].lower()}"
    candidate = base
    suffix = 1
    while user_store.find_by_username(db, candidate) is not None:
        suffix += 1
        candidate = f"{base}_{suffix}"
    return candidate


def _wallet_email(db: Session, address: str) -> str:
    # the placeholder may already be taken by a credential account
    local = address.lower()
    candidate = f"{local}@{WALLET_EMAIL_DOMAIN}"
    suffix = 1
    while user_store.find_by_email(db, candidate) is not None:
        suffix += 1
        candidate = f"{local}_{suffix}@{WALLET_EMAIL_DOMAIN}"
    return candidate


def submit_wallet_signature(
    db: Session,
    address: str,
    signature: str,
    message: str,
    now: Optional[datetime] = None,
) -> WalletAuthenticated:
    """
    Log in with a signed sign-in message, creating the account on first use.

    Raises:
        AuthError: MalformedMessage, SignatureInvalid or Expired
    """
    now = now or utc_now()
    verification = siwe_auth.verify_signed_message(message, signature, address, now=now)
    _consume_nonce(db, verification.message.nonce, now)

    wallet_address = verification.message.address
    user = user_store.find_by_wallet_address(db, wallet_address)
    registered = user is None
    if registered:
        user = user_store.create(
            db,
            username=_wallet_username(db, wallet_address),
            email=_wallet_email(db, wallet_address),
            password_hash=passwords.unusable_password_hash(),
            wallet_address=wallet_address,
            auth_type=AUTH_TYPE_WALLET,
        )
        logger.info("Registered wallet account user_id=%s", user.id)

    session = _complete_login(db, user, now)
    db.commit()
    logger.info("Wallet login succeeded for user_id=%s", user.id)
    return WalletAuthenticated(user=user, session=session, registered=registered)


# ---------------------------------------------------------------------------
# Registration and account
# ---------------------------------------------------------------------------


def register(
    db: Session,
    username: str,
    email: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Authenticated:
    """
    Create a credential account and log it in.

    Raises:
        AuthError(AlreadyExists): username and/or email already taken
    """
    taken = []
    if user_store.find_by_username(db, username) is not None:
        taken.append("Username already exists")
    if user_store.find_by_email(db, email) is not None:
        taken.append("Email already in use")
    if taken:
        raise AuthError(ErrorKind.ALREADY_EXISTS, "; ".join(taken))

    now = utc_now()
    try:
        user = user_store.create(
            db,
            username=username,
            email=email,
            password_hash=passwords.hash_password(password),
            auth_type=AUTH_TYPE_CREDENTIAL,
            first_name=first_name,
            last_name=last_name,
            last_login=now,
        )
    except IntegrityError:
        # lost a race against a concurrent registration
        db.rollback()
        raise AuthError(ErrorKind.ALREADY_EXISTS, "Username or email already exists")
    session = sessions.issue(db, user.id, now=now)
    db.commit()
    logger.info("Registered user_id=%s", user.id)
    return Authenticated(user=user, session=session)


def logout(db: Session, token: str) -> bool:
    revoked = sessions.revoke(db, token)
    db.commit()
    return revoked


def change_password(
    db: Session,
    user: User,
    current_password: str,
    new_password: str,
    keep_token: Optional[str] = None,
) -> None:
    """
    Replace the password after checking the current one. Other sessions of
    the user are revoked; the one in ``keep_token`` survives.

    Raises:
        AuthError(InvalidCredentials): current password is wrong
    """
    if not passwords.verify_password(current_password, user.password_hash):
        raise AuthError(ErrorKind.INVALID_CREDENTIALS, "Current password is incorrect")

    user_store.update(db, user, {"password_hash": passwords.hash_password(new_password)})
    sessions.revoke_all_for_user(db, user.id, keep_token=keep_token)
    db.commit()
    logger.info("Password changed for user_id=%s", user.id)


def update_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
    """
    Update first/last name, email and language.

    Raises:
        AuthError(AlreadyExists): the new email belongs to another user
    """
    changes = {key: value for key, value in changes.items() if key in PROFILE_FIELDS}
    email = changes.get("email")
    if email is not None:
        owner = user_store.find_by_email(db, email)
        if owner is not None and owner.id != user.id:
            raise AuthError(ErrorKind.ALREADY_EXISTS, "Email already in use")
        changes["email"] = email.strip()

    user_store.update(db, user, changes)
    db.commit()
    db.refresh(user)
    return user


# ---------------------------------------------------------------------------
# Second factor management (requires an authenticated user)
# ---------------------------------------------------------------------------


def setup_second_factor(db: Session, user: User) -> totp.TotpEnrollment:
    """
    Hand out a new TOTP secret. It is kept as pending until
    enable_second_factor() proves the user can produce codes for it; the
    currently active secret (if any) keeps working meanwhile.
    """
    enrollment = totp.generate_secret(account_name=user.username)
    user_store.update(db, user, {"two_factor_pending_secret": enrollment.secret})
    db.commit()
    logger.info("2FA setup started for user_id=%s", user.id)
    return enrollment


def enable_second_factor(
    db: Session,
    user: User,
    code: str,
    now: Optional[datetime] = None,
) -> User:
    """
    Activate the pending secret after verifying one code against it.

    Raises:
        AuthError(InvalidState): setup_second_factor was not called
        AuthError(InvalidCode): code does not match the pending secret
    """
    if not user.two_factor_pending_secret:
        raise AuthError(ErrorKind.INVALID_STATE, "2FA not set up yet")

    valid = totp.verify(
        user.two_factor_pending_secret,
        code,
        window=settings.TOTP_VALID_WINDOW,
        for_time=_totp_timestamp(now),
    )
    if not valid:
        raise AuthError(ErrorKind.INVALID_CODE)

    user_store.update(
        db,
        user,
        {
            "two_factor_secret": user.two_factor_pending_secret,
            "two_factor_pending_secret": None,
            "is_2fa_enabled": True,
        },
    )
    db.commit()
    logger.info("2FA enabled for user_id=%s", user.id)
    return user


def disable_second_factor(db: Session, user: User) -> User:
    """Turn 2FA off and forget every secret. An active session is enough."""
    user_store.update(
        db,
        user,
        {
            "is_2fa_enabled": False,
            "two_factor_secret": None,
            "two_factor_pending_secret": None,
        },
    )
    db.commit()
    logger.info("2FA disabled for user_id=%s", user.id)
    return user
