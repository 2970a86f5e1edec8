from typing import List, Optional
from enum import Enum

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

import app.schemas.auth as schemas
from app.core.dependencies import get_session_token
from app.db.session import get_db
from app.schemas.my_base_model import Message
from app.schemas.user import UserPublic
from app.services import auth_flow

router = APIRouter()
group_tags: List[str | Enum] = ["Auth"]


def _auth_response(outcome, response_cls=schemas.AuthResponse, **extra):
    return response_cls(
        access_token=outcome.session.token,
        expires_at=outcome.session.expires_at,
        user=UserPublic.from_record(outcome.user),
        **extra,
    )


@router.post(
    "/register",
    tags=group_tags,
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(body: schemas.RegisterRequest, db: Session = Depends(get_db)) -> schemas.AuthResponse:
    """Create an account and log it in.
    - username and email must both be free (case-insensitive)
    """
    outcome = auth_flow.register(
        db,
        username=body.username,
        email=str(body.email),
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return _auth_response(outcome)


@router.post(
    "/login",
    tags=group_tags,
    response_model=schemas.LoginResponse,
)
def login(body: schemas.LoginRequest, db: Session = Depends(get_db)) -> schemas.LoginResponse:
    """Log in with username and password.

    Returns either a session (authenticated=true) or, when 2FA is enabled,
    requires_2fa=true with a pending_ref to post to /api/verify-2fa.
    """
    outcome = auth_flow.submit_credentials(db, body.username, body.password)
    if isinstance(outcome, auth_flow.SecondFactorRequired):
        return schemas.LoginResponse(
            requires_2fa=True,
            pending_ref=outcome.pending_ref,
            message="2FA verification required",
        )
    return schemas.LoginResponse(
        authenticated=True,
        access_token=outcome.session.token,
        token_type="bearer",
        expires_at=outcome.session.expires_at,
        user=UserPublic.from_record(outcome.user),
    )


@router.post(
    "/verify-2fa",
    tags=group_tags,
    response_model=schemas.AuthResponse,
)
def verify_2fa(body: schemas.Verify2FARequest, db: Session = Depends(get_db)) -> schemas.AuthResponse:
    """Finish a login that is waiting on its TOTP code."""
    outcome = auth_flow.submit_second_factor(db, body.pending_ref, body.token)
    return _auth_response(outcome)


@router.post(
    "/web3/nonce",
    tags=group_tags,
    response_model=schemas.NonceResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_nonce(
    address: Optional[str] = Query(default=None, description="Wallet address to prepare a message for"),
    db: Session = Depends(get_db),
) -> schemas.NonceResponse:
    """Generate and store a nonce to embed in the sign-in message.
    With ?address=0x... the response also carries the message to sign.
    """
    record = auth_flow.issue_wallet_nonce(db)
    message = auth_flow.wallet_sign_in_message(address, record) if address else None
    return schemas.NonceResponse(nonce=record.nonce, expires_at=record.expires_at, message=message)


@router.post(
    "/web3-login",
    tags=group_tags,
    response_model=schemas.WalletAuthResponse,
)
def web3_login(body: schemas.Web3LoginRequest, db: Session = Depends(get_db)) -> schemas.WalletAuthResponse:
    """Verify a signed sign-in message and return a session.
    The first login from an address creates its account (registered=true).
    """
    outcome = auth_flow.submit_wallet_signature(
        db,
        address=body.address.strip(),
        signature=body.signature.strip(),
        message=body.message,
    )
    return _auth_response(outcome, schemas.WalletAuthResponse, registered=outcome.registered)


@router.post(
    "/logout",
    tags=group_tags,
    response_model=Message,
)
def logout(token: str = Depends(get_session_token), db: Session = Depends(get_db)) -> Message:
    """Revoke the current session."""
    auth_flow.logout(db, token)
    return Message(message="Logged out successfully")
