from enum import Enum
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import app.schemas.auth as auth_schemas
from app.core.dependencies import get_current_user, get_session_token
from app.db.session import get_db
from app.models.users import User
from app.schemas.my_base_model import Message
from app.schemas.user import (
    ChangePasswordRequest,
    TwoFactorSetupResponse,
    UpdateProfileRequest,
    UserPublic,
)
from app.services import auth_flow

router = APIRouter()
group_tags: List[str | Enum] = ["user"]


@router.get(
    "",
    tags=group_tags,
    response_model=UserPublic,
)
def get_me(user: User = Depends(get_current_user)) -> UserPublic:
    """Current user, without password hash or 2FA secrets."""
    return UserPublic.from_record(user)


@router.patch(
    "",
    tags=group_tags,
    response_model=UserPublic,
)
def update_me(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserPublic:
    """
    Update profile fields.

    Body (all optional): first_name, last_name, email, language
    """
    changes = body.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] is not None:
        changes["email"] = str(changes["email"])
    changes = {key: value for key, value in changes.items() if value is not None}
    user = auth_flow.update_profile(db, user, changes)
    return UserPublic.from_record(user)


@router.post(
    "/change-password",
    tags=group_tags,
    response_model=Message,
)
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    token: str = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> Message:
    """Change the password; sessions other than the current one are logged out."""
    auth_flow.change_password(db, user, body.current_password, body.new_password, keep_token=token)
    return Message(message="Password updated successfully")


@router.post(
    "/setup-2fa",
    tags=group_tags,
    response_model=TwoFactorSetupResponse,
)
def setup_2fa(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TwoFactorSetupResponse:
    """
    Start 2FA enrolment.

    Returns the base32 secret, the otpauth:// URL and a QR code (data URL)
    for an authenticator app. 2FA is not active until /enable-2fa succeeds.
    """
    enrollment = auth_flow.setup_second_factor(db, user)
    return TwoFactorSetupResponse(
        secret=enrollment.secret,
        otpauth_url=enrollment.provisioning_uri,
        qr_code_url=enrollment.qr_code_data_url,
    )


@router.post(
    "/enable-2fa",
    tags=group_tags,
    response_model=Message,
)
def enable_2fa(
    body: auth_schemas.TwoFactorCodeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Message:
    """Activate 2FA with a code from the secret handed out by /setup-2fa."""
    auth_flow.enable_second_factor(db, user, body.token)
    return Message(message="2FA enabled successfully")


@router.post(
    "/disable-2fa",
    tags=group_tags,
    response_model=Message,
)
def disable_2fa(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Message:
    auth_flow.disable_second_factor(db, user)
    return Message(message="2FA disabled successfully")
