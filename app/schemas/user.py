from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.my_base_model import CustomBaseModel


class UserPublic(CustomBaseModel):
    """Public view of a user; never carries the password hash or 2FA secrets"""

    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    wallet_address: Optional[str] = None
    auth_type: str = "credential"
    role: str = "user"
    is_premium: bool = False
    is_2fa_enabled: bool = False
    language: str = "en"
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class UpdateProfileRequest(BaseModel):
    """Request model for profile update - input validation"""

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    language: Optional[str] = Field(default=None, min_length=2, max_length=10)


class ChangePasswordRequest(BaseModel):
    """Request model for password change - input validation"""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class TwoFactorSetupResponse(CustomBaseModel):
    """Response model for 2FA setup - output"""

    secret: str
    otpauth_url: str
    qr_code_url: str
