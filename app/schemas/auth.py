from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.my_base_model import CustomBaseModel
from app.schemas.user import UserPublic


class RegisterRequest(BaseModel):
    """Request model for registration - input validation"""

    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=6, max_length=128)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """Request model for credential login - input validation"""

    username: str = Field(..., min_length=1, description="Username")
    password: str = Field(..., min_length=1, description="Password")


class Verify2FARequest(BaseModel):
    """Request model for the second login step - input validation"""

    pending_ref: str = Field(..., min_length=1, description="Reference returned by /api/login")
    token: str = Field(..., min_length=6, max_length=6, description="6 digit verification code")


class TwoFactorCodeRequest(BaseModel):
    """Request model for enabling 2FA - input validation"""

    token: str = Field(..., min_length=6, max_length=6, description="6 digit verification code")


class NonceResponse(CustomBaseModel):
    """Response model for nonce generation - output"""

    nonce: str = ""
    expires_at: Optional[datetime] = None
    message: Optional[str] = None  # only when an address was given


class Web3LoginRequest(BaseModel):
    """Request model for wallet login - input validation"""

    address: str = Field(..., min_length=1, description="Wallet address")
    signature: str = Field(..., min_length=1, description="Signature of the message")
    message: str = Field(..., min_length=1, description="Signed sign-in message")


class AuthResponse(CustomBaseModel):
    """Response model for authentication - output"""

    authenticated: bool = True
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserPublic


class WalletAuthResponse(AuthResponse):
    """Response model for wallet authentication - output"""

    registered: bool = False


class LoginResponse(CustomBaseModel):
    """Response model for credential login - output

    Either authenticated (token + user) or waiting on the second factor
    (requires_2fa + pending_ref).
    """

    authenticated: bool = False
    requires_2fa: bool = False
    pending_ref: Optional[str] = None
    message: Optional[str] = None
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    user: Optional[UserPublic] = None
