from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Text, func
from sqlalchemy.sql import expression

from app.db.base import Base


AUTH_TYPE_CREDENTIAL = "credential"
AUTH_TYPE_WALLET = "wallet"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class User(Base):
    """Model for users table
    Example:
    {
        "id": 1,
        "username": "alice",
        "email": "alice@x.com",
        "password_hash": "5f1c...e9.a83b...04",
        "wallet_address": null,
        "auth_type": "credential",
        "is_2fa_enabled": false,
        "role": "user",
        "is_premium": false,
        "language": "en",
        "created_at": "2024-01-01T12:00:00",
        "last_login": "2024-01-01T12:00:00"
    }
    An account has a password hash, a wallet address, or both.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=True)  # "digest.salt", see app/core/passwords.py
    wallet_address = Column(Text, nullable=True)
    auth_type = Column(Text, nullable=False, default=AUTH_TYPE_CREDENTIAL)  # "credential", "wallet"
    role = Column(Text, nullable=False, default=ROLE_USER)  # "user", "admin"
    is_premium = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    language = Column(Text, nullable=False, default="en")

    # two factor
    is_2fa_enabled = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    two_factor_secret = Column(Text, nullable=True)  # active secret, base32
    two_factor_pending_secret = Column(Text, nullable=True)  # handed out by setup, not yet proven

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_login = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("uq_users_username_lower", func.lower(username), unique=True),
        Index("uq_users_email_lower", func.lower(email), unique=True),
        Index("uq_users_wallet_address_lower", func.lower(wallet_address), unique=True),
    )
