from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from app.db.base import Base


class AuthNonce(Base):
    """Model for storing wallet authentication nonces.
    A row exists from issue until it is consumed by a wallet login or expires.
    """

    __tablename__ = "auth_nonces"

    nonce = Column(String(128), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)


class AuthSession(Base):
    """Model for login sessions.
    Only the SHA-256 of the bearer token is stored.
    """

    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
