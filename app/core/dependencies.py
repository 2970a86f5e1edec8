"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers
to extract the session token from the Authorization header and resolve the logged in user.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(user: User = Depends(get_current_user)):
        # user is the account behind the bearer token
        return {"user": user.username}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_current_user() dependency
3. get_session_token() extracts token from header
4. sessions.resolve() looks up the session (from app/services/sessions.py)
5. Returns the User to the route handler
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.core.errors import AuthError, ErrorKind
from app.db.session import get_db
from app.models.users import User
from app.services import sessions


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract session token from Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Args:
        authorization: The Authorization header value (e.g., "Bearer k3Zx...")
    Returns:
        The extracted token string
    Raises:
        AuthError(NotAuthenticated): If Authorization header is missing or invalid
    """
    if not authorization:
        raise AuthError(ErrorKind.NOT_AUTHENTICATED, "Authorization header missing")

    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    else:
        token = authorization
    if not token:
        raise AuthError(ErrorKind.NOT_AUTHENTICATED, "Invalid authorization header")

    return token


def get_session_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    return _extract_token(authorization)


def get_current_user(
    token: str = Depends(get_session_token), db: Session = Depends(get_db)
) -> User:
    """
    Resolve the user behind the session token.
    Unknown or expired sessions are rejected with 401.
    """
    user = sessions.resolve(db, token)
    if user is None:
        raise AuthError(ErrorKind.NOT_AUTHENTICATED, "Session expired or invalid")
    return user
