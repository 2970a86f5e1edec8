"""
Authentication error kinds and their HTTP mapping.

Every failure of a login / registration / 2FA attempt is raised as an
AuthError carrying one ErrorKind. Route handlers let it propagate and the
handler registered in main.py turns it into a JSON response:

    {"detail": "Invalid verification code", "error": "InvalidCode"}

Anything that is not an AuthError (database down, library bug) is an
internal failure and never shows up as one of these kinds.
"""

from enum import Enum

from fastapi import Request, status
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_STATE = "InvalidState"
    INVALID_CODE = "InvalidCode"
    SIGNATURE_INVALID = "SignatureInvalid"
    MALFORMED_MESSAGE = "MalformedMessage"
    EXPIRED = "Expired"
    ALREADY_EXISTS = "AlreadyExists"
    NOT_AUTHENTICATED = "NotAuthenticated"


STATUS_BY_KIND = {
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_STATE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CODE: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.SIGNATURE_INVALID: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.MALFORMED_MESSAGE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
}

DEFAULT_DETAIL = {
    ErrorKind.INVALID_CREDENTIALS: "Incorrect username or password",
    ErrorKind.INVALID_STATE: "Invalid authentication state",
    ErrorKind.INVALID_CODE: "Invalid verification code",
    ErrorKind.SIGNATURE_INVALID: "Invalid signature",
    ErrorKind.MALFORMED_MESSAGE: "Malformed sign-in message",
    ErrorKind.EXPIRED: "Sign-in message expired",
    ErrorKind.ALREADY_EXISTS: "Already exists",
    ErrorKind.NOT_AUTHENTICATED: "Not authenticated",
}


class AuthError(Exception):
    """Terminal failure of a single authentication attempt."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail or DEFAULT_DETAIL[kind]
        super().__init__(f"{kind.value}: {self.detail}")

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    headers = None
    if exc.kind is ErrorKind.NOT_AUTHENTICATED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.kind.value},
        headers=headers,
    )
