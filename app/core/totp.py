"""
TOTP (RFC 6238) helpers for two-factor authentication.

Codes are 6 digits over 30 second steps (authenticator app defaults).
Verification accepts the current step and ``window`` steps either side to
tolerate clock drift. match_step() returns which step a code belongs to.
"""

import base64
import time
from dataclasses import dataclass
from typing import Optional

import pyotp
from pyotp.utils import strings_equal
import qrcode
from qrcode.image.svg import SvgPathImage

from app.core.config import settings


TOTP_DIGITS = 6
TOTP_INTERVAL = 30


@dataclass(frozen=True)
class TotpEnrollment:
    secret: str
    provisioning_uri: str
    qr_code_data_url: str


def qr_code_data_url(data: str) -> str:
    """Render ``data`` as an SVG QR code wrapped in a data URL."""
    img = qrcode.make(data, image_factory=SvgPathImage, box_size=10, border=4)
    svg = img.to_string(encoding="unicode")
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def generate_secret(account_name: str, issuer: Optional[str] = None) -> TotpEnrollment:
    """
    Create a new random base32 secret and its enrolment payload.

    Args:
        account_name: Label shown in the authenticator app (username)
        issuer: Service name, defaults to settings.TOTP_ISSUER

    Returns:
        TotpEnrollment with the secret, the otpauth:// URI and a QR code
    """
    secret = pyotp.random_base32()
    uri = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL).provisioning_uri(
        name=account_name,
        issuer_name=issuer or settings.TOTP_ISSUER,
    )
    return TotpEnrollment(secret=secret, provisioning_uri=uri, qr_code_data_url=qr_code_data_url(uri))


def time_step(for_time: Optional[float] = None) -> int:
    if for_time is None:
        for_time = time.time()
    return int(for_time) // TOTP_INTERVAL


def match_step(
    secret: str,
    code: str,
    window: int = 1,
    for_time: Optional[float] = None,
) -> Optional[int]:
    """
    Find the time step a submitted code was generated for.

    Args:
        secret: Base32 shared secret
        code: Code typed by the user (spaces are ignored)
        window: Number of adjacent steps accepted on each side
        for_time: Unix timestamp to verify at (now if None)

    Returns:
        The matching step counter, or None if no step in the window matches
    """
    if not secret or code is None:
        return None
    code = str(code).replace(" ", "").strip()
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return None

    if for_time is None:
        for_time = time.time()
    totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
    current = time_step(for_time)

    try:
        for offset in range(-window, window + 1):
            step = current + offset
            if strings_equal(code, totp.at(step * TOTP_INTERVAL)):
                return step
    except (ValueError, TypeError):
        # secret is not valid base32
        return None
    return None


def verify(secret: str, code: str, window: int = 1, for_time: Optional[float] = None) -> bool:
    """True if ``code`` is valid for ``secret`` within ``window`` steps."""
    return match_step(secret, code, window=window, for_time=for_time) is not None
