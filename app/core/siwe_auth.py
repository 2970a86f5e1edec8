"""
Ethereum Wallet Authentication Utilities (Sign-In with Ethereum)

This module handles the wallet-specific cryptographic operations for wallet login.
Messages follow the EIP-4361 text layout and are signed with EIP-191 personal_sign.

Authentication Flow:
1. Backend generates a random nonce -> generate_nonce() (stored by auth_flow)
2. Frontend builds the sign-in message (or asks for build_message()) and
   signs it with the wallet
3. Frontend sends: address, message, signature
4. Backend verifies: verify_signed_message()
   - Parses the message into its fields (exact layout matters)
   - Recovers the signer address from the signature
   - Checks signer == message address == claimed address (case-insensitive)
   - Checks issued-at <= now <= expiration-time
5. auth_flow consumes the nonce so the same message cannot be replayed

The signature verification uses:
- secp256k1 public key recovery (eth-account)
"""

import binascii
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError

from app.core.config import settings
from app.core.errors import AuthError, ErrorKind


NONCE_NUM_BYTES = 16  # 16 bytes = 32 hex characters
SIGNATURE_NUM_BYTES = 65  # r (32) + s (32) + v (1)

HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
NONCE_RE = re.compile(r"^[A-Za-z0-9]{8,}$")


@dataclass(frozen=True)
class SiweMessage:
    domain: str
    address: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: datetime
    expiration_time: Optional[datetime] = None
    statement: Optional[str] = None
    not_before: Optional[datetime] = None
    request_id: Optional[str] = None
    resources: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SiweVerification:
    valid: bool
    recovered_address: str
    message: SiweMessage


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    The nonce is embedded in the sign-in message and can only be consumed once.

    Args:
        num_bytes: Number of random bytes to generate (default: 16 = 32 hex chars)

    Returns:
        Hex-encoded random string (e.g., "a1b2c3d4...")
    """
    if num_bytes <= 0:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_hex(num_bytes)


def format_timestamp(value: datetime) -> str:
    """Helper: RFC 3339 UTC timestamp with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_timestamp(value: str) -> datetime:
    """Helper: parse an RFC 3339 timestamp, rejecting naive values."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Invalid timestamp: {value}")
    if parsed.tzinfo is None:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Timestamp without timezone: {value}")
    return parsed


def build_message(
    domain: str,
    address: str,
    chain_id: int,
    nonce: str,
    issued_at: datetime,
    expires_at: Optional[datetime],
    statement: Optional[str] = None,
    uri: Optional[str] = None,
    version: str = "1",
    not_before: Optional[datetime] = None,
    request_id: Optional[str] = None,
    resources: Iterable[str] = (),
) -> str:
    """
    Serialize a sign-in message in the canonical EIP-4361 layout.

    The wallet signs this exact string, so any change in spacing or field
    order produces a different signature.

    Returns:
        The message text, lines joined by "\\n", no trailing newline
    """
    if statement and "\n" in statement:
        raise ValueError("statement must be a single line")

    lines = [f"{domain}{HEADER_SUFFIX}", address, ""]
    if statement:
        lines.append(statement)
    lines += [
        "",
        f"URI: {uri or settings.SIWE_URI}",
        f"Version: {version}",
        f"Chain ID: {chain_id}",
        f"Nonce: {nonce}",
        f"Issued At: {format_timestamp(issued_at)}",
    ]
    if expires_at is not None:
        lines.append(f"Expiration Time: {format_timestamp(expires_at)}")
    if not_before is not None:
        lines.append(f"Not Before: {format_timestamp(not_before)}")
    if request_id is not None:
        lines.append(f"Request ID: {request_id}")
    resources = list(resources)
    if resources:
        lines.append("Resources:")
        lines.extend(f"- {resource}" for resource in resources)
    return "\n".join(lines)


def _take_field(lines: List[str], index: int, label: str, required: bool = True) -> Optional[str]:
    """Helper: read ``label: value`` at lines[index] or fail."""
    prefix = f"{label}: "
    if index < len(lines) and lines[index].startswith(prefix):
        value = lines[index][len(prefix):]
        if not value:
            raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Empty {label}")
        return value
    if required:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Missing {label}")
    return None


def parse_message(text: str) -> SiweMessage:
    """
    Parse a sign-in message produced by build_message() or a SIWE client.

    Raises:
        AuthError(MalformedMessage): on any deviation from the layout
    """
    if not text or not isinstance(text, str):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Empty message")

    lines = text.split("\n")
    if len(lines) < 8:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Message is too short")

    header = lines[0]
    if not header.endswith(HEADER_SUFFIX):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid message header")
    domain = header[: -len(HEADER_SUFFIX)]
    if not domain or " " in domain:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid domain")

    address = lines[1]
    if not ADDRESS_RE.match(address):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid address")

    if lines[2] != "":
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Expected blank line after address")

    # statement block: "<statement>\n\n" or "\n" or nothing before URI
    index = 3
    statement = None
    if lines[index].startswith("URI: "):
        pass
    elif lines[index] == "" and lines[index + 1].startswith("URI: "):
        index += 1
    elif lines[index + 1] == "":
        statement = lines[index] or None
        index += 2
    else:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid statement block")

    uri = _take_field(lines, index, "URI")
    version = _take_field(lines, index + 1, "Version")
    if version != "1":
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Unsupported version: {version}")
    chain_id_raw = _take_field(lines, index + 2, "Chain ID")
    if not chain_id_raw.isdigit():
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid Chain ID")
    nonce = _take_field(lines, index + 3, "Nonce")
    if not NONCE_RE.match(nonce):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Invalid nonce")
    issued_at = _parse_timestamp(_take_field(lines, index + 4, "Issued At"))
    index += 5

    optional = {}
    for label in ("Expiration Time", "Not Before", "Request ID"):
        value = _take_field(lines, index, label, required=False)
        if value is not None:
            optional[label] = value
            index += 1

    resources: List[str] = []
    if index < len(lines) and lines[index] == "Resources:":
        index += 1
        while index < len(lines) and lines[index].startswith("- "):
            resources.append(lines[index][2:])
            index += 1
        if not resources:
            raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Empty resource list")

    if index != len(lines):
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, f"Unexpected content at line {index + 1}")

    return SiweMessage(
        domain=domain,
        address=address,
        statement=statement,
        uri=uri,
        version=version,
        chain_id=int(chain_id_raw),
        nonce=nonce,
        issued_at=issued_at,
        expiration_time=_parse_timestamp(optional["Expiration Time"]) if "Expiration Time" in optional else None,
        not_before=_parse_timestamp(optional["Not Before"]) if "Not Before" in optional else None,
        request_id=optional.get("Request ID"),
        resources=resources,
    )


def _decode_signature(signature: str) -> bytes:
    """Helper: decode a 0x-prefixed (or bare) hex signature to 65 bytes."""
    value = (signature or "").strip()
    if value.lower().startswith("0x"):
        value = value[2:]
    try:
        raw = binascii.unhexlify(value.encode())
    except (binascii.Error, ValueError):
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Signature must be hex encoded")
    if len(raw) != SIGNATURE_NUM_BYTES:
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Signature must be 65 bytes")
    return raw


def recover_address(message: str, signature: str) -> str:
    """
    Recover the address that produced an EIP-191 personal_sign signature.

    Raises:
        AuthError(SignatureInvalid): if the signature cannot be recovered
        Anything else raised by the signing library propagates.
    """
    signature_bytes = _decode_signature(signature)
    try:
        return Account.recover_message(encode_defunct(text=message), signature=signature_bytes)
    except (BadSignature, ValidationError, ValueError):
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Signature could not be recovered")


def verify_signed_message(
    message: str,
    signature: str,
    claimed_address: str,
    now: Optional[datetime] = None,
) -> SiweVerification:
    """
    Verify a signed sign-in message and return the recovered signer.

    This is the main function called by the wallet login flow. It performs
    these checks in order:
    1. The message parses and carries an expiration time
    2. The message domain matches settings.SIWE_DOMAIN (when configured)
    3. The signature recovers to an address
    4. Recovered, message and claimed addresses are equal (case-insensitive)
    5. issued-at <= now <= expiration-time (and now >= not-before if set)

    Args:
        message: The exact text the wallet signed
        signature: 65-byte signature, hex encoded
        claimed_address: Address the client says signed the message
        now: Verification time (current UTC time if None)

    Returns:
        SiweVerification(valid=True, recovered_address, parsed message)

    Raises:
        AuthError: MalformedMessage, SignatureInvalid or Expired
    """
    parsed = parse_message(message)
    if parsed.expiration_time is None:
        raise AuthError(ErrorKind.MALFORMED_MESSAGE, "Missing Expiration Time")

    if settings.SIWE_DOMAIN and parsed.domain != settings.SIWE_DOMAIN:
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Message domain does not match")

    recovered = recover_address(message, signature)

    claimed = (claimed_address or "").strip().lower()
    if recovered.lower() != claimed or parsed.address.lower() != claimed:
        raise AuthError(ErrorKind.SIGNATURE_INVALID, "Address mismatch")

    now = now or datetime.now(timezone.utc)
    if now < parsed.issued_at:
        raise AuthError(ErrorKind.EXPIRED, "Message is not valid yet")
    if parsed.not_before is not None and now < parsed.not_before:
        raise AuthError(ErrorKind.EXPIRED, "Message is not valid yet")
    if now > parsed.expiration_time:
        raise AuthError(ErrorKind.EXPIRED, "Message expired")

    return SiweVerification(valid=True, recovered_address=recovered, message=parsed)
