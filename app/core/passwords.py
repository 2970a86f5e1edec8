"""
Password Hashing Utilities

Passwords are stored as ``<digest hex>.<salt hex>`` where the digest is a raw
Argon2id hash of the password with a fresh 16 byte salt. The cost parameters
(time, memory, parallelism) come from settings and must stay fixed for the
lifetime of the stored records, since they are not encoded in the record.

Verification re-derives the digest with the stored salt and compares the two
digests in constant time. A record that cannot be parsed never verifies.
"""

import binascii
import hmac
import secrets

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

from app.core.config import settings


SALT_NUM_BYTES = 16
DIGEST_NUM_BYTES = 32
RECORD_SEPARATOR = "."


def _derive(password: str, salt: bytes) -> bytes:
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=settings.ARGON2_TIME_COST,
        memory_cost=settings.ARGON2_MEMORY_COST,
        parallelism=settings.ARGON2_PARALLELISM,
        hash_len=DIGEST_NUM_BYTES,
        type=Type.ID,
    )


def hash_password(password: str) -> str:
    """
    Hash a password with a freshly generated salt.

    Two calls with the same password return different records.

    Args:
        password: Plain text password

    Returns:
        Serialized record ``digest.salt`` (both hex encoded)
    """
    salt = secrets.token_bytes(SALT_NUM_BYTES)
    digest = _derive(password, salt)
    return f"{digest.hex()}{RECORD_SEPARATOR}{salt.hex()}"


def verify_password(password: str, record: str | None) -> bool:
    """
    Check a password against a stored record.

    Args:
        password: Plain text password
        record: Value previously returned by hash_password

    Returns:
        True if the password matches, False otherwise (including any
        malformed record)
    """
    if not record or password is None:
        return False

    parts = record.split(RECORD_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return False

    try:
        stored_digest = binascii.unhexlify(parts[0])
        salt = binascii.unhexlify(parts[1])
    except (binascii.Error, ValueError):
        return False

    if len(stored_digest) != DIGEST_NUM_BYTES or len(salt) < 8:
        return False

    try:
        supplied_digest = _derive(password, salt)
    except HashingError:
        return False

    return hmac.compare_digest(stored_digest, supplied_digest)


def unusable_password_hash() -> str:
    """Record for accounts that never log in with a password (wallet users)."""
    return hash_password(secrets.token_hex(16))
