import os

# settings are read at import time
os.environ.setdefault("ENCODE_KEY", "test-encode-key-with-enough-length-0123456789")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ARGON2_TIME_COST"] = "1"
os.environ["ARGON2_MEMORY_COST"] = "1024"
os.environ["ARGON2_PARALLELISM"] = "1"
os.environ["SIWE_DOMAIN"] = "app.secureauth.test"
os.environ["SIWE_URI"] = "https://app.secureauth.test"

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from main import app
from app.core import siwe_auth
from app.db.base import Base
from app.db.session import get_db
from app.models.auth import AuthNonce, AuthSession  # noqa: F401
from app.models.users import User  # noqa: F401


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite://"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SIWE_DOMAIN = "app.secureauth.test"
SIWE_URI = "https://app.secureauth.test"

# fixed keys so failures are reproducible
WALLET_KEY_A = "0x" + "4c" * 32
WALLET_KEY_B = "0x" + "a7" * 32


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    db = TestingSessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fresh_schema():
    """Every test starts with empty tables"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Plain database session for service level tests"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> TestClient:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def wallet():
    return Account.from_key(WALLET_KEY_A)


@pytest.fixture
def other_wallet():
    return Account.from_key(WALLET_KEY_B)


def sign_text(account, text: str) -> str:
    """personal_sign a message and return the 0x-prefixed hex signature"""
    signed = Account.sign_message(encode_defunct(text=text), private_key=account.key)
    signature = signed.signature.hex()
    if not signature.startswith("0x"):
        signature = "0x" + signature
    return signature


def make_siwe_message(
    address: str,
    nonce: str = "abcdef0123456789",
    issued_at: datetime | None = None,
    lifetime: timedelta = timedelta(minutes=5),
    domain: str = SIWE_DOMAIN,
    **kwargs,
) -> str:
    issued_at = issued_at or datetime.now(timezone.utc).replace(microsecond=0)
    return siwe_auth.build_message(
        domain=domain,
        address=address,
        chain_id=1,
        nonce=nonce,
        issued_at=issued_at,
        expires_at=issued_at + lifetime,
        statement="Sign in with Ethereum to SecureAuth.",
        uri=SIWE_URI,
        **kwargs,
    )


@pytest.fixture
def sign():
    return sign_text


@pytest.fixture
def siwe_message():
    return make_siwe_message
