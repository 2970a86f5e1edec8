from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=False)

class Settings(BaseSettings):
    PROJECT_NAME: str = "SecureAuth"
    # Application settings
    PORT: int = 8000
    HOST: str = "127.0.0.1"
    VERSION: str = "1.0.0"
    DOC_PASSWORD: str | None = None
    CORS_ORIGINS: str = "*"

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./secureauth.db"
    AUTO_CREATE_TABLES: bool = True

    # Token signing (pending second factor references)
    ENCODE_KEY: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    PENDING_2FA_EXPIRE_SECONDS: int = 300 # 5 minutes

    # Sessions
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600 # 1 week

    # Password hashing (argon2id)
    ARGON2_TIME_COST: int = 3
    ARGON2_MEMORY_COST: int = 65536 # KiB
    ARGON2_PARALLELISM: int = 4

    # Two factor
    TOTP_ISSUER: str = "SecureAuth Platform"
    TOTP_VALID_WINDOW: int = 1

    # Wallet login
    NONCE_EXPIRY_SECONDS: int = 300 # 5 minutes
    SIWE_DOMAIN: str | None = None
    SIWE_URI: str = "http://localhost:8000"
    SIWE_STATEMENT: str = "Sign in with Ethereum to SecureAuth."
    SIWE_CHAIN_ID: int = 1

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None

    # Debug settings
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

# Instantiate the settings
settings = Settings()
