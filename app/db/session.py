import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from app.core.errors import AuthError
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except Exception as e:
        db.rollback()
        if isinstance(e, (HTTPException, AuthError)):
            raise e
        else:
            logger.exception("Unhandled error during request")
            raise HTTPException(status_code=500, detail="Internal server error")
    finally:
        db.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    # register models on Base.metadata
    import app.models.auth  # noqa: F401
    import app.models.users  # noqa: F401
    from app.db.base import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
