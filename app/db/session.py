"""
Database session management - SQLAlchemy engine and session factory.
This module provides the database connection and session dependencies for FastAPI.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings

# ---------------------------------------------------------------------------
# DATABASE ENGINE
# ---------------------------------------------------------------------------
# pool_pre_ping=True: check a pooled connection with "SELECT 1" before use,
# so a restarted database does not surface as a failed webhook.
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# ---------------------------------------------------------------------------
# SESSION FACTORY
# ---------------------------------------------------------------------------
# autocommit=False: every state transition commits explicitly, which is what
# lets a status change and its history row land in one transaction.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    FastAPI dependency that provides one database session per request.

    Usage in a route:
        @router.get("/callback")
        async def callback(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """
    FastAPI dependency returning the session factory itself.

    The webhook dispatcher opens one session per inbound event so that
    concurrently processed events never share a transaction.
    """
    return SessionLocal
