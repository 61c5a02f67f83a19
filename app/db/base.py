"""
Declarative base shared by every ORM model.

Importing app.models registers all tables on Base.metadata.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a timestamp read back from the database to aware UTC.

    PostgreSQL returns aware values; SQLite drops the offset, and every
    value is written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
