"""
PendingSchedule model - one schedule candidate extracted from one LINE message.

Lifecycle:
==========
    PENDING ──register──> REGISTERED   (calendar_id set)
        └─────skip──────> SKIPPED

Transitions are one-way and happen at most once. ScheduleService performs
them with a conditional UPDATE (... WHERE status = 'PENDING'), so a second
tap on the same button can never register or skip twice.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ScheduleStatus(str, enum.Enum):
    """Confirmation state of a PendingSchedule."""
    PENDING = "PENDING"
    REGISTERED = "REGISTERED"
    SKIPPED = "SKIPPED"


class PendingSchedule(Base):
    """
    SQLAlchemy ORM model for the 'pending_schedules' table.

    Rows are created in bulk right after extraction and mutated exactly
    once by whichever terminal action the user performs first. Cleanup of
    old rows is left to database housekeeping.
    """

    __tablename__ = "pending_schedules"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Owning account; every lookup filters on this column as well as id
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # LINE message the candidate was extracted from
    line_message_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # ---------------------------------------------------------------------------
    # EVENT DETAILS
    # ---------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_datetime: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ---------------------------------------------------------------------------
    # CONFIRMATION STATE
    # ---------------------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScheduleStatus.PENDING.value, index=True
    )

    # Set together with status=REGISTERED, never otherwise
    calendar_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # ---------------------------------------------------------------------------
    # RELATIONSHIPS
    # ---------------------------------------------------------------------------
    owner: Mapped["UserAccount"] = relationship("UserAccount", back_populates="schedules")
    history: Mapped[list["ScheduleHistory"]] = relationship(
        "ScheduleHistory", back_populates="schedule", passive_deletes=True
    )

    def is_pending(self) -> bool:
        return self.status == ScheduleStatus.PENDING.value

    def __repr__(self) -> str:
        return f"<PendingSchedule(id={self.id}, title='{self.title}', status={self.status})>"
