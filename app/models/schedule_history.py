"""
ScheduleHistory model - append-only audit trail of terminal actions.

One row per REGISTERED/SKIPPED transition, inserted in the same
transaction as the status change on the PendingSchedule.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ScheduleHistory(Base):
    """SQLAlchemy ORM model for the 'schedule_histories' table."""

    __tablename__ = "schedule_histories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Deleting a schedule removes its history with it
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("pending_schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ScheduleStatus.REGISTERED or ScheduleStatus.SKIPPED
    action: Mapped[str] = mapped_column(String(20), nullable=False)

    calendar_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    google_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    schedule: Mapped["PendingSchedule"] = relationship("PendingSchedule", back_populates="history")

    def __repr__(self) -> str:
        return f"<ScheduleHistory(schedule_id={self.schedule_id}, action={self.action})>"
