"""
UserAccount model - one row per LINE user who talks to the bot.

The Google credential lives directly on the account: one LINE user links
exactly one Google account. Both tokens are stored encrypted (see
app/core/encryption.py) and are only ever decrypted by CredentialService.

Credential invariant:
=====================
access token and refresh token are both present or both absent. A row
with only one of them is treated as "not linked" and the user is sent
through the OAuth flow again.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class UserAccount(Base):
    """
    SQLAlchemy ORM model for the 'user_accounts' table.

    Created (upserted) by the OAuth callback. Credential columns are
    rewritten on token refresh and cleared when Google reports that the
    refresh token was revoked. The row itself is never deleted here.
    """

    __tablename__ = "user_accounts"

    # ---------------------------------------------------------------------------
    # PRIMARY KEY
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ---------------------------------------------------------------------------
    # IDENTITY
    # ---------------------------------------------------------------------------
    # line_user_id: stable user id from LINE webhook events ("U4af4980629...")
    line_user_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)

    # ---------------------------------------------------------------------------
    # GOOGLE CREDENTIAL (encrypted "iv:tag:ciphertext" strings)
    # ---------------------------------------------------------------------------
    google_access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    google_refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # None means "expiry unknown", which is handled like "about to expire"
    google_token_expiry: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # JSON list from calendarList.list, cached at link time. Opaque to the
    # database; parsed defensively by ScheduleService.
    google_calendars: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ---------------------------------------------------------------------------
    # TIMESTAMPS
    # ---------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ---------------------------------------------------------------------------
    # RELATIONSHIPS
    # ---------------------------------------------------------------------------
    schedules: Mapped[list["PendingSchedule"]] = relationship(
        "PendingSchedule", back_populates="owner", passive_deletes=True
    )

    # ---------------------------------------------------------------------------
    # HELPER METHODS
    # ---------------------------------------------------------------------------
    def has_credentials(self) -> bool:
        """True only when both encrypted tokens are stored."""
        return bool(self.google_access_token) and bool(self.google_refresh_token)

    def clear_credentials(self) -> None:
        """Drop the Google credential, forcing the user to re-authenticate."""
        self.google_access_token = None
        self.google_refresh_token = None
        self.google_token_expiry = None

    def __repr__(self) -> str:
        return f"<UserAccount(line_user_id='{self.line_user_id[:8]}...')>"
