"""
Schedule schemas - Pydantic models for extracted schedule candidates.

The extractor's JSON is validated through these models before anything is
persisted, so a PendingSchedule always has a title and an aware start time.
"""

from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScheduleCandidate(BaseModel):
    """
    One schedule proposed by the extractor.

    Example:
    {
        "title": "Dentist",
        "location": "Shibuya",
        "startDateTime": "2026-02-05T10:00:00+09:00",
        "endDateTime": "2026-02-05T11:00:00+09:00"
    }
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None)
    location: Optional[str] = Field(None, max_length=255)
    start_datetime: datetime = Field(..., alias="startDateTime")
    end_datetime: Optional[datetime] = Field(None, alias="endDateTime")

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("description", "location")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def localized(self, tz_name: str) -> "ScheduleCandidate":
        """Attach tz_name to naive datetimes (the extractor sometimes drops offsets)."""
        tz = ZoneInfo(tz_name)
        start = self.start_datetime
        end = self.end_datetime
        if start.tzinfo is None:
            start = start.replace(tzinfo=tz)
        if end is not None and end.tzinfo is None:
            end = end.replace(tzinfo=tz)
        return self.model_copy(update={"start_datetime": start, "end_datetime": end})

    def start_utc(self) -> datetime:
        return self.start_datetime.astimezone(timezone.utc)

    def end_utc(self) -> Optional[datetime]:
        return self.end_datetime.astimezone(timezone.utc) if self.end_datetime else None


class ExtractionResult(BaseModel):
    """Top-level extractor output."""
    model_config = ConfigDict(extra="ignore")

    schedules: List[dict] = Field(default_factory=list)
