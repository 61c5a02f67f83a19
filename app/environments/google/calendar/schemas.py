"""
Google Calendar Schemas - Data structures for calendar operations.

These Pydantic models represent the two Calendar API resources the bot
touches: the calendar list (to offer target calendars) and event insert.

Reference: https://developers.google.com/calendar/api/v3/reference
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class CalendarInfo(BaseModel):
    """
    Information about a Google Calendar.

    Used when listing available calendars. The raw calendarList items are
    what gets cached on UserAccount.google_calendars.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Calendar identifier (usually email)")
    summary: Optional[str] = Field(None, description="Calendar title")
    primary: Optional[bool] = Field(False, description="Is this the primary calendar?")
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    access_role: Optional[str] = Field(None, alias="accessRole")


class CalendarListResponse(BaseModel):
    """Response from the CalendarList API."""
    model_config = ConfigDict(populate_by_name=True)

    kind: Optional[str] = Field(None)
    items: List[CalendarInfo] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class EventCreateRequest(BaseModel):
    """
    Request schema for creating a timed calendar event.

    Example:
        EventCreateRequest(
            summary="Team Meeting",
            start_datetime=datetime(2026, 2, 4, 15, 0, tzinfo=jst),
            end_datetime=datetime(2026, 2, 4, 16, 0, tzinfo=jst),
            timezone="Asia/Tokyo",
        )
    """
    summary: str = Field(..., description="Event title/summary")
    start_datetime: datetime = Field(..., description="Event start")
    end_datetime: Optional[datetime] = Field(None, description="Event end; defaults to start")
    timezone: str = Field(default="UTC", description="IANA time zone for the event")
    location: Optional[str] = Field(None, description="Event location")
    description: Optional[str] = Field(None, description="Event description")

    def to_event_body(self) -> dict:
        """Build the JSON body for events.insert."""
        end = self.end_datetime or self.start_datetime
        body: dict = {
            "summary": self.summary,
            "start": {"dateTime": self.start_datetime.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
        }
        if self.location:
            body["location"] = self.location
        if self.description:
            body["description"] = self.description
        return body


class EventCreateResponse(BaseModel):
    """Key details of a created event."""
    event_id: str = Field(..., description="Google Calendar event ID")
    summary: Optional[str] = Field(None, description="Event title/summary")
    html_link: Optional[str] = Field(None, description="Link to view event in Google Calendar")
