"""
Google Calendar Module - list calendars and create events.
"""

from app.environments.google.calendar.client import GoogleCalendarClient
from app.environments.google.calendar.schemas import (
    CalendarInfo,
    CalendarListResponse,
    EventCreateRequest,
    EventCreateResponse,
)

__all__ = [
    "GoogleCalendarClient",
    "CalendarInfo",
    "CalendarListResponse",
    "EventCreateRequest",
    "EventCreateResponse",
]
