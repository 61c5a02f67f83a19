"""
Google Environment Module - OAuth and Calendar integration.

Architecture:
=============
google/
├── __init__.py           # Module exports
├── auth/                 # OAuth authorization code flow + token refresh
│   ├── client.py
│   └── schemas.py
└── calendar/             # Calendar list + event insert
    ├── client.py
    └── schemas.py

Usage:
======
    from app.environments.google import GoogleAuthClient, GoogleCalendarClient

    tokens = await auth_client.exchange_code_for_tokens(code)
    calendar = GoogleCalendarClient(access_token=tokens.access_token)
    calendars = await calendar.list_calendars()
"""

from app.environments.google.auth import GoogleAuthClient, CALENDAR_SCOPES
from app.environments.google.calendar import (
    GoogleCalendarClient,
    CalendarInfo,
    EventCreateRequest,
    EventCreateResponse,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleCalendarClient",
    "CalendarInfo",
    "EventCreateRequest",
    "EventCreateResponse",
    "CALENDAR_SCOPES",
]
