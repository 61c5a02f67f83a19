"""
Google Calendar API Client - list calendars and insert events.

API Reference:
==============
- Events API: https://developers.google.com/calendar/api/v3/reference/events
- CalendarList API: https://developers.google.com/calendar/api/v3/reference/calendarList

Usage Example:
==============
    client = GoogleCalendarClient(access_token="ya29.xxx")

    calendars = await client.list_calendars()
    created = await client.create_event(request, calendar_id="primary")
    print(created.event_id)
"""

import logging
from typing import List, Optional
from urllib.parse import quote

import httpx

from app.environments.base import EnvironmentService, APIError
from app.environments.google.auth.schemas import CALENDAR_SCOPES
from app.environments.google.calendar.schemas import (
    CalendarInfo,
    CalendarListResponse,
    EventCreateRequest,
    EventCreateResponse,
)


logger = logging.getLogger("linecal.environments.google.calendar")


class GoogleCalendarClient(EnvironmentService):
    """
    Google Calendar API client.

    Requires a valid access token with the calendar scope. The token is
    obtained through CredentialService, never read from storage here.
    """

    service_name = "calendar"
    required_scopes = CALENDAR_SCOPES

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(self, access_token: str, timeout: float = 30.0):
        self.access_token = access_token
        self.timeout = timeout

    # -------------------------------------------------------------------------
    # HTTP CLIENT MANAGEMENT
    # -------------------------------------------------------------------------

    def _get_headers(self) -> dict:
        """Get authorization headers for API requests."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> dict:
        """
        Make an authenticated request to the Calendar API.

        Raises:
            APIError: If the request fails
        """
        url = f"{self.BASE_URL}{endpoint}"

        async with httpx.AsyncClient() as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    params=params,
                    json=json_body,
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error in Calendar API: {e}")
                raise APIError(f"Network error: {e}")

        if response.status_code == 401:
            logger.error("Calendar API: Unauthorized (token may be expired)")
            raise APIError(
                "Unauthorized - access token may be expired",
                status_code=401,
                response=response.text,
            )

        if response.status_code == 403:
            logger.error("Calendar API: Forbidden (scope may be missing or calendar is read-only)")
            raise APIError(
                "Forbidden - calendar scope may not be granted",
                status_code=403,
                response=response.text,
            )

        if response.status_code not in (200, 201):
            error_detail = response.text
            logger.error(f"Calendar API error: {response.status_code} - {error_detail}")
            raise APIError(
                f"API request failed: {error_detail}",
                status_code=response.status_code,
                response=error_detail,
            )

        return response.json()

    # -------------------------------------------------------------------------
    # CALENDAR LIST
    # -------------------------------------------------------------------------

    async def list_calendars(self, max_results: int = 100) -> List[CalendarInfo]:
        """
        List calendars the user has access to.

        Returns:
            List of CalendarInfo objects
        """
        logger.info("Fetching calendar list")

        response_data = await self._make_request(
            method="GET",
            endpoint="/users/me/calendarList",
            params={"maxResults": min(max_results, 250)},
        )

        calendar_list = CalendarListResponse(**response_data)

        logger.info(f"Found {len(calendar_list.items)} calendars")

        return calendar_list.items

    # -------------------------------------------------------------------------
    # EVENT CREATION
    # -------------------------------------------------------------------------

    async def create_event(
        self,
        request: EventCreateRequest,
        calendar_id: str = "primary",
    ) -> EventCreateResponse:
        """
        Create a timed calendar event.

        Args:
            request: EventCreateRequest with event details
            calendar_id: Target calendar ("primary" or a calendar id)

        Returns:
            EventCreateResponse with the Google event id

        Raises:
            APIError: If event creation fails
        """
        logger.info(
            "Creating calendar event",
            extra={"summary": request.summary, "calendar_id": calendar_id},
        )

        response_data = await self._make_request(
            method="POST",
            endpoint=f"/calendars/{quote(calendar_id, safe='')}/events",
            json_body=request.to_event_body(),
        )

        created = EventCreateResponse(
            event_id=response_data.get("id", ""),
            summary=response_data.get("summary", request.summary),
            html_link=response_data.get("htmlLink"),
        )

        logger.info(f"Created event: {created.event_id}")

        return created
