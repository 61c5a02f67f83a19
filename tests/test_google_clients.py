"""
Tests for the Google OAuth and Calendar clients (httpx mocked).
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from app.environments.base import APIError, TokenRefreshError, TokenRevokedError
from app.environments.google.auth.client import GoogleAuthClient, is_revocation_error
from app.environments.google.auth.schemas import GoogleTokenError
from app.environments.google.calendar.client import GoogleCalendarClient
from app.environments.google.calendar.schemas import EventCreateRequest


def _mock_http(method: str, response: httpx.Response):
    """Patch httpx.AsyncClient so `method` returns response."""
    client = MagicMock()
    setattr(client, method, AsyncMock(return_value=response))
    client.request = AsyncMock(return_value=response)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)
    return patch("httpx.AsyncClient", return_value=context), client


@pytest.fixture
def auth_client() -> GoogleAuthClient:
    return GoogleAuthClient("cid", "secret", "https://bot.example.com/auth/google/callback")


class TestRevocationClassification:

    @pytest.mark.parametrize("error, description, revoked", [
        ("invalid_grant", "Bad Request", True),
        (None, "Token has been revoked.", True),
        ("invalid_request", "Token has been expired or revoked.", True),
        ("invalid_client", "The OAuth client was not found.", False),
        (None, None, False),
    ])
    def test_is_revocation_error(self, error, description, revoked):
        assert is_revocation_error(GoogleTokenError(error=error, error_description=description)) is revoked


class TestRefresh:

    @pytest.mark.asyncio
    async def test_success(self, auth_client):
        response = httpx.Response(200, json={"access_token": "new", "expires_in": 3599, "token_type": "Bearer"})
        patcher, http = _mock_http("post", response)

        with patcher:
            tokens = await auth_client.refresh_access_token("refresh-1")

        assert tokens.access_token == "new"
        assert tokens.refresh_token is None
        assert tokens.expires_at > datetime.now(timezone.utc)
        assert http.post.await_args.kwargs["data"]["grant_type"] == "refresh_token"

    @pytest.mark.asyncio
    async def test_invalid_grant_is_revoked(self, auth_client):
        response = httpx.Response(400, json={"error": "invalid_grant", "error_description": "Bad Request"})
        patcher, _ = _mock_http("post", response)

        with patcher, pytest.raises(TokenRevokedError):
            await auth_client.refresh_access_token("refresh-1")

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, auth_client):
        response = httpx.Response(503, text="backend error")
        patcher, _ = _mock_http("post", response)

        with patcher, pytest.raises(TokenRefreshError) as exc_info:
            await auth_client.refresh_access_token("refresh-1")
        assert not isinstance(exc_info.value, TokenRevokedError)


class TestCalendarClient:

    @pytest.mark.asyncio
    async def test_create_event_quotes_calendar_id(self):
        response = httpx.Response(200, json={"id": "evt-9", "summary": "Lunch", "htmlLink": "https://x"})
        patcher, http = _mock_http("request", response)
        request = EventCreateRequest(
            summary="Lunch",
            start_datetime=datetime(2026, 2, 4, 3, 0, tzinfo=timezone.utc),
            timezone="Asia/Tokyo",
        )

        with patcher:
            created = await GoogleCalendarClient("token").create_event(
                request, calendar_id="team@group.calendar.google.com"
            )

        assert created.event_id == "evt-9"
        url = http.request.await_args.kwargs.get("url") or http.request.await_args.args[1]
        assert "team%40group.calendar.google.com" in url

    @pytest.mark.asyncio
    async def test_unauthorized_raises_api_error(self):
        response = httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})
        patcher, _ = _mock_http("request", response)

        with patcher, pytest.raises(APIError) as exc_info:
            await GoogleCalendarClient("token").list_calendars()
        assert exc_info.value.status_code == 401
