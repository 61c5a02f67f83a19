"""
Google Auth Router - OAuth 2.0 linking of a LINE user to Google Calendar.

Endpoints:
==========
- GET /auth/google?userId=...  → Redirect to Google OAuth consent screen
- GET /auth/google/callback    → Exchange code, store encrypted tokens

OAuth Flow:
===========
1. The bot sends an unauthenticated user a link to /auth/google?userId=<LINE id>
2. Backend redirects to Google's consent screen (state = LINE user id)
3. User grants calendar access
4. Google redirects to /auth/google/callback with code + state
5. Backend exchanges the code, fetches the calendar list, encrypts and
   upserts the credential on the UserAccount
6. User sees a "you can go back to LINE" page

access_type=offline and prompt=consent make Google return a refresh token
every time, including for users who linked before.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse

from app.environments.base import APIError, AuthenticationError
from app.environments.google import CALENDAR_SCOPES, GoogleAuthClient, GoogleCalendarClient
from app.deps import get_auth_client, get_credential_service
from app.services.credential_service import CredentialService


logger = logging.getLogger("linecal.routers.google_auth")


router = APIRouter(prefix="/auth/google", tags=["google-auth"])


SUCCESS_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Google Calendar linked</title>
</head>
<body style="font-family: sans-serif; text-align: center; padding: 48px 16px;">
  <h1>Google Calendar linked</h1>
  <p>You can close this page and go back to LINE.</p>
  <p>Send the bot a message with a date and time to add it to your calendar.</p>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------


@router.get("")
async def google_login(
    user_id: Optional[str] = Query(None, alias="userId", description="LINE user id"),
    auth_client: GoogleAuthClient = Depends(get_auth_client),
):
    """
    Start the Google OAuth flow for a LINE user.

    Returns:
        302 RedirectResponse to Google's consent screen

    Raises:
        400: userId missing
        503: Google OAuth client not configured
    """
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing userId parameter",
        )

    if not auth_client.is_configured():
        logger.error("Google OAuth not configured - missing GOOGLE_CLIENT_ID or GOOGLE_CLIENT_SECRET")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth is not configured",
        )

    auth_url = auth_client.get_authorization_url(scopes=CALENDAR_SCOPES, state=user_id)

    logger.info(f"Initiating Google OAuth for LINE user {user_id[:8]}...")
    return RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/callback", response_class=HTMLResponse)
async def google_callback(
    code: Optional[str] = Query(None, description="Authorization code from Google"),
    state: Optional[str] = Query(None, description="LINE user id passed through OAuth"),
    error: Optional[str] = Query(None, description="Error from Google"),
    error_description: Optional[str] = Query(None, description="Error details"),
    auth_client: GoogleAuthClient = Depends(get_auth_client),
    credentials: CredentialService = Depends(get_credential_service),
):
    """
    Handle Google's redirect after the consent screen.

    Raises:
        400: Google reported an error, or code/state is missing
        500: Code exchange failed or Google did not return both tokens
    """
    if error:
        logger.warning(f"Google OAuth error: {error} - {error_description}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Google authorization failed: {error_description or error}",
        )

    if not code or not state:
        logger.warning("Missing code or state in OAuth callback")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing authorization code or state parameter",
        )

    try:
        tokens = await auth_client.exchange_code_for_tokens(code=code)
    except AuthenticationError as e:
        logger.error(f"Failed to exchange code for tokens: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete authentication",
        )

    if not tokens.access_token or not tokens.refresh_token:
        logger.error("Google returned an incomplete token set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to obtain tokens",
        )

    try:
        calendars = await GoogleCalendarClient(access_token=tokens.access_token).list_calendars()
    except APIError as e:
        # Without a cache the bot offers only the primary calendar
        logger.warning(f"Failed to fetch calendar list: {e}")
        calendars = []

    credentials.store_authorization(state, tokens, calendars)

    return HTMLResponse(content=SUCCESS_PAGE)
