"""
Google Auth Module - OAuth 2.0 Authentication for Google Calendar

OAuth 2.0 Flow Overview:
========================
1. A LINE user without a linked account receives an auth link
2. The link redirects to Google's consent screen (state = LINE user id)
3. Google redirects back with an authorization code
4. Backend exchanges the code for access + refresh tokens
5. Tokens are encrypted and stored on the user's account
"""

from app.environments.google.auth.client import GoogleAuthClient, is_revocation_error
from app.environments.google.auth.schemas import (
    GoogleTokenError,
    GoogleTokenResponse,
    CALENDAR_SCOPES,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleTokenError",
    "GoogleTokenResponse",
    "CALENDAR_SCOPES",
    "is_revocation_error",
]
