"""
Google OAuth Client - Handles the OAuth 2.0 authorization code flow.

OAuth 2.0 Flow Implementation:
==============================
1. get_authorization_url() → LINE user opens the link, lands on Google
2. exchange_code_for_tokens() → Called in the callback, gets tokens
3. refresh_access_token() → Renews access tokens close to expiry

Revocation detection:
=====================
A refresh can fail for two very different reasons:
- The refresh token is dead (user removed access, grant expired). Google
  answers HTTP 400 with {"error": "invalid_grant"}. Raised as
  TokenRevokedError so the caller clears the credential.
- Anything else (network, 5xx, rate limit). Raised as TokenRefreshError
  so the caller can keep using the stored token for now.

References:
===========
- OAuth 2.0: https://developers.google.com/identity/protocols/oauth2
- Token endpoint: https://oauth2.googleapis.com/token
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.environments.base import (
    EnvironmentProvider,
    OAuthTokens,
    AuthenticationError,
    TokenRefreshError,
    TokenRevokedError,
)
from app.environments.google.auth.schemas import (
    GoogleTokenError,
    GoogleTokenResponse,
)


logger = logging.getLogger("linecal.environments.google.auth")

# Error signatures that mean "this refresh token will never work again"
REVOKED_ERROR_CODES = {"invalid_grant"}
REVOKED_MESSAGE_MARKERS = ("Token has been revoked", "Token has been expired or revoked")


def is_revocation_error(error: GoogleTokenError) -> bool:
    """
    Classify a token endpoint error body.

    Returns:
        True if the refresh token itself is invalid
    """
    if error.error in REVOKED_ERROR_CODES:
        return True
    description = error.error_description or ""
    return any(marker in description for marker in REVOKED_MESSAGE_MARKERS)


def _parse_error(response: httpx.Response) -> GoogleTokenError:
    """Best-effort parse of a token endpoint error body."""
    try:
        return GoogleTokenError(**response.json())
    except (ValueError, TypeError, ValidationError):
        return GoogleTokenError(error=None, error_description=response.text)


class GoogleAuthClient(EnvironmentProvider):
    """
    Google OAuth 2.0 Client implementation.

    Example Usage:
        client = GoogleAuthClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
        )

        # Step 1: Generate auth URL (state carries the LINE user id)
        auth_url = client.get_authorization_url(CALENDAR_SCOPES, state=line_user_id)

        # Step 2: Handle callback
        tokens = await client.exchange_code_for_tokens(code="4/0Ab...")

        # Later: keep the access token fresh
        tokens = await client.refresh_access_token(refresh_token)
    """

    provider_name = "google"

    # Google OAuth endpoints
    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET in environment variables."
            )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    # -------------------------------------------------------------------------
    # AUTHORIZATION URL
    # -------------------------------------------------------------------------

    def get_authorization_url(
        self,
        scopes: List[str],
        state: str,
        access_type: str = "offline",
        prompt: str = "consent",
    ) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            scopes: OAuth scopes to request (e.g., CALENDAR_SCOPES)
            state: Echoed back to the callback; here the LINE user id
            access_type: "offline" to receive a refresh token
            prompt: "consent" forces the consent screen, which makes Google
                    issue a refresh token even for returning users

        Returns:
            Full authorization URL to redirect the user to
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "access_type": access_type,
            "prompt": prompt,
        }

        return f"{self.AUTHORIZATION_URL}?{urlencode(params)}"

    # -------------------------------------------------------------------------
    # TOKEN EXCHANGE
    # -------------------------------------------------------------------------

    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            code: Authorization code from Google callback

        Returns:
            OAuthTokens with access_token, refresh_token, expiration

        Raises:
            AuthenticationError: If token exchange fails
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }

        logger.info("Exchanging authorization code for tokens")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(self.TOKEN_URL, data=token_data, timeout=self.timeout)
            except httpx.RequestError as e:
                logger.error(f"Network error during token exchange: {e}")
                raise AuthenticationError(f"Network error: {e}")

        if response.status_code != 200:
            error = _parse_error(response)
            error_msg = error.error_description or error.error or response.text
            logger.error(f"Token exchange failed: {error_msg}")
            raise AuthenticationError(f"Token exchange failed: {error_msg}")

        token_response = GoogleTokenResponse(**response.json())

        logger.info(
            "Successfully obtained Google tokens",
            extra={
                "has_refresh_token": token_response.refresh_token is not None,
                "expires_in": token_response.expires_in,
            }
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )

    # -------------------------------------------------------------------------
    # TOKEN REFRESH
    # -------------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use refresh token to get a new access token.

        Args:
            refresh_token: Plaintext refresh token

        Returns:
            OAuthTokens with the new access_token. refresh_token is only set
            when Google rotated it.

        Raises:
            TokenRevokedError: If the refresh token is invalid or revoked
            TokenRefreshError: On network errors or other provider failures
        """
        refresh_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing access token")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(self.TOKEN_URL, data=refresh_data, timeout=self.timeout)
            except httpx.RequestError as e:
                logger.error(f"Network error during token refresh: {e}")
                raise TokenRefreshError(f"Network error: {e}")

        if response.status_code != 200:
            error = _parse_error(response)
            error_msg = error.error_description or error.error or response.text
            if is_revocation_error(error):
                logger.warning(f"Refresh token revoked: {error_msg}")
                raise TokenRevokedError(f"Refresh token revoked: {error_msg}")
            logger.error(f"Token refresh failed ({response.status_code}): {error_msg}")
            raise TokenRefreshError(f"Token refresh failed: {error_msg}")

        token_response = GoogleTokenResponse(**response.json())

        logger.info(
            "Successfully refreshed access token",
            extra={"expires_in": token_response.expires_in}
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )
