"""
Base classes and interfaces for external provider integrations.

Design Pattern: Strategy Pattern
================================
- EnvironmentProvider: Abstract base for OAuth providers (strategy for auth)
- EnvironmentService: Abstract base for API services (strategy for API calls)

Services depend on these contracts, never on a concrete provider, so tests
can hand in AsyncMock doubles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Any


# ---------------------------------------------------------------------------
# CUSTOM EXCEPTIONS
# ---------------------------------------------------------------------------


class EnvironmentError(Exception):
    """Base exception for all provider-related errors."""
    pass


class AuthenticationError(EnvironmentError):
    """Raised when the OAuth code exchange fails or returns an incomplete credential."""
    pass


class TokenRefreshError(EnvironmentError):
    """
    Raised when refreshing an access token fails for a reason that may go
    away on its own (network error, provider 5xx, rate limit).
    """
    pass


class TokenRevokedError(TokenRefreshError):
    """
    Raised when the refresh token itself is no longer valid.

    The user revoked access, the grant expired, or the token was rotated
    away. Retrying cannot help; the stored credential must be cleared.
    """
    pass


class APIError(EnvironmentError):
    """Raised when an API call to the provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


# ---------------------------------------------------------------------------
# DATA STRUCTURES
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """
    Standardized token data from an OAuth provider.

    Used to move token data between the OAuth flow and CredentialService.
    Values here are plaintext; they are encrypted before storage.
    """
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Optional[List[str]] = None


# ---------------------------------------------------------------------------
# ABSTRACT BASE CLASSES
# ---------------------------------------------------------------------------


class EnvironmentProvider(ABC):
    """
    Abstract base class for OAuth providers.

    The provider is responsible for:
    - Generating authorization URLs
    - Exchanging authorization codes for tokens
    - Refreshing expired tokens, and telling transient failures apart
      from revocation
    """

    provider_name: str = ""

    @abstractmethod
    def get_authorization_url(self, scopes: List[str], state: str) -> str:
        """
        Generate the OAuth authorization URL.

        Args:
            scopes: OAuth scopes to request
            state: Opaque value echoed back to the callback

        Returns:
            URL to redirect the user to for authorization
        """
        pass

    @abstractmethod
    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for access/refresh tokens.

        Raises:
            AuthenticationError: If the exchange fails
        """
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use a refresh token to get a new access token.

        Raises:
            TokenRevokedError: If the refresh token is invalid or revoked
            TokenRefreshError: For any other failure
        """
        pass


class EnvironmentService(ABC):
    """
    Abstract base class for API services within a provider.

    Each service declares the OAuth scopes it needs so the auth flow can
    request them up front.
    """

    service_name: str = ""
    required_scopes: List[str] = []
