"""
Dependencies module - builds the application's components from settings.

This is the only place (besides app startup) that reads the global
settings object. Every component gets its configuration through its
constructor, so tests override these functions with
app.dependency_overrides instead of patching environment variables.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from app.ai.providers.gemini import GeminiProvider
from app.core.config import settings
from app.core.encryption import CryptoVault
from app.db.session import get_db, get_session_factory
from app.environments.google.auth.client import GoogleAuthClient
from app.environments.line.client import LineMessagingClient
from app.services.credential_service import CredentialService
from app.services.extraction_service import ExtractionService
from app.services.webhook_service import WebhookDispatcher


# ---------------------------------------------------------------------------
# STATELESS COMPONENTS
# ---------------------------------------------------------------------------

def get_vault() -> CryptoVault:
    # The key is validated on every encrypt/decrypt, not here
    return CryptoVault(key_hex=settings.ENCRYPTION_KEY)


def get_auth_client() -> GoogleAuthClient:
    return GoogleAuthClient(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
    )


def get_line_client() -> LineMessagingClient:
    return LineMessagingClient(channel_access_token=settings.LINE_CHANNEL_ACCESS_TOKEN)


@lru_cache
def get_extraction_service() -> ExtractionService:
    """One Gemini client per process."""
    provider = GeminiProvider(api_key=settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL)
    return ExtractionService(
        provider=provider,
        timezone_name=settings.DEFAULT_TIMEZONE,
        timeout_seconds=settings.EXTRACTION_TIMEOUT_SECONDS,
    )


# ---------------------------------------------------------------------------
# REQUEST-SCOPED COMPONENTS
# ---------------------------------------------------------------------------

def get_credential_service(
    db: Session = Depends(get_db),
    vault: CryptoVault = Depends(get_vault),
    auth_client: GoogleAuthClient = Depends(get_auth_client),
) -> CredentialService:
    return CredentialService(
        db,
        vault=vault,
        auth_client=auth_client,
        refresh_buffer_minutes=settings.TOKEN_REFRESH_BUFFER_MINUTES,
    )


def get_dispatcher(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    line_client: LineMessagingClient = Depends(get_line_client),
    extraction: ExtractionService = Depends(get_extraction_service),
    auth_client: GoogleAuthClient = Depends(get_auth_client),
    vault: CryptoVault = Depends(get_vault),
) -> WebhookDispatcher:
    return WebhookDispatcher(
        session_factory=session_factory,
        line_client=line_client,
        extraction=extraction,
        auth_client=auth_client,
        vault=vault,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
        timezone_name=settings.DEFAULT_TIMEZONE,
        refresh_buffer_minutes=settings.TOKEN_REFRESH_BUFFER_MINUTES,
    )
