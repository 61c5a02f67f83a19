"""
Credential Service - keeps each user's Google access token usable.

Credential lifecycle:
=====================
    UNAUTHENTICATED ──OAuth callback──> VALID
    VALID ──time passes──> NEAR_EXPIRY ──refresh ok──> VALID
                                 │
                                 ├──refresh revoked──> (cleared) UNAUTHENTICATED
                                 └──refresh failed───> stored token used as-is

An access token counts as NEAR_EXPIRY once it is within the refresh buffer
(5 minutes by default) of its expiry, or when the expiry is unknown.

Only this service decrypts stored tokens. Callers get a plaintext access
token back inside UsableCredential and never see the refresh token.

There is no per-user lock. Two concurrent refreshes for the same user both
succeed at Google and the last write wins; both tokens are valid.

Usage:
    service = CredentialService(db, vault=vault, auth_client=auth_client)
    outcome = await service.ensure_usable_credential(account)
    if isinstance(outcome, UsableCredential):
        calendar = GoogleCalendarClient(access_token=outcome.access_token)
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.encryption import CryptoVault
from app.db.base import as_utc
from app.environments.base import (
    AuthenticationError,
    EnvironmentError,
    EnvironmentProvider,
    OAuthTokens,
    TokenRevokedError,
)
from app.environments.google.calendar.schemas import CalendarInfo
from app.models.user_account import UserAccount


logger = logging.getLogger("linecal.services.credentials")


class CredentialState(str, Enum):
    """Where an account's credential is in its lifecycle."""
    UNAUTHENTICATED = "unauthenticated"
    VALID = "valid"
    NEAR_EXPIRY = "near_expiry"
    REVOKED = "revoked"


# ---------------------------------------------------------------------------
# OUTCOMES
# ---------------------------------------------------------------------------

@dataclass
class UsableCredential:
    """A plaintext access token ready for one Calendar API call."""
    access_token: str
    refreshed: bool = False
    # True when the refresh failed transiently and the stored token is returned
    stale: bool = False


@dataclass
class AuthRequired:
    """No credential on file; the user must link Google."""
    pass


@dataclass
class ReauthRequired:
    """Google revoked the refresh token; credentials were cleared."""
    pass


CredentialOutcome = Union[UsableCredential, AuthRequired, ReauthRequired]


def classify(
    account: Optional[UserAccount],
    now: datetime,
    buffer: timedelta = timedelta(minutes=5),
) -> CredentialState:
    """
    Pure classification of an account's credential.

    REVOKED is never returned here: revocation is only learned from a
    refresh attempt, after which the credential is cleared and the account
    classifies as UNAUTHENTICATED.
    """
    if account is None or not account.has_credentials():
        return CredentialState.UNAUTHENTICATED

    expiry = as_utc(account.google_token_expiry)
    if expiry is None or now >= expiry - buffer:
        return CredentialState.NEAR_EXPIRY
    return CredentialState.VALID


def _short(line_user_id: str) -> str:
    return f"{line_user_id[:8]}..."


class CredentialService:
    """Encrypted storage, refresh and revocation handling for Google tokens."""

    def __init__(
        self,
        db: Session,
        vault: CryptoVault,
        auth_client: EnvironmentProvider,
        refresh_buffer_minutes: int = 5,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.vault = vault
        self.auth_client = auth_client
        self.refresh_buffer = timedelta(minutes=refresh_buffer_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # -------------------------------------------------------------------------
    # LOOKUP
    # -------------------------------------------------------------------------

    def get_account(self, line_user_id: str) -> Optional[UserAccount]:
        return self.db.execute(
            select(UserAccount).where(UserAccount.line_user_id == line_user_id)
        ).scalar_one_or_none()

    def classify(self, account: Optional[UserAccount]) -> CredentialState:
        return classify(account, self._clock(), self.refresh_buffer)

    # -------------------------------------------------------------------------
    # ENSURE USABLE
    # -------------------------------------------------------------------------

    async def ensure_usable_credential(self, account: Optional[UserAccount]) -> CredentialOutcome:
        """
        Return an access token that can be used right now, refreshing it if needed.

        Returns:
            UsableCredential: token to use (possibly stale after a transient failure)
            AuthRequired: no credential on file
            ReauthRequired: the refresh token was revoked; credentials were cleared

        Raises:
            DecryptionError: If stored token material is corrupt
            ConfigurationError: If the encryption key is missing or invalid
        """
        state = self.classify(account)

        if state == CredentialState.UNAUTHENTICATED:
            return AuthRequired()

        if state == CredentialState.VALID:
            return UsableCredential(access_token=self.vault.decrypt(account.google_access_token))

        return await self._refresh(account)

    async def _refresh(self, account: UserAccount) -> CredentialOutcome:
        who = _short(account.line_user_id)
        refresh_token = self.vault.decrypt(account.google_refresh_token)

        try:
            tokens = await self.auth_client.refresh_access_token(refresh_token)
        except TokenRevokedError:
            logger.warning(f"Refresh token revoked for {who}; clearing credentials")
            self._clear(account)
            return ReauthRequired()
        except EnvironmentError as e:
            logger.error(f"Token refresh failed for {who}, using stored token: {e}")
            return UsableCredential(
                access_token=self.vault.decrypt(account.google_access_token),
                stale=True,
            )

        account.google_access_token = self.vault.encrypt(tokens.access_token)
        account.google_token_expiry = tokens.expires_at
        if tokens.refresh_token:
            account.google_refresh_token = self.vault.encrypt(tokens.refresh_token)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            # The new token is valid even if it could not be stored
            self.db.rollback()
            logger.error(f"Failed to persist refreshed token for {who}: {e}")
        else:
            logger.info(f"Refreshed access token for {who}")

        return UsableCredential(access_token=tokens.access_token, refreshed=True)

    def _clear(self, account: UserAccount) -> None:
        account.clear_credentials()
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    # -------------------------------------------------------------------------
    # STORE (OAuth callback)
    # -------------------------------------------------------------------------

    def store_authorization(
        self,
        line_user_id: str,
        tokens: OAuthTokens,
        calendars: List[CalendarInfo],
    ) -> UserAccount:
        """
        Encrypt and upsert the credential obtained from the OAuth callback.

        Args:
            line_user_id: LINE user id carried in the OAuth state parameter
            tokens: Plaintext tokens from the code exchange
            calendars: Calendar list fetched with the new access token

        Raises:
            AuthenticationError: If either token is missing
        """
        if not tokens.access_token or not tokens.refresh_token:
            raise AuthenticationError("Google did not return both access and refresh tokens")

        encrypted_access = self.vault.encrypt(tokens.access_token)
        encrypted_refresh = self.vault.encrypt(tokens.refresh_token)
        calendar_cache = json.dumps(
            [c.model_dump(by_alias=True, exclude_none=True) for c in calendars],
            ensure_ascii=False,
        )

        account = self.get_account(line_user_id)
        if account is None:
            account = UserAccount(line_user_id=line_user_id)
            self.db.add(account)

        account.google_access_token = encrypted_access
        account.google_refresh_token = encrypted_refresh
        account.google_token_expiry = tokens.expires_at
        account.google_calendars = calendar_cache

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(account)

        logger.info(
            f"Stored Google authorization for {_short(line_user_id)}",
            extra={"calendar_count": len(calendars)},
        )
        return account
