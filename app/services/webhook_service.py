"""
Webhook Service - fans one LINE delivery out to per-event handlers.

Each event in a delivery runs as its own asyncio task with its own database
session. A failing event is logged and answered with a generic error reply;
it never affects the other events. The one exception is ConfigurationError:
it is re-raised once every event has finished so the route answers 500.

Routing:
========
    message/text   → extract from text  → intake → carousel | nothing found
    message/image  → download content → extract from image → intake → ...
    postback       → parse_postback →
                        ShowCalendarsAction → calendar quick replies
                        RegisterAction      → Google Calendar write
                        SkipAction          → mark skipped
    anything else  → ignored
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.encryption import ConfigurationError, CryptoVault
from app.environments.base import APIError, EnvironmentProvider
from app.environments.google.calendar.client import GoogleCalendarClient
from app.environments.line import messages
from app.environments.line.client import LineMessagingClient
from app.environments.line.postback import (
    PostbackParseError,
    RegisterAction,
    ShowCalendarsAction,
    SkipAction,
    parse_postback,
)
from app.environments.line.schemas import WebhookEvent
from app.models.user_account import UserAccount
from app.services.credential_service import (
    AuthRequired,
    CredentialService,
    ReauthRequired,
)
from app.services.extraction_service import ExtractionService
from app.services.schedule_service import (
    NotFound,
    Registered,
    ScheduleService,
    Skipped,
)


logger = logging.getLogger("linecal.services.webhook")


class WebhookDispatcher:
    """
    Runs every event of a webhook delivery concurrently.

    Collaborators are injected so tests can replace LINE, Google and Gemini
    with mocks. The database session factory is called once per event.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        line_client: LineMessagingClient,
        extraction: ExtractionService,
        auth_client: EnvironmentProvider,
        vault: CryptoVault,
        redirect_uri: str,
        calendar_client_factory: Callable[[str], GoogleCalendarClient] = GoogleCalendarClient,
        timezone_name: str = "Asia/Tokyo",
        refresh_buffer_minutes: int = 5,
    ):
        self.session_factory = session_factory
        self.line_client = line_client
        self.extraction = extraction
        self.auth_client = auth_client
        self.vault = vault
        self.redirect_uri = redirect_uri
        self.calendar_client_factory = calendar_client_factory
        self.timezone_name = timezone_name
        self.refresh_buffer_minutes = refresh_buffer_minutes

    # -------------------------------------------------------------------------
    # FAN-OUT
    # -------------------------------------------------------------------------

    async def dispatch(self, events: List[Dict[str, Any]]) -> None:
        """
        Handle all events concurrently; returns once every handler has finished.

        Raises:
            ConfigurationError: If any event hit missing secret material. Raised
                only after all sibling events have completed.
        """
        if not events:
            return
        logger.info(f"Dispatching {len(events)} webhook event(s)")
        results = await asyncio.gather(
            *(self._handle_isolated(raw) for raw in events),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _handle_isolated(self, raw: Dict[str, Any]) -> None:
        try:
            event = WebhookEvent.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed webhook event: {e.error_count()} error(s)")
            return

        db = self.session_factory()
        try:
            await self.handle_event(event, db)
        except ConfigurationError as e:
            logger.error(f"Webhook event aborted by configuration error: {e}")
            await self._reply_safely(event, [messages.error_message()])
            raise
        except Exception as e:
            logger.exception(
                f"Webhook event failed: {e}",
                extra={"event_type": event.type, "webhook_event_id": event.webhook_event_id},
            )
            await self._reply_safely(event, [messages.error_message()])
        finally:
            db.close()

    async def _reply_safely(self, event: WebhookEvent, reply: List[dict]) -> None:
        """Best-effort reply used on the error path."""
        if not event.reply_token:
            return
        try:
            await self.line_client.reply_message(event.reply_token, reply)
        except APIError as e:
            logger.error(f"Could not send error reply: {e}")

    async def _reply(self, event: WebhookEvent, *reply: dict) -> None:
        if not event.reply_token:
            logger.debug("Event has no reply token; dropping reply")
            return
        await self.line_client.reply_message(event.reply_token, list(reply))

    # -------------------------------------------------------------------------
    # PER-EVENT SERVICES
    # -------------------------------------------------------------------------

    def _credentials(self, db: Session) -> CredentialService:
        return CredentialService(
            db,
            vault=self.vault,
            auth_client=self.auth_client,
            refresh_buffer_minutes=self.refresh_buffer_minutes,
        )

    def _schedules(self, db: Session, credentials: CredentialService) -> ScheduleService:
        return ScheduleService(
            db,
            credentials=credentials,
            calendar_client_factory=self.calendar_client_factory,
            timezone_name=self.timezone_name,
        )

    def _auth_url(self, line_user_id: str) -> str:
        return messages.build_auth_url(self.redirect_uri, line_user_id)

    # -------------------------------------------------------------------------
    # ROUTING
    # -------------------------------------------------------------------------

    async def handle_event(self, event: WebhookEvent, db: Session) -> None:
        user_id = event.user_id
        if not user_id:
            logger.debug(f"Ignoring {event.type} event without a user id")
            return

        if event.type == "message" and event.message is not None:
            await self._handle_message(event, user_id, db)
        elif event.type == "postback" and event.postback is not None:
            await self._handle_postback(event, user_id, db)
        else:
            logger.debug(f"Ignoring event type: {event.type}")

    # -------------------------------------------------------------------------
    # MESSAGE EVENTS
    # -------------------------------------------------------------------------

    async def _handle_message(self, event: WebhookEvent, user_id: str, db: Session) -> None:
        message = event.message
        if message.type not in ("text", "image"):
            logger.debug(f"Ignoring message type: {message.type}")
            return

        credentials = self._credentials(db)
        account = credentials.get_account(user_id)

        outcome = await credentials.ensure_usable_credential(account)
        if isinstance(outcome, AuthRequired):
            await self._reply(event, messages.auth_message(self._auth_url(user_id)))
            return
        if isinstance(outcome, ReauthRequired):
            await self._reply(event, messages.reauth_message(self._auth_url(user_id)))
            return

        if message.type == "text":
            candidates = await self.extraction.extract_from_text(message.text or "")
        else:
            content, mime_type = await self.line_client.get_message_content(message.id)
            candidates = await self.extraction.extract_from_image(content, mime_type)

        result = self._schedules(db, credentials).intake(account, message.id, candidates)
        if result.nothing_found:
            await self._reply(event, messages.nothing_found_message())
            return

        await self._reply(
            event,
            messages.schedule_carousel_message(result.schedules, self.timezone_name),
        )

    # -------------------------------------------------------------------------
    # POSTBACK EVENTS
    # -------------------------------------------------------------------------

    async def _handle_postback(self, event: WebhookEvent, user_id: str, db: Session) -> None:
        try:
            action = parse_postback(event.postback.data)
        except PostbackParseError as e:
            logger.warning(f"Ignoring postback: {e}")
            return

        credentials = self._credentials(db)
        account = credentials.get_account(user_id)
        if account is None:
            await self._reply(event, messages.auth_message(self._auth_url(user_id)))
            return

        schedules = self._schedules(db, credentials)

        if isinstance(action, ShowCalendarsAction):
            await self._show_calendars(event, account, schedules, action)
        elif isinstance(action, RegisterAction):
            await self._register(event, account, schedules, action, user_id)
        elif isinstance(action, SkipAction):
            await self._skip(event, account, schedules, action)

    async def _show_calendars(
        self,
        event: WebhookEvent,
        account: UserAccount,
        schedules: ScheduleService,
        action: ShowCalendarsAction,
    ) -> None:
        result = schedules.present_calendar_choices(account, action.schedule_id)
        if isinstance(result, NotFound):
            await self._reply(event, messages.already_processed_message())
            return

        await self._reply(
            event,
            messages.calendar_selection_message(
                result.schedule.title, result.schedule.id, result.calendars
            ),
        )

    async def _register(
        self,
        event: WebhookEvent,
        account: UserAccount,
        schedules: ScheduleService,
        action: RegisterAction,
        user_id: str,
    ) -> None:
        result = await schedules.register(account, action.schedule_id, action.calendar_id)

        if isinstance(result, Registered):
            reply = messages.registration_success_message(result.title, result.calendar_name)
        elif isinstance(result, AuthRequired):
            reply = messages.auth_message(self._auth_url(user_id))
        elif isinstance(result, ReauthRequired):
            reply = messages.reauth_message(self._auth_url(user_id))
        else:
            reply = messages.already_processed_message()

        await self._reply(event, reply)

    async def _skip(
        self,
        event: WebhookEvent,
        account: UserAccount,
        schedules: ScheduleService,
        action: SkipAction,
    ) -> None:
        result = schedules.skip(account, action.schedule_id)
        if isinstance(result, Skipped):
            await self._reply(event, messages.skip_message(result.title))
        else:
            await self._reply(event, messages.already_processed_message())

