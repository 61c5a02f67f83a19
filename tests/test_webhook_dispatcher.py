"""
Tests for the webhook dispatcher (LINE, Google and Gemini mocked).

These tests verify:
- Message events: auth prompt, carousel, nothing found, image download
- Postback events: calendar choices, register, skip, duplicates
- Revoked Google grant: re-auth prompt, then plain auth prompt
- Failure isolation between events of one delivery
- Configuration errors escape dispatch once all events are done
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from app.core.encryption import ConfigurationError, CryptoVault
from app.environments.base import APIError, TokenRevokedError
from app.environments.google.calendar.schemas import EventCreateResponse
from app.environments.line.postback import build_register, build_show_calendars, build_skip
from app.models.pending_schedule import PendingSchedule, ScheduleStatus
from app.models.user_account import UserAccount
from app.schemas.schedule import ScheduleCandidate
from app.services.webhook_service import WebhookDispatcher
from tests.conftest import LINE_USER_ID, TEST_REDIRECT_URI


JST = timezone(timedelta(hours=9))


@pytest.fixture
def extraction() -> MagicMock:
    extraction = MagicMock()
    extraction.extract_from_text = AsyncMock(return_value=[])
    extraction.extract_from_image = AsyncMock(return_value=[])
    return extraction


@pytest.fixture
def calendar_client() -> MagicMock:
    client = MagicMock()
    client.create_event = AsyncMock(return_value=EventCreateResponse(event_id="evt-1"))
    return client


@pytest.fixture
def dispatcher(session_factory, line_client, extraction, auth_client, vault, calendar_client) -> WebhookDispatcher:
    return WebhookDispatcher(
        session_factory=session_factory,
        line_client=line_client,
        extraction=extraction,
        auth_client=auth_client,
        vault=vault,
        redirect_uri=TEST_REDIRECT_URI,
        calendar_client_factory=lambda access_token: calendar_client,
        timezone_name="Asia/Tokyo",
    )


@pytest.fixture
def pending_schedule(db, linked_account) -> PendingSchedule:
    schedule = PendingSchedule(
        user_id=linked_account.id,
        line_message_id="msg-0",
        title="Team meeting",
        start_datetime=datetime(2026, 2, 4, 6, 0, tzinfo=timezone.utc),
        end_datetime=datetime(2026, 2, 4, 7, 0, tzinfo=timezone.utc),
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def text_event(text: str, reply_token: str = "reply-text", user_id: str = LINE_USER_ID) -> dict:
    return {
        "type": "message",
        "replyToken": reply_token,
        "source": {"type": "user", "userId": user_id},
        "message": {"id": "msg-100", "type": "text", "text": text},
    }


def postback_event(data: str, reply_token: str = "reply-postback", user_id: str = LINE_USER_ID) -> dict:
    return {
        "type": "postback",
        "replyToken": reply_token,
        "source": {"type": "user", "userId": user_id},
        "postback": {"data": data},
    }


def replies(line_client) -> dict:
    """reply_token -> list of message objects."""
    return {c.args[0]: c.args[1] for c in line_client.reply_message.await_args_list}


# ---------------------------------------------------------------------------
# MESSAGE EVENTS
# ---------------------------------------------------------------------------

class TestMessageEvents:

    @pytest.mark.asyncio
    async def test_unknown_user_gets_auth_link(self, dispatcher, line_client, extraction):
        await dispatcher.dispatch([text_event("meeting tomorrow")])

        [message] = replies(line_client)["reply-text"]
        assert f"https://bot.example.com/auth/google?userId={LINE_USER_ID}" in message["text"]
        extraction.extract_from_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_candidates_become_carousel(self, dispatcher, line_client, extraction, linked_account, db):
        extraction.extract_from_text.return_value = [
            ScheduleCandidate(title="Meeting", start_datetime=datetime(2026, 2, 4, 15, tzinfo=JST)),
            ScheduleCandidate(title="Dentist", start_datetime=datetime(2026, 2, 5, 10, tzinfo=JST)),
        ]

        await dispatcher.dispatch([text_event("meeting tomorrow 3pm, dentist thursday")])

        [message] = replies(line_client)["reply-text"]
        assert message["type"] == "flex"
        assert len(message["contents"]["contents"]) == 2
        rows = db.query(PendingSchedule).all()
        assert sorted(r.title for r in rows) == ["Dentist", "Meeting"]
        assert all(r.status == ScheduleStatus.PENDING.value for r in rows)

    @pytest.mark.asyncio
    async def test_nothing_found(self, dispatcher, line_client, linked_account, db):
        await dispatcher.dispatch([text_event("good morning")])

        [message] = replies(line_client)["reply-text"]
        assert "couldn't find any schedule" in message["text"]
        assert db.query(PendingSchedule).count() == 0

    @pytest.mark.asyncio
    async def test_image_is_downloaded_and_extracted(self, dispatcher, line_client, extraction, linked_account):
        event = text_event("")
        event["message"] = {"id": "img-1", "type": "image"}

        await dispatcher.dispatch([event])

        line_client.get_message_content.assert_awaited_once_with("img-1")
        extraction.extract_from_image.assert_awaited_once_with(b"\xff\xd8image", "image/jpeg")

    @pytest.mark.asyncio
    async def test_revoked_grant_asks_for_reauth_then_auth(
        self, dispatcher, line_client, extraction, auth_client, make_account, db
    ):
        make_account(expires_in=timedelta(minutes=1))
        auth_client.refresh_access_token.side_effect = TokenRevokedError("invalid_grant")

        await dispatcher.dispatch([text_event("meeting tomorrow", reply_token="r1")])
        await dispatcher.dispatch([text_event("meeting tomorrow", reply_token="r2")])

        sent = replies(line_client)
        link = f"https://bot.example.com/auth/google?userId={LINE_USER_ID}"
        assert "expired or was revoked" in sent["r1"][0]["text"]
        assert link in sent["r1"][0]["text"]
        assert "link your Google account first" in sent["r2"][0]["text"]
        assert link in sent["r2"][0]["text"]
        assert auth_client.refresh_access_token.await_count == 1
        extraction.extract_from_text.assert_not_called()

        db.expire_all()
        account = db.query(UserAccount).filter_by(line_user_id=LINE_USER_ID).one()
        assert not account.has_credentials()

    @pytest.mark.asyncio
    async def test_sticker_is_ignored(self, dispatcher, line_client, linked_account):
        event = text_event("")
        event["message"] = {"id": "st-1", "type": "sticker"}

        await dispatcher.dispatch([event])

        line_client.reply_message.assert_not_called()


# ---------------------------------------------------------------------------
# POSTBACK EVENTS
# ---------------------------------------------------------------------------

class TestPostbackEvents:

    @pytest.mark.asyncio
    async def test_show_calendars(self, dispatcher, line_client, pending_schedule):
        await dispatcher.dispatch([postback_event(build_show_calendars(pending_schedule.id))])

        [message] = replies(line_client)["reply-postback"]
        items = message["quickReply"]["items"]
        assert [i["action"]["label"] for i in items] == ["Me", "Holidays in Japan"]
        assert items[0]["action"]["data"] == build_register(pending_schedule.id, "me@example.com")

    @pytest.mark.asyncio
    async def test_register(self, dispatcher, line_client, calendar_client, pending_schedule, db):
        await dispatcher.dispatch([postback_event(build_register(pending_schedule.id, "me@example.com"))])

        [message] = replies(line_client)["reply-postback"]
        assert message["text"] == 'Added "Team meeting" to Me.'
        calendar_client.create_event.assert_awaited_once()
        db.expire_all()
        assert db.get(PendingSchedule, pending_schedule.id).status == ScheduleStatus.REGISTERED.value

    @pytest.mark.asyncio
    async def test_skip_then_duplicate_tap(self, dispatcher, line_client, pending_schedule):
        await dispatcher.dispatch([postback_event(build_skip(pending_schedule.id), reply_token="r1")])
        await dispatcher.dispatch([postback_event(build_skip(pending_schedule.id), reply_token="r2")])

        sent = replies(line_client)
        assert sent["r1"][0]["text"] == 'Skipped "Team meeting".'
        assert "already been processed" in sent["r2"][0]["text"]

    @pytest.mark.asyncio
    async def test_postback_from_unknown_user(self, dispatcher, line_client, pending_schedule):
        await dispatcher.dispatch([
            postback_event(build_skip(pending_schedule.id), user_id="Unobody0000000000000000000000000")
        ])

        [message] = replies(line_client)["reply-postback"]
        assert "/auth/google?userId=Unobody" in message["text"]

    @pytest.mark.asyncio
    async def test_malformed_postback_is_ignored(self, dispatcher, line_client, linked_account):
        await dispatcher.dispatch([postback_event("action=explode&scheduleId=x")])

        line_client.reply_message.assert_not_called()


# ---------------------------------------------------------------------------
# ISOLATION
# ---------------------------------------------------------------------------

class TestIsolation:

    @pytest.mark.asyncio
    async def test_failing_event_does_not_affect_sibling(
        self, dispatcher, line_client, extraction, pending_schedule, db
    ):
        extraction.extract_from_text.side_effect = RuntimeError("extractor crashed")

        await dispatcher.dispatch([
            text_event("meeting", reply_token="r-fail"),
            postback_event(build_skip(pending_schedule.id), reply_token="r-ok"),
        ])

        sent = replies(line_client)
        assert sent["r-fail"][0]["text"] == "Something went wrong. Please try again later."
        assert sent["r-ok"][0]["text"] == 'Skipped "Team meeting".'
        db.expire_all()
        assert db.get(PendingSchedule, pending_schedule.id).status == ScheduleStatus.SKIPPED.value

    @pytest.mark.asyncio
    async def test_malformed_and_unsupported_events_are_skipped(
        self, dispatcher, line_client, pending_schedule
    ):
        await dispatcher.dispatch([
            {"type": "message", "source": "not-an-object"},
            {"type": "follow", "replyToken": "r-follow", "source": {"type": "user", "userId": LINE_USER_ID}},
            postback_event(build_skip(pending_schedule.id), reply_token="r-ok"),
        ])

        assert list(replies(line_client)) == ["r-ok"]

    @pytest.mark.asyncio
    async def test_configuration_error_is_raised_after_siblings_finish(
        self, session_factory, line_client, extraction, auth_client, linked_account, pending_schedule, db
    ):
        dispatcher = WebhookDispatcher(
            session_factory=session_factory,
            line_client=line_client,
            extraction=extraction,
            auth_client=auth_client,
            vault=CryptoVault(key_hex=""),
            redirect_uri=TEST_REDIRECT_URI,
        )

        with pytest.raises(ConfigurationError):
            await dispatcher.dispatch([
                text_event("meeting", reply_token="r-config"),
                postback_event(build_skip(pending_schedule.id), reply_token="r-ok"),
            ])

        sent = replies(line_client)
        assert sent["r-config"][0]["text"] == "Something went wrong. Please try again later."
        assert sent["r-ok"][0]["text"] == 'Skipped "Team meeting".'
        extraction.extract_from_text.assert_not_called()
        db.expire_all()
        assert db.get(PendingSchedule, pending_schedule.id).status == ScheduleStatus.SKIPPED.value

    @pytest.mark.asyncio
    async def test_failed_error_reply_is_swallowed(self, dispatcher, line_client, extraction, linked_account):
        extraction.extract_from_text.side_effect = RuntimeError("extractor crashed")
        line_client.reply_message.side_effect = APIError("reply token expired", status_code=400)

        await dispatcher.dispatch([text_event("meeting")])

        assert line_client.reply_message.await_count == 1
