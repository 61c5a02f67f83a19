"""
LINE message builders - every reply the bot can send.

Each function returns a LINE message object (a plain dict) ready for
LineMessagingClient.reply_message(). Buttons carry postback data built by
app/environments/line/postback.py.

Message types used:
- text (optionally with quickReply items)
- flex carousel (one bubble per schedule candidate)

Reference: https://developers.line.biz/en/reference/messaging-api/#message-objects
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING
from urllib.parse import quote
from zoneinfo import ZoneInfo

from app.environments.line.postback import (
    build_register,
    build_show_calendars,
    build_skip,
)

if TYPE_CHECKING:
    from app.models.pending_schedule import PendingSchedule
    from app.services.schedule_service import CalendarChoice


# LINE platform limits
MAX_CAROUSEL_BUBBLES = 10
MAX_QUICK_REPLY_ITEMS = 13
MAX_ACTION_LABEL = 20
MAX_ALT_TEXT = 400

AUTH_PATH = "/auth/google"
CALLBACK_PATH = "/auth/google/callback"

ACCENT_COLOR = "#06C755"


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _to_local(value: datetime, tz_name: str) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name))


def format_schedule_time(
    start: datetime,
    end: Optional[datetime],
    tz_name: str,
) -> str:
    """
    Human-readable time range in the bot's time zone.

    "2026/10/18 (Sun) 15:00 - 16:00", or with the full end date when the
    event spans days. No end time renders the start only.
    """
    local_start = _to_local(start, tz_name)
    text = local_start.strftime("%Y/%m/%d (%a) %H:%M")

    if end is None:
        return text

    local_end = _to_local(end, tz_name)
    if local_end == local_start:
        return text
    if local_end.date() == local_start.date():
        return f"{text} - {local_end.strftime('%H:%M')}"
    return f"{text} - {local_end.strftime('%Y/%m/%d %H:%M')}"


def build_auth_url(redirect_uri: str, line_user_id: str) -> str:
    """Link that starts the OAuth flow, derived from the configured callback URI."""
    base = redirect_uri.replace(CALLBACK_PATH, "").rstrip("/")
    return f"{base}{AUTH_PATH}?userId={quote(line_user_id, safe='')}"


# ---------------------------------------------------------------------------
# TEXT REPLIES
# ---------------------------------------------------------------------------

def text_message(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def auth_message(auth_url: str) -> Dict[str, Any]:
    return text_message(
        "To add schedules to your calendar, please link your Google account first:\n"
        f"{auth_url}"
    )


def reauth_message(auth_url: str) -> Dict[str, Any]:
    return text_message(
        "Your Google authorization has expired or was revoked. "
        "Please link your Google account again:\n"
        f"{auth_url}"
    )


def nothing_found_message() -> Dict[str, Any]:
    return text_message(
        "I couldn't find any schedule in that message. "
        "Try including a date and time, e.g. \"Lunch with Ken tomorrow at 12:30\"."
    )


def error_message() -> Dict[str, Any]:
    return text_message("Something went wrong. Please try again later.")


def already_processed_message() -> Dict[str, Any]:
    return text_message("This schedule has already been processed or could not be found.")


def registration_success_message(title: str, calendar_name: str) -> Dict[str, Any]:
    return text_message(f"Added \"{title}\" to {calendar_name}.")


def skip_message(title: str) -> Dict[str, Any]:
    return text_message(f"Skipped \"{title}\".")


# ---------------------------------------------------------------------------
# SCHEDULE CAROUSEL
# ---------------------------------------------------------------------------

def _detail_row(label: str, value: str) -> Dict[str, Any]:
    return {
        "type": "box",
        "layout": "baseline",
        "spacing": "sm",
        "contents": [
            {"type": "text", "text": label, "color": "#AAAAAA", "size": "sm", "flex": 2},
            {"type": "text", "text": value, "wrap": True, "size": "sm", "flex": 5},
        ],
    }


def _schedule_bubble(schedule: "PendingSchedule", tz_name: str) -> Dict[str, Any]:
    rows = [_detail_row("When", format_schedule_time(
        schedule.start_datetime, schedule.end_datetime, tz_name
    ))]
    if schedule.location:
        rows.append(_detail_row("Where", schedule.location))
    if schedule.description:
        rows.append(_detail_row("Note", _truncate(schedule.description, 120)))

    return {
        "type": "bubble",
        "body": {
            "type": "box",
            "layout": "vertical",
            "spacing": "md",
            "contents": [
                {"type": "text", "text": schedule.title, "weight": "bold", "size": "lg", "wrap": True},
                {"type": "box", "layout": "vertical", "spacing": "sm", "contents": rows},
            ],
        },
        "footer": {
            "type": "box",
            "layout": "vertical",
            "spacing": "sm",
            "contents": [
                {
                    "type": "button",
                    "style": "primary",
                    "color": ACCENT_COLOR,
                    "action": {
                        "type": "postback",
                        "label": "Add to calendar",
                        "data": build_show_calendars(schedule.id),
                        "displayText": "Add to calendar",
                    },
                },
                {
                    "type": "button",
                    "style": "secondary",
                    "action": {
                        "type": "postback",
                        "label": "Skip",
                        "data": build_skip(schedule.id),
                        "displayText": "Skip",
                    },
                },
            ],
        },
    }


def schedule_carousel_message(
    schedules: Sequence["PendingSchedule"],
    tz_name: str,
) -> Dict[str, Any]:
    """
    Flex carousel with one bubble per pending schedule.

    Only the first MAX_CAROUSEL_BUBBLES schedules are shown; the rest stay
    PENDING in the database.
    """
    shown = list(schedules)[:MAX_CAROUSEL_BUBBLES]
    alt_text = _truncate(
        f"Found {len(schedules)} schedule(s): " + ", ".join(s.title for s in shown),
        MAX_ALT_TEXT,
    )
    return {
        "type": "flex",
        "altText": alt_text,
        "contents": {
            "type": "carousel",
            "contents": [_schedule_bubble(s, tz_name) for s in shown],
        },
    }


# ---------------------------------------------------------------------------
# CALENDAR SELECTION
# ---------------------------------------------------------------------------

def calendar_selection_message(
    title: str,
    schedule_id,
    calendars: Sequence["CalendarChoice"],
) -> Dict[str, Any]:
    """Text prompt with one quick-reply button per calendar."""
    items: List[Dict[str, Any]] = []
    for calendar in list(calendars)[:MAX_QUICK_REPLY_ITEMS]:
        items.append({
            "type": "action",
            "action": {
                "type": "postback",
                "label": _truncate(calendar.name, MAX_ACTION_LABEL),
                "data": build_register(schedule_id, calendar.id),
                "displayText": calendar.name,
            },
        })

    message = text_message(f"Which calendar should \"{title}\" go to?")
    message["quickReply"] = {"items": items}
    return message
