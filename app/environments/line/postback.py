"""
Postback action descriptors - the data carried by interactive buttons.

Wire format:
============
    action=register&scheduleId=0f6c...&calendarId=team%40group.calendar.google.com

Flat key=value pairs joined by "&", values percent-encoded. The parser is
strict: it returns one tagged action object or raises PostbackParseError,
so handlers never work with a loose key/value map.

Actions:
========
- show_calendars: scheduleId
- register:       scheduleId, calendarId
- skip:           scheduleId
"""

from dataclasses import dataclass
from typing import Dict, Union
from urllib.parse import quote, unquote
from uuid import UUID

ACTION_SHOW_CALENDARS = "show_calendars"
ACTION_REGISTER = "register"
ACTION_SKIP = "skip"


class PostbackParseError(ValueError):
    """Raised for malformed descriptors and unknown action names."""


@dataclass(frozen=True)
class ShowCalendarsAction:
    schedule_id: UUID


@dataclass(frozen=True)
class RegisterAction:
    schedule_id: UUID
    calendar_id: str


@dataclass(frozen=True)
class SkipAction:
    schedule_id: UUID


PostbackAction = Union[ShowCalendarsAction, RegisterAction, SkipAction]


# ---------------------------------------------------------------------------
# PARSING
# ---------------------------------------------------------------------------

def _split_pairs(data: str) -> Dict[str, str]:
    if not data:
        raise PostbackParseError("Empty postback data")

    params: Dict[str, str] = {}
    for pair in data.split("&"):
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise PostbackParseError(f"Malformed postback pair: {pair!r}")
        if key in params:
            raise PostbackParseError(f"Duplicate postback key: {key!r}")
        params[key] = unquote(value)
    return params


def _require(params: Dict[str, str], key: str) -> str:
    value = params.get(key)
    if not value:
        raise PostbackParseError(f"Missing postback parameter: {key}")
    return value


def _schedule_id(params: Dict[str, str]) -> UUID:
    raw = _require(params, "scheduleId")
    try:
        return UUID(raw)
    except ValueError:
        raise PostbackParseError(f"Invalid scheduleId: {raw!r}")


def parse_postback(data: str) -> PostbackAction:
    """
    Parse a button's postback data into an action.

    Args:
        data: Raw postback.data string from the webhook event

    Returns:
        ShowCalendarsAction, RegisterAction or SkipAction

    Raises:
        PostbackParseError: On malformed input, missing parameters or an
                            unknown action name
    """
    params = _split_pairs(data)
    action = _require(params, "action")

    if action == ACTION_SHOW_CALENDARS:
        return ShowCalendarsAction(schedule_id=_schedule_id(params))
    if action == ACTION_REGISTER:
        return RegisterAction(
            schedule_id=_schedule_id(params),
            calendar_id=_require(params, "calendarId"),
        )
    if action == ACTION_SKIP:
        return SkipAction(schedule_id=_schedule_id(params))

    raise PostbackParseError(f"Unknown postback action: {action!r}")


# ---------------------------------------------------------------------------
# BUILDING
# ---------------------------------------------------------------------------

def _encode(params: Dict[str, str]) -> str:
    return "&".join(f"{key}={quote(str(value), safe='')}" for key, value in params.items())


def build_show_calendars(schedule_id: UUID) -> str:
    return _encode({"action": ACTION_SHOW_CALENDARS, "scheduleId": str(schedule_id)})


def build_register(schedule_id: UUID, calendar_id: str) -> str:
    return _encode({
        "action": ACTION_REGISTER,
        "scheduleId": str(schedule_id),
        "calendarId": calendar_id,
    })


def build_skip(schedule_id: UUID) -> str:
    return _encode({"action": ACTION_SKIP, "scheduleId": str(schedule_id)})
