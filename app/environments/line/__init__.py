"""
LINE Environment Module - Messaging API integration.

line/
├── client.py      # Reply + message content endpoints
├── messages.py    # Reply message builders (text, flex carousel, quick replies)
├── postback.py    # Button action descriptors (build + strict parse)
└── schemas.py     # Webhook event payloads
"""

from app.environments.line.client import LineMessagingClient
from app.environments.line.postback import (
    PostbackAction,
    PostbackParseError,
    RegisterAction,
    ShowCalendarsAction,
    SkipAction,
    parse_postback,
)
from app.environments.line.schemas import WebhookEvent, WebhookPayload

__all__ = [
    "LineMessagingClient",
    "PostbackAction",
    "PostbackParseError",
    "RegisterAction",
    "ShowCalendarsAction",
    "SkipAction",
    "parse_postback",
    "WebhookEvent",
    "WebhookPayload",
]
