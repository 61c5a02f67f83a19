"""
LINE Webhook Schemas - inbound event payloads.

Example delivery:
{
    "destination": "Uxxxxxxxx",
    "events": [
        {
            "type": "message",
            "replyToken": "nHuyWiB7yP5Zw52FIkcQobQuGDXCTA",
            "source": {"type": "user", "userId": "U4af4980629..."},
            "message": {"id": "444573844083572737", "type": "text", "text": "meeting tomorrow 3pm"},
            "webhookEventId": "01FZ74A0TDDPYRVKNK77XKC3ZR",
            "deliveryContext": {"isRedelivery": false}
        },
        {
            "type": "postback",
            "replyToken": "b60d432864f44d079f6d8efe86cf404b",
            "source": {"type": "user", "userId": "U4af4980629..."},
            "postback": {"data": "action=skip&scheduleId=..."}
        }
    ]
}

The payload keeps events as raw dicts. Each event is validated on its own
inside the dispatcher so one malformed event cannot reject the batch.

Reference: https://developers.line.biz/en/reference/messaging-api/#webhook-event-objects
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class EventSource(BaseModel):
    """Who sent the event (user, group or room)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(..., description="user, group or room")
    user_id: Optional[str] = Field(None, alias="userId")


class EventMessage(BaseModel):
    """Message object of a message event."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="LINE message id")
    type: str = Field(..., description="text, image, video, sticker, ...")
    text: Optional[str] = Field(None, description="Only for type=text")


class PostbackContent(BaseModel):
    """Postback object of a postback event (button tap)."""
    model_config = ConfigDict(extra="ignore")

    data: str = Field(..., description="Action descriptor set on the button")


class DeliveryContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_redelivery: bool = Field(False, alias="isRedelivery")


class WebhookEvent(BaseModel):
    """One webhook event."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(..., description="message, postback, follow, ...")
    reply_token: Optional[str] = Field(None, alias="replyToken")
    source: Optional[EventSource] = Field(None)
    message: Optional[EventMessage] = Field(None)
    postback: Optional[PostbackContent] = Field(None)
    webhook_event_id: Optional[str] = Field(None, alias="webhookEventId")
    delivery_context: Optional[DeliveryContext] = Field(None, alias="deliveryContext")

    @property
    def user_id(self) -> Optional[str]:
        return self.source.user_id if self.source else None


class WebhookPayload(BaseModel):
    """Top-level body of one webhook delivery."""
    model_config = ConfigDict(extra="ignore")

    destination: Optional[str] = Field(None)
    events: List[Dict[str, Any]] = Field(default_factory=list)
