"""
LINE Messaging API Client - replies and message content.

Only two endpoints are used:
- POST /v2/bot/message/reply          → answer an inbound event
- GET  /v2/bot/message/{id}/content   → download an image the user sent

Reply tokens are single-use and expire shortly after the event, so
every handler replies exactly once per event.

Reference: https://developers.line.biz/en/reference/messaging-api/
"""

import logging
from typing import Any, Dict, List

import httpx

from app.environments.base import APIError


logger = logging.getLogger("linecal.environments.line")

# LINE rejects a reply with more than 5 message objects
MAX_REPLY_MESSAGES = 5


class LineMessagingClient:
    """
    Async client for the LINE Messaging API.

    Example:
        client = LineMessagingClient(channel_access_token=settings.LINE_CHANNEL_ACCESS_TOKEN)
        await client.reply_message(event.reply_token, [text_message("Hi!")])
    """

    API_BASE_URL = "https://api.line.me/v2/bot"
    DATA_API_BASE_URL = "https://api-data.line.me/v2/bot"

    def __init__(self, channel_access_token: str, timeout: float = 30.0):
        self.channel_access_token = channel_access_token
        self.timeout = timeout

        if not self.channel_access_token:
            logger.warning("LINE_CHANNEL_ACCESS_TOKEN not configured; replies will fail")

    def _get_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.channel_access_token}"}

    async def reply_message(self, reply_token: str, messages: List[Dict[str, Any]]) -> None:
        """
        Send messages in reply to an inbound event.

        Args:
            reply_token: Token from the webhook event
            messages: LINE message objects (see app/environments/line/messages.py)

        Raises:
            APIError: If LINE rejects the reply
        """
        if len(messages) > MAX_REPLY_MESSAGES:
            logger.warning(f"Truncating reply from {len(messages)} to {MAX_REPLY_MESSAGES} messages")
            messages = messages[:MAX_REPLY_MESSAGES]

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.API_BASE_URL}/message/reply",
                    headers=self._get_headers(),
                    json={"replyToken": reply_token, "messages": messages},
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error sending LINE reply: {e}")
                raise APIError(f"Network error: {e}")

        if response.status_code != 200:
            logger.error(f"LINE reply failed: {response.status_code} - {response.text}")
            raise APIError(
                f"LINE reply failed: {response.text}",
                status_code=response.status_code,
                response=response.text,
            )

    async def get_message_content(self, message_id: str) -> tuple[bytes, str]:
        """
        Download the binary content of an image message.

        Args:
            message_id: LINE message id

        Returns:
            (content bytes, MIME type)

        Raises:
            APIError: If the content cannot be fetched
        """
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    f"{self.DATA_API_BASE_URL}/message/{message_id}/content",
                    headers=self._get_headers(),
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error fetching LINE content: {e}")
                raise APIError(f"Network error: {e}")

        if response.status_code != 200:
            logger.error(f"LINE content fetch failed: {response.status_code}")
            raise APIError(
                "LINE content fetch failed",
                status_code=response.status_code,
                response=response.text,
            )

        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0]
        return response.content, mime_type
