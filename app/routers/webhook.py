"""
Webhook Router - LINE Messaging API delivery endpoint.

Endpoints:
==========
- POST /webhook → verify X-Line-Signature, run all events, answer "OK"

LINE expects a 2xx quickly and retries otherwise. All events are handled
before the response is sent; per-event failures are answered in chat and
never turn into a non-200 status.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.core.signature import verified_body
from app.deps import get_dispatcher
from app.environments.line.schemas import WebhookPayload
from app.services.webhook_service import WebhookDispatcher


logger = logging.getLogger("linecal.routers.webhook")

router = APIRouter(tags=["webhook"])


@router.post("/webhook", response_class=PlainTextResponse)
async def line_webhook(
    raw_body: bytes = Depends(verified_body),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    Receive a batch of LINE events.

    The body is parsed only after the signature over the raw bytes has
    been verified by the verified_body dependency.

    Returns:
        "OK" once every event has been handled

    Raises:
        403: Missing or invalid signature
        400: Signed body is not a valid webhook payload
        500: Missing secret material (e.g. ENCRYPTION_KEY) while handling an event
    """
    try:
        payload = WebhookPayload.model_validate(json.loads(raw_body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        logger.warning("Webhook body is not a valid LINE payload")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    await dispatcher.dispatch(payload.events)
    return "OK"
