"""
Webhook signature verification for the LINE Messaging API.

LINE signs every webhook delivery with HMAC-SHA256 over the request body,
keyed with the channel secret, and sends the base64 digest in the
X-Line-Signature header.

The digest MUST be computed over the exact bytes received. Parsing the
JSON and serializing it again can reorder keys or change escaping, which
breaks verification. The FastAPI dependency below therefore reads the raw
body before anything else touches it.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from app.core.config import settings
from app.core.encryption import ConfigurationError

logger = logging.getLogger("linecal.core.signature")

SIGNATURE_HEADER = "X-Line-Signature"


def compute_signature(raw_body: bytes, channel_secret: str) -> str:
    """Return base64(HMAC-SHA256(channel_secret, raw_body))."""
    digest = hmac.new(
        channel_secret.encode("utf-8"),
        raw_body,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    raw_body: Optional[bytes],
    channel_secret: str,
    signature: Optional[str],
) -> bool:
    """
    Decide whether a webhook delivery came from LINE.

    Args:
        raw_body: Unparsed request body bytes
        channel_secret: LINE channel secret
        signature: Value of the X-Line-Signature header

    Returns:
        True only if the signature matches. A missing header or a missing
        body is a rejection, not a reason to skip the check.

    Raises:
        ConfigurationError: If the channel secret is not configured
    """
    if not channel_secret:
        raise ConfigurationError("LINE_CHANNEL_SECRET is not set")

    if not signature or not raw_body:
        return False

    expected = compute_signature(raw_body, channel_secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def get_channel_secret() -> str:
    """FastAPI dependency returning the configured channel secret."""
    return settings.LINE_CHANNEL_SECRET


async def verified_body(
    request: Request,
    channel_secret: str = Depends(get_channel_secret),
) -> bytes:
    """
    FastAPI dependency that captures the raw body and verifies it.

    Returns:
        The raw body bytes, for the route to parse

    Raises:
        HTTPException 403: On a missing or invalid signature
        ConfigurationError: If the channel secret is not configured
    """
    if not channel_secret:
        raise ConfigurationError("LINE_CHANNEL_SECRET is not set")

    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not signature:
        logger.warning("Webhook rejected: no signature header")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No signature")

    if not raw_body:
        logger.warning("Webhook rejected: empty body")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No raw body")

    if not verify_signature(raw_body, channel_secret, signature):
        logger.warning("Webhook rejected: invalid signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    return raw_body
