"""
Identity provider webhook signature verification (Svix scheme).

The signed content is "{svix-id}.{svix-timestamp}.{raw body}", signed with
HMAC-SHA256 using the base64 secret that follows the "whsec_" prefix. The
svix-signature header holds space separated "v1,<base64 signature>" entries.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Mapping, Optional

from fxdesk_api.core.errors import BusinessRuleError

SECRET_PREFIX = "whsec_"
SIGNATURE_VERSION = "v1"


class WebhookVerificationError(BusinessRuleError):
    """Signature or timestamp did not verify."""


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith(SECRET_PREFIX):
        secret = secret[len(SECRET_PREFIX):]
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError):
        raise WebhookVerificationError("Invalid signature")


# PUBLIC_INTERFACE
def sign_payload(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Return the base64 v1 signature for a payload."""
    signed = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(_secret_bytes(secret), signed, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


# PUBLIC_INTERFACE
def verify_webhook(
    secret: Optional[str],
    headers: Mapping[str, str],
    body: bytes,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Verify a Svix-signed payload and return the decoded JSON event.

    Raises:
        BusinessRuleError: "Missing Svix headers" when a header is absent,
            "Invalid signature" for a bad signature, stale timestamp or body.
    """
    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signature_header = headers.get("svix-signature")
    if not msg_id or not timestamp or not signature_header:
        raise BusinessRuleError("Missing Svix headers")
    if not secret:
        raise WebhookVerificationError("Invalid signature")

    try:
        ts = int(timestamp)
    except ValueError:
        raise WebhookVerificationError("Invalid signature")
    current = time.time() if now is None else now
    if abs(current - ts) > tolerance_seconds:
        raise WebhookVerificationError("Invalid signature")

    expected = sign_payload(secret, msg_id, timestamp, body)
    for entry in signature_header.split(" "):
        version, _, candidate = entry.partition(",")
        if version == SIGNATURE_VERSION and hmac.compare_digest(candidate, expected):
            break
    else:
        raise WebhookVerificationError("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise WebhookVerificationError("Invalid signature")
    if not isinstance(event, dict):
        raise BusinessRuleError("Webhook payload must be a JSON object")
    return event
