import json

import pytest

from fxdesk_api.core.errors import BusinessRuleError
from fxdesk_api.services.webhooks import WebhookVerificationError, sign_payload, verify_webhook

from .conftest import WEBHOOK_SECRET

NOW = 1_700_000_000
BODY = json.dumps({"type": "organization.created", "data": {"id": "org_1", "slug": "acme", "name": "Acme"}}).encode()


def _headers(body=BODY, timestamp=NOW, secret=WEBHOOK_SECRET):
    signature = sign_payload(secret, "msg_1", str(timestamp), body)
    return {"svix-id": "msg_1", "svix-timestamp": str(timestamp), "svix-signature": f"v1,{signature}"}


def test_valid_signature_returns_event():
    event = verify_webhook(WEBHOOK_SECRET, _headers(), BODY, now=NOW)
    assert event["type"] == "organization.created"
    assert event["data"]["slug"] == "acme"


def test_any_matching_signature_entry_is_accepted():
    headers = _headers()
    headers["svix-signature"] = "v1,bm9wZQ== " + headers["svix-signature"]
    assert verify_webhook(WEBHOOK_SECRET, headers, BODY, now=NOW)["type"] == "organization.created"


def test_missing_headers():
    with pytest.raises(BusinessRuleError, match="Missing Svix headers"):
        verify_webhook(WEBHOOK_SECRET, {"svix-id": "msg_1"}, BODY, now=NOW)


def test_tampered_body_is_rejected():
    with pytest.raises(WebhookVerificationError, match="Invalid signature"):
        verify_webhook(WEBHOOK_SECRET, _headers(), BODY + b" ", now=NOW)


def test_stale_timestamp_is_rejected():
    with pytest.raises(WebhookVerificationError):
        verify_webhook(WEBHOOK_SECRET, _headers(), BODY, tolerance_seconds=300, now=NOW + 301)


def test_missing_secret_is_rejected():
    with pytest.raises(WebhookVerificationError):
        verify_webhook(None, _headers(), BODY, now=NOW)


def test_non_object_payload_is_rejected():
    body = b"[]"
    with pytest.raises(BusinessRuleError, match="Webhook payload must be a JSON object"):
        verify_webhook(WEBHOOK_SECRET, _headers(body), body, now=NOW)
