"""HMAC signing of webhook payloads."""
from __future__ import annotations

import hmac
from hashlib import sha256

SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
DELIVERY_ID_HEADER = "X-Webhook-Delivery-Id"


def sign(payload: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``payload`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, sha256).hexdigest()


def verify(payload: bytes, secret: str, signature: str) -> bool:
    """Check a received signature in constant time."""
    return hmac.compare_digest(sign(payload, secret), signature.strip().lower())
