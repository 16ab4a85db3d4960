from __future__ import annotations

"""HMAC signatures for partner webhooks."""

import hashlib
import hmac


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature over the raw body."""
    if not signature:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(signature.strip().lower(), expected)
