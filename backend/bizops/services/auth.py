"""
Access tokens for the API.

Credentials are issued by the hosted auth provider; this module only signs
and verifies the compact bearer token the API accepts:

    base64url(json payload) "." hex(hmac-sha256(payload))

Payload keys: sub (user id), org (org id), role, exp (unix seconds).
"""

import base64
import hashlib
import hmac
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "bizops-dev-secret-change-in-prod")
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "24"))


def _sign(payload: bytes) -> str:
    return hmac.new(JWT_SECRET.encode(), payload, hashlib.sha256).hexdigest()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    exp = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=JWT_EXPIRY_HOURS))
    body = {**data, "exp": int(exp.timestamp())}
    raw = json.dumps(body, separators=(",", ":"), sort_keys=True).encode()
    encoded = base64.urlsafe_b64encode(raw).rstrip(b"=")
    return f"{encoded.decode()}.{_sign(encoded)}"


def decode_access_token(token: str) -> Optional[dict]:
    """Return the payload, or None when the token is malformed, tampered or expired."""
    try:
        encoded, sig = token.rsplit(".", 1)
    except ValueError:
        return None
    if not hmac.compare_digest(sig, _sign(encoded.encode())):
        return None
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except (ValueError, json.JSONDecodeError):
        return None
    if int(payload.get("exp", 0)) < int(datetime.now(timezone.utc).timestamp()):
        logger.info("Rejected expired token for sub=%s", payload.get("sub"))
        return None
    return payload
