"""Short-lived signed access tokens.

The external auth provider authenticates the user and the login service
issues these tokens with the shared secret; LabTrack only verifies them.
``scripts/issue_token.py`` issues one for local development. Format:
``base64url(v1:<user_id>:<expires_at>).base64url(hmac_sha256)``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time

_TOKEN_VERSION = "v1"


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def issue_access_token(*, user_id: str, secret: str, ttl_seconds: int = 3600, now: int | None = None) -> str:
    """Issue a user-bound signed token with an expiration."""
    issued_at = int(now if now is not None else time.time())
    expires_at = issued_at + max(1, ttl_seconds)
    payload = f"{_TOKEN_VERSION}:{user_id}:{expires_at}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return f"{_b64url_encode(payload)}.{_b64url_encode(signature)}"


def verify_access_token(*, token: str, secret: str, now: int | None = None) -> str | None:
    """Return the user id of a valid, unexpired token, otherwise None."""
    if "." not in token:
        return None

    payload_b64, sig_b64 = token.split(".", 1)
    try:
        payload = _b64url_decode(payload_b64)
        signature = _b64url_decode(sig_b64)
    except Exception:
        return None

    expected_sig = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    if not hmac.compare_digest(signature, expected_sig):
        return None

    try:
        version, rest = payload.decode("utf-8").split(":", 1)
        user_id, expires_at_raw = rest.rsplit(":", 1)
        expires_at = int(expires_at_raw)
    except Exception:
        return None

    if version != _TOKEN_VERSION or not user_id:
        return None

    current = int(now if now is not None else time.time())
    if current > expires_at:
        return None
    return user_id
