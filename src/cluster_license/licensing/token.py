"""HMAC-SHA256 token binding a license expiration to its private key."""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime


def format_expiration(expiration: datetime) -> str:
    """Render *expiration* the way the license authority signs it.

    RFC 3339 at seconds precision, ``Z`` for a zero UTC offset and
    ``+hh:mm`` / ``-hh:mm`` otherwise. Any other rendering yields a
    different HMAC message, so the token of a genuine license would no
    longer match.
    """
    offset = expiration.utcoffset()
    if offset is None:
        raise ValueError("expiration must carry a UTC offset")

    stamp = (
        f"{expiration.year:04d}-{expiration.month:02d}-{expiration.day:02d}"
        f"T{expiration.hour:02d}:{expiration.minute:02d}:{expiration.second:02d}"
    )
    seconds = int(offset.total_seconds())
    if seconds == 0:
        return stamp + "Z"
    sign = "-" if seconds < 0 else "+"
    hours, rest = divmod(abs(seconds), 3600)
    return f"{stamp}{sign}{hours:02d}:{rest // 60:02d}"


def bind_token(secret: bytes, message: str) -> str:
    """Compute the base64url token for *message* keyed by *secret*."""
    digest = hmac.new(secret, message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def verify_token(secret: bytes, message: str, token: str) -> bool:
    """Check that *token* was produced by :func:`bind_token` for this pair.

    Raises ``ValueError`` (``binascii.Error``) if *token* is not valid
    base64url.
    """
    candidate = decode_b64url(token)
    expected = hmac.new(secret, message.encode("utf-8"), hashlib.sha256).digest()

    # Constant-time comparison
    return hmac.compare_digest(expected, candidate)


def decode_b64url(value: str) -> bytes:
    """Strict padded base64url decoding."""
    return base64.b64decode(value.encode("ascii"), altchars=b"-_", validate=True)
