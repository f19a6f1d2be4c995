"""The license authority's public key and key identifiers."""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey

from .errors import AuthorityKeyError

logger = logging.getLogger("cluster_license.licensing.authority")

PublicKey = RSAPublicKey | EllipticCurvePublicKey

# Official production license server public key (PEM, base64-wrapped)
DEFAULT_AUTHORITY_PUBLIC_KEY = (
    "LS0tLS1CRUdJTiBQVUJMSUMgS0VZLS0tLS0Ka2lkOiBKN0xEOjY3VlI6TDVIWjpVN0JBOjJPNEc6NEFMMzpPRjJOOkpIR0I6RUZUSDo1Q1ZROk1GRU86"
    "QUVJVAoKTUlJQ0lqQU5CZ2txaGtpRzl3MEJBUUVGQUFPQ0FnOEFNSUlDQ2dLQ0FnRUF5ZEl5K2xVN283UGNlWSs0K3MrQwpRNU9FZ0N5RjhDeEljUUlX"
    "dUs4NHBJaVpjaVk2NzMweUNZbndMU0tUbHcrVTZVQy9RUmVXUmlvTU5ORTVEczVUCllFWGJHRzZvbG0ycWRXYkJ3Y0NnKzJVVUgvT2NCOVd1UDZnUlBI"
    "cE1GTXN4RHpXd3ZheThKVXVIZ1lVTFVwbTEKSXYrbXE3bHA1blEvUnhyVDBLWlJBUVRZTEVNRWZHd20zaE1PL2dlTFBTK2hnS1B0SUhsa2c2L1djb3hU"
    "R29LUAo3OWQvd2FIWXhHTmw3V2hTbmVpQlN4YnBiUUFLazIxbGc3OThYYjd2WnlFQVRETXJSUjlNZUU2QWRqNUhKcFkzCkNveVJBUENtYUtHUkNLNHVv"
    "WlNvSXUwaEZWbEtVUHliYncwMDBHTyt3YTJLTjhVd2dJSW0waTVJMXVXOUdrcTQKempCeTV6aGdxdVVYYkc5YldQQU9ZcnE1UWE4MUR4R2NCbEp5SFlB"
    "cCtERFBFOVRHZzR6WW1YakpueFpxSEVkdQpHcWRldlo4WE1JMHVrZmtHSUkxNHdVT2lNSUlJclhsRWNCZi80Nkk4Z1FXRHp4eWNaZS9KR1grTEF1YXlY"
    "cnlyClVGZWhWTlVkWlVsOXdYTmFKQitrYUNxejVRd2FSOTNzR3crUVNmdEQwTnZMZTdDeU9IK0U2dmc2U3QvTmVUdmcKdjhZbmhDaVhJbFo4SE9mSXdO"
    "ZTd0RUYvVWN6NU9iUHlrbTN0eWxyTlVqdDBWeUFtdHRhY1ZJMmlHaWhjVVBybQprNGxWSVo3VkQvTFNXK2k3eW9TdXJ0cHNQWGNlMnBLRElvMzBsSkdo"
    "Ty8zS1VtbDJTVVpDcXpKMXlFbUtweXNICjVIRFc5Y3NJRkNBM2RlQWpmWlV2TjdVQ0F3RUFBUT09Ci0tLS0tRU5EIFBVQkxJQyBLRVktLS0tLQo="
)

_PEM_BLOCK_RE = re.compile(
    rb"-----BEGIN PUBLIC KEY-----\s*\n(.*?)-----END PUBLIC KEY-----", re.DOTALL,
)


def key_id_for(public_key: PublicKey) -> str:
    """Fingerprint a public key the way the authority names its keys.

    SHA-256 over the DER SubjectPublicKeyInfo, truncated to 240 bits,
    base32 without padding, in colon-separated groups of four.
    """
    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    encoded = base64.b32encode(hashlib.sha256(der).digest()[:30]).decode("ascii").rstrip("=")
    return ":".join(encoded[i:i + 4] for i in range(0, len(encoded), 4))


@dataclass(frozen=True)
class AuthorityKey:
    """A trusted signing key together with its identifier."""

    public_key: PublicKey
    key_id: str

    @classmethod
    def from_public_key(cls, public_key: PublicKey) -> AuthorityKey:
        if not isinstance(public_key, (RSAPublicKey, EllipticCurvePublicKey)):
            raise ValueError(f"unsupported authority key type {type(public_key).__name__}")
        return cls(public_key=public_key, key_id=key_id_for(public_key))

    @classmethod
    def from_pem(cls, pem: bytes) -> AuthorityKey:
        """Load a PEM public key, honouring an optional ``kid:`` header."""
        match = _PEM_BLOCK_RE.search(pem)
        if match is None:
            raise ValueError("no PUBLIC KEY block found")

        headers: dict[str, str] = {}
        body: list[bytes] = []
        for line in match.group(1).splitlines():
            line = line.strip()
            if not line:
                continue
            if b":" in line:
                name, _, value = line.partition(b":")
                headers[name.strip().decode("ascii")] = value.strip().decode("ascii")
            else:
                body.append(line)

        der = base64.b64decode(b"".join(body), validate=True)
        key = cls.from_public_key(serialization.load_der_public_key(der))  # type: ignore[arg-type]

        declared = headers.get("kid")
        if declared and declared != key.key_id:
            raise ValueError(f"PEM kid {declared} does not match key id {key.key_id}")
        return key


# ---------------------------------------------------------------------------
# Lazily loaded embedded key
# ---------------------------------------------------------------------------

_authority_key: AuthorityKey | None = None


def get_authority_key() -> AuthorityKey:
    """Return the embedded authority key, loading it on first use."""
    global _authority_key
    if _authority_key is None:
        try:
            pem = base64.b64decode(DEFAULT_AUTHORITY_PUBLIC_KEY, validate=True)
            _authority_key = AuthorityKey.from_pem(pem)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise AuthorityKeyError(
                f"failed to load the embedded license authority key: {exc}"
            ) from exc
        logger.debug("Loaded license authority key %s", _authority_key.key_id)
    return _authority_key


def reset_authority_key() -> None:
    """Drop the cached authority key (for testing)."""
    global _authority_key
    _authority_key = None
