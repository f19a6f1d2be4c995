"""License issuing utility.

Vendor-side tool for creating signed license files. The license authority
does this in production; here it serves development and testing.
"""

from __future__ import annotations

import base64
import json
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .authority import AuthorityKey, key_id_for
from .envelope import SIGNATURE_ALGORITHMS, jose_b64encode
from .token import bind_token, format_expiration

PrivateKey = RSAPrivateKey | EllipticCurvePrivateKey

_EC_ALGORITHMS = {"secp256r1": "ES256", "secp384r1": "ES384", "secp521r1": "ES512"}
_JWK_FIELDS = ("kty", "crv", "x", "y", "n", "e")


def generate_signing_key(kind: str = "ec") -> PrivateKey:
    """Create a fresh authority signing key (``ec`` P-256 or ``rsa`` 2048)."""
    if kind == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)
    if kind == "ec":
        return ec.generate_private_key(ec.SECP256R1())
    raise ValueError(f"unknown key kind {kind!r}")


def authority_for(signing_key: PrivateKey) -> AuthorityKey:
    """The trusted-key view of *signing_key*, for verifying what it signs."""
    return AuthorityKey.from_public_key(signing_key.public_key())


def default_algorithm(signing_key: PrivateKey) -> str:
    if isinstance(signing_key, RSAPrivateKey):
        return "RS256"
    return _EC_ALGORITHMS[signing_key.curve.name]


def signature_entry(
    payload: str, signing_key: PrivateKey, algorithm: str | None = None,
) -> dict[str, Any]:
    """Sign the base64url *payload* and describe the signer with a JWK."""
    alg_name = algorithm or default_algorithm(signing_key)
    alg = SIGNATURE_ALGORITHMS[alg_name]
    public_key = signing_key.public_key()

    jwk = {
        name: value for name, value in json.loads(alg.to_jwk(public_key)).items()
        if name in _JWK_FIELDS
    }
    jwk["kid"] = key_id_for(public_key)

    protected = jose_b64encode(json.dumps({
        "formatLength": len(payload),
        "formatTail": "",
        "time": format_expiration(datetime.now(UTC)),
    }, separators=(",", ":")).encode())
    signature = alg.sign(f"{protected}.{payload}".encode("ascii"), signing_key)
    return {
        "header": {"alg": alg_name, "jwk": jwk},
        "protected": protected,
        "signature": jose_b64encode(signature),
    }


def sign_envelope(
    payload: bytes, *signing_keys: PrivateKey, algorithm: str | None = None,
) -> bytes:
    """Wrap *payload* in a JWS JSON envelope with one entry per key."""
    if not signing_keys:
        raise ValueError("at least one signing key is required")
    encoded = jose_b64encode(payload)
    envelope = {
        "payload": encoded,
        "signatures": [signature_entry(encoded, k, algorithm) for k in signing_keys],
    }
    return json.dumps(envelope, separators=(",", ":")).encode()


def issue_license(
    signing_key: PrivateKey,
    *,
    expires_days: int = 30,
    expiration: datetime | None = None,
    max_engines: int = 10,
    license_type: str = "Online",
    tier: str = "Production",
    scanning_enabled: bool = False,
    secret: bytes | None = None,
    key_id: str = "",
) -> bytes:
    """Issue a license file (container JSON) signed by *signing_key*.

    Args:
        signing_key: Authority private key used for the envelope.
        expires_days: Days until expiry when *expiration* is not given.
        expiration: Explicit expiration (must be timezone-aware).
        max_engines: Engine capacity granted by the license.
        license_type: Free-form license type string.
        tier: Free-form tier string.
        scanning_enabled: Whether image scanning is licensed.
        secret: Per-license HMAC secret; random 32 bytes by default.
        key_id: Informational key id stored in the container.

    Returns:
        The license file bytes.
    """
    if expiration is None:
        expiration = datetime.now(UTC).replace(microsecond=0) + timedelta(days=expires_days)
    secret = secret if secret is not None else secrets.token_bytes(32)
    message = format_expiration(expiration)

    claims = {
        "expiration": message,
        "token": bind_token(secret, message),
        "maxEngines": max_engines,
        "licenseType": license_type,
        "tier": tier,
        "scanningEnabled": scanning_enabled,
    }
    envelope = sign_envelope(json.dumps(claims).encode(), signing_key)
    container = {
        "key_id": key_id or secrets.token_hex(8),
        "private_key": base64.urlsafe_b64encode(secret).decode("ascii"),
        "authorization": base64.b64encode(envelope).decode("ascii"),
    }
    return json.dumps(container).encode()
