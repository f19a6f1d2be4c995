"""Signed envelope (JWS JSON serialization) verification.

The authority wraps license claims in a JWS using the JSON serialization:

    {"payload": "<b64url>",
     "signatures": [{"header": {"alg": "RS256", "jwk": {...}},
                     "protected": "<b64url>",
                     "signature": "<b64url>"}]}

Each signature covers ``protected + "." + payload``. The signer's public key
travels in the header, either as a JWK (whose ``kid`` must match the key
material) or as the first certificate of an ``x5c`` chain. A license is only
trusted when exactly one signature is present and that signer is the
authority key.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from jwt.algorithms import Algorithm, ECAlgorithm, RSAAlgorithm
from jwt.exceptions import InvalidKeyError

from .authority import AuthorityKey, PublicKey, key_id_for
from .errors import BadSignature, MalformedEnvelope

logger = logging.getLogger("cluster_license.licensing.envelope")

SIGNATURE_ALGORITHMS: dict[str, Algorithm] = {
    "RS256": RSAAlgorithm(RSAAlgorithm.SHA256),
    "RS384": RSAAlgorithm(RSAAlgorithm.SHA384),
    "RS512": RSAAlgorithm(RSAAlgorithm.SHA512),
    "ES256": ECAlgorithm(ECAlgorithm.SHA256),
    "ES384": ECAlgorithm(ECAlgorithm.SHA384),
    "ES512": ECAlgorithm(ECAlgorithm.SHA512),
}

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")

# Base64url-encoded integers in a JWK; decoded strictly to keep them canonical
_JWK_INTEGER_PARAMS = ("n", "e", "x", "y")


def jose_b64encode(data: bytes) -> str:
    """Unpadded base64url, as used inside JWS."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def jose_b64decode(value: str) -> bytes:
    """Decode unpadded base64url, rejecting non-canonical encodings."""
    if not _B64URL_RE.fullmatch(value):
        raise ValueError("invalid base64url characters")
    raw = base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    if jose_b64encode(raw) != value:
        raise ValueError("non-canonical base64url encoding")
    return raw


def verify_envelope(envelope: bytes, trusted: AuthorityKey) -> bytes:
    """Verify *envelope* against the *trusted* key and return its payload.

    Raises:
        MalformedEnvelope: the structure cannot be parsed.
        BadSignature: a signature does not verify, there is not exactly one
            signer, or the signer is not the trusted key.
    """
    payload, claims, signatures = _parse(envelope)

    signers: list[str] = []
    for entry in signatures:
        signers.append(_verify_entry(entry, payload))

    if len(signers) != 1:
        raise BadSignature(f"expected exactly one signer, found {len(signers)}")
    if signers[0] != trusted.key_id:
        raise BadSignature(f"envelope signed by unrecognized key {signers[0]}")

    logger.debug("License envelope signed by %s", signers[0])
    return claims


def _parse(envelope: bytes) -> tuple[str, bytes, list[dict[str, Any]]]:
    try:
        doc = json.loads(envelope)
    except ValueError as exc:
        raise MalformedEnvelope(f"envelope is not valid JSON: {exc}") from exc

    if not isinstance(doc, dict):
        raise MalformedEnvelope("envelope must be a JSON object")

    payload = doc.get("payload")
    if not isinstance(payload, str):
        raise MalformedEnvelope("missing payload")
    try:
        claims = jose_b64decode(payload)
    except ValueError as exc:
        raise MalformedEnvelope(f"invalid payload encoding: {exc}") from exc

    signatures = doc.get("signatures")
    if not isinstance(signatures, list) or not signatures:
        raise MalformedEnvelope("missing signatures")
    for entry in signatures:
        if not isinstance(entry, dict):
            raise MalformedEnvelope("signature entry must be a JSON object")
        if not isinstance(entry.get("header"), dict):
            raise MalformedEnvelope("signature entry is missing its header")
        if not isinstance(entry.get("signature"), str):
            raise MalformedEnvelope("signature entry is missing its signature")
        protected = entry.get("protected", "")
        if not isinstance(protected, str) or not _B64URL_RE.fullmatch(protected):
            raise MalformedEnvelope("protected header must be a base64url string")

    return payload, claims, signatures


def _verify_entry(entry: dict[str, Any], payload: str) -> str:
    """Verify one signature entry and return the signer's key id."""
    header = entry["header"]
    alg_name = header.get("alg")
    algorithm = SIGNATURE_ALGORITHMS.get(alg_name) if isinstance(alg_name, str) else None
    if algorithm is None:
        raise MalformedEnvelope(f"unsupported signature algorithm {alg_name!r}")

    key = _signer_key(header, algorithm)

    try:
        signature = jose_b64decode(entry["signature"])
    except ValueError as exc:
        raise MalformedEnvelope(f"invalid signature encoding: {exc}") from exc

    protected = entry.get("protected", "")
    signing_input = f"{protected}.{payload}".encode("ascii")
    if not algorithm.verify(signing_input, key, signature):
        raise BadSignature("signature verification failed")
    return key_id_for(key)


def _signer_key(header: dict[str, Any], algorithm: Algorithm) -> PublicKey:
    expected = RSAPublicKey if isinstance(algorithm, RSAAlgorithm) else EllipticCurvePublicKey

    chain = header.get("x5c")
    jwk = header.get("jwk")
    if chain:
        key = _key_from_chain(chain)
    elif isinstance(jwk, dict):
        key = _key_from_jwk(jwk, algorithm)
    else:
        raise MalformedEnvelope("signature header carries no public key")

    if not isinstance(key, expected):
        raise MalformedEnvelope(f"{type(key).__name__} cannot verify {header['alg']}")
    return key


def _key_from_jwk(jwk: dict[str, Any], algorithm: Algorithm) -> PublicKey:
    for param in _JWK_INTEGER_PARAMS:
        value = jwk.get(param)
        if value is None:
            continue
        if not isinstance(value, str):
            raise MalformedEnvelope(f"JWK parameter {param!r} must be a string")
        try:
            jose_b64decode(value)
        except ValueError as exc:
            raise MalformedEnvelope(f"JWK parameter {param!r}: {exc}") from exc

    try:
        key = algorithm.from_jwk(jwk)
    except (InvalidKeyError, KeyError, TypeError, ValueError) as exc:
        raise MalformedEnvelope(f"invalid JWK: {exc}") from exc

    if not isinstance(key, (RSAPublicKey, EllipticCurvePublicKey)):
        raise MalformedEnvelope("JWK must be a public key")

    kid = jwk.get("kid")
    if not isinstance(kid, str) or kid != key_id_for(key):
        raise MalformedEnvelope("JWK key ID specified does not match")
    return key


def _key_from_chain(chain: Any) -> PublicKey:
    if not isinstance(chain, list) or not isinstance(chain[0], str):
        raise MalformedEnvelope("x5c must be a list of base64 certificates")
    try:
        cert = x509.load_der_x509_certificate(base64.b64decode(chain[0], validate=True))
    except (binascii.Error, ValueError) as exc:
        raise MalformedEnvelope(f"invalid x5c certificate: {exc}") from exc

    key = cert.public_key()
    if not isinstance(key, (RSAPublicKey, EllipticCurvePublicKey)):
        raise MalformedEnvelope("x5c certificate key type not supported")
    return key
