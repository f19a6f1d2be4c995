"""License decoding: container -> verified entitlement record."""

from __future__ import annotations

import base64
import binascii
import logging

from pydantic import ValidationError

from .authority import AuthorityKey, get_authority_key
from .envelope import verify_envelope
from .errors import InvalidToken, MalformedLicense, Stage
from .models import EntitlementRecord, LicenseClaims, LicenseContainer
from .token import decode_b64url, verify_token

logger = logging.getLogger("cluster_license.licensing.decoder")


def parse_license(data: bytes, authority: AuthorityKey | None = None) -> EntitlementRecord:
    """Parse a license file and verify it.

    *authority* defaults to the embedded license authority key.
    """
    try:
        container = LicenseContainer.model_validate_json(data)
    except ValidationError as exc:
        raise MalformedLicense(f"invalid license file: {exc}", Stage.CONTAINER) from exc
    return decode_license(container, authority)


def decode_license(
    container: LicenseContainer, authority: AuthorityKey | None = None,
) -> EntitlementRecord:
    """Verify both layers of *container* and return its entitlement.

    Raises:
        MalformedLicense: a base64, envelope or JSON layer is broken
            (``MalformedEnvelope`` for the envelope itself).
        BadSignature: the envelope is not signed solely by the authority.
        InvalidToken: the token is not bound to the license private key.
        AuthorityKeyError: the embedded authority key cannot be loaded.
    """
    authorization = _strip_newlines(container.authorization)
    try:
        envelope = base64.b64decode(authorization, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedLicense(
            f"failed to decode key authorization: {exc}", Stage.AUTHORIZATION,
        ) from exc
    if base64.b64encode(envelope).decode("ascii") != authorization:
        raise MalformedLicense("key authorization is not canonical base64", Stage.AUTHORIZATION)

    payload = verify_envelope(envelope, authority or get_authority_key())

    try:
        claims = LicenseClaims.model_validate_json(payload)
    except ValidationError as exc:
        raise MalformedLicense(f"invalid license claims: {exc}", Stage.CLAIMS) from exc

    try:
        secret = decode_b64url(container.private_key)
    except (binascii.Error, ValueError) as exc:
        raise MalformedLicense(
            f"failed to decode license private key: {exc}", Stage.PRIVATE_KEY,
        ) from exc
    if not secret:
        raise MalformedLicense("license private key is empty", Stage.PRIVATE_KEY)

    try:
        bound = verify_token(secret, claims.expiration_message, claims.token)
    except (binascii.Error, ValueError) as exc:
        raise MalformedLicense(f"failed to decode license token: {exc}", Stage.TOKEN) from exc
    if not bound:
        raise InvalidToken("token does not match the license private key")

    record = claims.entitlement()
    logger.info(
        "Verified %s license (tier=%s, max_engines=%d) expiring %s",
        record.license_type or "unknown", record.tier or "-", record.max_engines,
        record.expiration_message,
    )
    return record


def _strip_newlines(value: str) -> str:
    return value.replace("\r", "").replace("\n", "")
