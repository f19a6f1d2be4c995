"""Failure taxonomy for license verification and distribution."""

from __future__ import annotations

from enum import StrEnum


class Stage(StrEnum):
    """Where in the pipeline a failure happened."""

    CONTAINER = "container"
    AUTHORIZATION = "authorization"
    ENVELOPE = "envelope"
    SIGNATURE = "signature"
    CLAIMS = "claims"
    PRIVATE_KEY = "private_key"
    TOKEN = "token"
    AUTHORITY_KEY = "authority_key"
    DISTRIBUTION = "distribution"


class LicenseError(Exception):
    """Base class for every failure raised by the licensing engine."""

    default_stage: Stage = Stage.CONTAINER

    def __init__(self, message: str, stage: Stage | None = None) -> None:
        self.stage = stage or self.default_stage
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.stage.value}: {self.args[0]}"


class MalformedLicense(LicenseError):
    """A base64, envelope or JSON layer could not be decoded."""


class MalformedEnvelope(MalformedLicense):
    """The signed envelope is not a well-formed signature structure."""

    default_stage = Stage.ENVELOPE


class UntrustedLicense(LicenseError):
    """The license decoded cleanly but cannot be trusted."""


class BadSignature(UntrustedLicense):
    """Wrong signer count or a signer other than the authority key."""

    default_stage = Stage.SIGNATURE


class InvalidToken(UntrustedLicense):
    """The token is not bound to the license secret and expiration."""

    default_stage = Stage.TOKEN


class AuthorityKeyError(LicenseError):
    """The embedded authority public key could not be loaded."""

    default_stage = Stage.AUTHORITY_KEY


class DistributionFailed(LicenseError):
    """Persisting a license to the host or the cluster failed."""

    default_stage = Stage.DISTRIBUTION


class ConfigNameConflict(Exception):
    """Raised by a cluster backend when a config name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"config {name!r} already exists")
