"""License verification and distribution engine."""

from .authority import AuthorityKey, get_authority_key, key_id_for, reset_authority_key
from .decoder import decode_license, parse_license
from .distribution import (
    LICENSE_FILENAME,
    LICENSE_LABELS,
    LICENSE_NAME_PREFIX,
    ClusterClient,
    ClusterConfigTarget,
    HostFileTarget,
    LicenseTarget,
    Placement,
    PlacementMode,
    load_license,
    select_target,
)
from .envelope import verify_envelope
from .errors import (
    AuthorityKeyError,
    BadSignature,
    ConfigNameConflict,
    DistributionFailed,
    InvalidToken,
    LicenseError,
    MalformedEnvelope,
    MalformedLicense,
    Stage,
    UntrustedLicense,
)
from .models import EntitlementRecord, LicenseContainer, SubscriptionDescriptor
from .token import bind_token, format_expiration, verify_token
from .versions import latest_version, next_version, versioned_name

__all__ = [
    "LICENSE_FILENAME",
    "LICENSE_LABELS",
    "LICENSE_NAME_PREFIX",
    "AuthorityKey",
    "AuthorityKeyError",
    "BadSignature",
    "ClusterClient",
    "ClusterConfigTarget",
    "ConfigNameConflict",
    "DistributionFailed",
    "EntitlementRecord",
    "HostFileTarget",
    "InvalidToken",
    "LicenseContainer",
    "LicenseError",
    "LicenseTarget",
    "MalformedEnvelope",
    "MalformedLicense",
    "Placement",
    "PlacementMode",
    "Stage",
    "SubscriptionDescriptor",
    "UntrustedLicense",
    "bind_token",
    "decode_license",
    "format_expiration",
    "get_authority_key",
    "key_id_for",
    "latest_version",
    "load_license",
    "next_version",
    "parse_license",
    "reset_authority_key",
    "select_target",
    "verify_envelope",
    "verify_token",
    "versioned_name",
]
