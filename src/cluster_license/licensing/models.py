"""Wire models for license containers, entitlement claims and subscriptions."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator

from .token import format_expiration

# RFC 3339 date-time as the authority writes it
_RFC3339_RE = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?(Z|[+-][0-9]{2}:[0-9]{2})"
)


class LicenseContainer(BaseModel):
    """License file downloaded from the hub or the license server."""

    model_config = ConfigDict(frozen=True)

    key_id: str = ""
    private_key: str = ""
    authorization: str = ""


class _Entitlement(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, strict=True)

    expiration: AwareDatetime
    max_engines: int = Field(default=0, alias="maxEngines")
    license_type: str = Field(default="", alias="licenseType")
    tier: str = ""
    scanning_enabled: bool = Field(default=False, alias="scanningEnabled")

    @property
    def expiration_message(self) -> str:
        """The expiration as the authority rendered it for the token."""
        return format_expiration(self.expiration)


class LicenseClaims(_Entitlement):
    """Signed claims as found inside the envelope, token still attached."""

    token: str

    @field_validator("expiration", mode="before")
    @classmethod
    def _rfc3339_only(cls, value: Any) -> datetime:
        if not isinstance(value, str) or not _RFC3339_RE.fullmatch(value):
            raise ValueError("expiration must be an RFC 3339 timestamp string")
        return datetime.fromisoformat(value)

    def entitlement(self) -> EntitlementRecord:
        return EntitlementRecord(**self.model_dump(exclude={"token"}))


class EntitlementRecord(_Entitlement):
    """Verified entitlement, produced by the license decoder only."""

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expiration <= (now or datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "expiration": self.expiration_message,
            "max_engines": self.max_engines,
            "license_type": self.license_type,
            "tier": self.tier,
            "scanning_enabled": self.scanning_enabled,
            "expired": self.is_expired(),
        }


class SubscriptionDescriptor(BaseModel):
    """Subscription summary from the store API (not verified)."""

    name: str = ""
    subscription_id: str = ""
    state: str = ""
    product_id: str = ""
