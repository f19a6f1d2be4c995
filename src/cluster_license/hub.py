"""HTTP client for the hub (accounts) and store (subscriptions) APIs."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from cluster_license.config import HubConfig
from cluster_license.licensing.models import SubscriptionDescriptor

logger = logging.getLogger("cluster_license.hub")

_subscriptions = TypeAdapter(list[SubscriptionDescriptor])


class HubError(Exception):
    """Unexpected response from the hub or store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class HubUser(BaseModel):
    id: str
    username: str = ""


class HubToken(BaseModel):
    token: str = ""


class EUSA(BaseModel):
    accepted: bool = True


class TrialRequest(BaseModel):
    docker_id: str
    eusa: EUSA = Field(default_factory=EUSA)
    name: str
    pricing_components: list[str] = Field(default_factory=list)
    product_id: str
    product_rate_plan: str


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _unexpected(resp: httpx.Response, what: str = "hub") -> HubError:
    return HubError(
        f"Unexpected error from {what}: {resp.status_code} {resp.text}", resp.status_code,
    )


def _validate(resp: httpx.Response, model: Any) -> Any:
    """Validate a JSON response body against a model or TypeAdapter."""
    validate = model.validate_json if isinstance(model, TypeAdapter) else model.model_validate_json
    try:
        return validate(resp.content)
    except ValidationError as exc:
        raise HubError(
            f"Unexpected response from {resp.request.url}: {exc}", resp.status_code,
        ) from exc


class HubClient:
    """Wraps httpx for hub login and store subscription calls."""

    def __init__(
        self,
        config: HubConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or HubConfig()
        self._hub = self._config.hub_api.rstrip("/")
        self._store = self._config.store_api.rstrip("/")
        self._client = httpx.Client(timeout=self._config.timeout, transport=transport)

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise HubError(f"Request to {url} failed: {exc}") from exc

    def get_user(self, username: str) -> HubUser:
        resp = self._request("GET", f"{self._hub}/users/{username}/")
        if resp.status_code == 404:
            raise HubError(f"Username {username} does not exist", 404)
        if resp.status_code != 200:
            raise _unexpected(resp)
        return _validate(resp, HubUser)

    def login(self, username: str, password: str) -> str:
        """Log in and return a bearer token."""
        resp = self._request(
            "POST",
            f"{self._hub}/users/login",
            json={"username": username, "password": password},
        )
        if resp.status_code == 401:
            raise HubError(f"Login failed for {username}", 401)
        if resp.status_code != 200:
            raise _unexpected(resp)
        token = _validate(resp, HubToken).token
        if not token:
            raise HubError("Hub login response carried no token", resp.status_code)
        return token

    def list_subscriptions(self, token: str, docker_id: str) -> list[SubscriptionDescriptor]:
        """Subscriptions usable for this product, expired ones left out."""
        resp = self._request(
            "GET",
            f"{self._store}/billing/v4/subscriptions/",
            params={"docker_id": docker_id},
            headers=_auth_headers(token),
        )
        if resp.status_code != 200:
            raise _unexpected(resp)

        usable = []
        for sub in _validate(resp, _subscriptions):
            if sub.state == "expired":
                continue
            if not sub.product_id.startswith(self._config.product_prefix):
                continue
            usable.append(sub)
        logger.debug("Found %d usable subscriptions for %s", len(usable), docker_id)
        return usable

    def create_trial(self, token: str, docker_id: str, name: str) -> SubscriptionDescriptor:
        """Create a free trial subscription."""
        request = TrialRequest(
            docker_id=docker_id,
            name=name,
            product_id=self._config.trial_product_id,
            product_rate_plan=self._config.trial_rate_plan,
        )
        resp = self._request(
            "POST",
            f"{self._store}/billing/v4/subscriptions/",
            params={"docker_id": docker_id},
            json=request.model_dump(),
            headers=_auth_headers(token),
        )
        if resp.status_code != 201:
            raise _unexpected(resp)
        sub = _validate(resp, SubscriptionDescriptor)
        logger.info("Created trial subscription %s", sub.subscription_id)
        return sub

    def get_subscription(self, token: str, subscription_id: str) -> SubscriptionDescriptor:
        resp = self._request(
            "GET",
            f"{self._store}/billing/v4/subscriptions/{subscription_id}",
            headers=_auth_headers(token),
        )
        if resp.status_code != 200:
            raise _unexpected(resp, "hub on license metadata")
        return _validate(resp, SubscriptionDescriptor)

    def download_license(
        self, token: str, subscription_id: str,
    ) -> tuple[bytes, SubscriptionDescriptor]:
        """Download the license file of a subscription plus its metadata."""
        resp = self._request(
            "GET",
            f"{self._store}/billing/v4/subscriptions/{subscription_id}/license-file/",
            headers=_auth_headers(token),
        )
        if resp.status_code != 200:
            raise _unexpected(resp)
        return resp.content, self.get_subscription(token, subscription_id)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HubClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
