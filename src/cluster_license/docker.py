"""Docker Engine API client for swarm nodes and configs."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import httpx

from cluster_license.config import DockerConfig
from cluster_license.licensing.errors import ConfigNameConflict

logger = logging.getLogger("cluster_license.docker")


def _transport_for(host: str) -> tuple[str, httpx.BaseTransport | None]:
    """Map a DOCKER_HOST style address to a base URL and transport."""
    if host.startswith("unix://"):
        return "http://docker", httpx.HTTPTransport(uds=host[len("unix://"):])
    if host.startswith("tcp://"):
        return "http://" + host[len("tcp://"):], None
    if host.startswith(("http://", "https://")):
        return host, None
    raise ValueError(f"unsupported docker host {host!r}")


class DockerClusterClient:
    """Minimal swarm control-plane client over the Engine REST API."""

    def __init__(
        self,
        host: str = "unix:///var/run/docker.sock",
        api_version: str = "",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        base_url, default_transport = _transport_for(host)
        if api_version:
            base_url = f"{base_url.rstrip('/')}/v{api_version.lstrip('v')}"
        self._client = httpx.Client(
            base_url=base_url, timeout=timeout, transport=transport or default_transport,
        )

    @classmethod
    def from_config(cls, config: DockerConfig) -> DockerClusterClient:
        return cls(host=config.host, api_version=config.api_version, timeout=config.timeout)

    def list_nodes(self) -> list[dict[str, Any]]:
        """List swarm nodes; fails unless this engine is a swarm manager."""
        resp = self._client.get("/nodes")
        resp.raise_for_status()
        return resp.json()

    def list_config_names(self, name_prefix: str) -> list[str]:
        filters = json.dumps({"name": [name_prefix]})
        resp = self._client.get("/configs", params={"filters": filters})
        resp.raise_for_status()
        return [cfg["Spec"]["Name"] for cfg in resp.json()]

    def create_config(self, name: str, labels: dict[str, str], data: bytes) -> str:
        """Create a config and return its ID.

        Raises ``ConfigNameConflict`` when the name is already taken.
        """
        body = {
            "Name": name,
            "Labels": labels,
            "Data": base64.b64encode(data).decode("ascii"),
        }
        resp = self._client.post("/configs/create", json=body)
        if resp.status_code == 409:
            raise ConfigNameConflict(name)
        resp.raise_for_status()
        config_id = resp.json().get("ID", "")
        logger.debug("Created config %s as %s", name, config_id)
        return config_id

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> DockerClusterClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
