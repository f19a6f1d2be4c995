"""License placement on a standalone host or across a cluster.

A standalone engine keeps its license in a single file under the engine
root directory. A cluster keeps an append-only history of configs named
``com.docker.license-<N>``; each load creates the next version and never
touches earlier ones.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

from .errors import ConfigNameConflict, DistributionFailed
from .versions import next_version, versioned_name

logger = logging.getLogger("cluster_license.licensing.distribution")

LICENSE_FILENAME = "docker.lic"
LICENSE_FILE_MODE = 0o644
LICENSE_NAME_PREFIX = "com.docker.license"
LICENSE_LABELS: dict[str, str] = {
    "com.docker.ucp.access.label": "/",
    "com.docker.ucp.collection": "swarm",
    "com.docker.ucp.collection.root": "true",
    "com.docker.ucp.collection.swarm": "true",
}


class ClusterClient(Protocol):
    """Control-plane operations needed to distribute a license."""

    def list_nodes(self) -> list[dict[str, Any]]: ...

    def list_config_names(self, name_prefix: str) -> list[str]: ...

    def create_config(self, name: str, labels: dict[str, str], data: bytes) -> str: ...


class PlacementMode(StrEnum):
    HOST = "host"
    CLUSTER = "cluster"


@dataclass(frozen=True)
class Placement:
    """Where a license ended up."""

    mode: PlacementMode
    location: str  # file path or config name
    version: int | None = None


class LicenseTarget(ABC):
    """Storage a license can be written to."""

    @abstractmethod
    def store(self, license: bytes) -> Placement:
        """Persist *license* verbatim. Raises ``DistributionFailed``."""
        ...


class HostFileTarget(LicenseTarget):
    """Fixed license file under the engine root directory.

    Unsynchronized: concurrent writers race and the last one wins.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self.path = Path(root_dir) / LICENSE_FILENAME

    def store(self, license: bytes) -> Placement:
        try:
            self.path.write_bytes(license)
            self.path.chmod(LICENSE_FILE_MODE)
        except OSError as exc:
            raise DistributionFailed(f"failed to write license to {self.path}: {exc}") from exc
        logger.info("Wrote license to %s", self.path)
        return Placement(mode=PlacementMode.HOST, location=str(self.path))


class ClusterConfigTarget(LicenseTarget):
    """Versioned license configs in the cluster control plane.

    Listing and creating are not atomic; two concurrent loads can pick the
    same version. The backend's unique-name check turns that into a
    ``ConfigNameConflict``, after which the version is recomputed once.
    """

    def __init__(
        self,
        client: ClusterClient,
        prefix: str = LICENSE_NAME_PREFIX,
        labels: dict[str, str] | None = None,
    ) -> None:
        self._client = client
        self.prefix = prefix
        self.labels = dict(LICENSE_LABELS if labels is None else labels)

    def store(self, license: bytes) -> Placement:
        try:
            return self._create(license)
        except ConfigNameConflict as exc:
            logger.warning("%s, recomputing license version", exc)

        try:
            return self._create(license)
        except ConfigNameConflict as exc:
            raise DistributionFailed(f"failed to create license: {exc}") from exc

    def _create(self, license: bytes) -> Placement:
        version = self._next_version()
        name = versioned_name(self.prefix, version)
        try:
            config_id = self._client.create_config(name, dict(self.labels), license)
        except ConfigNameConflict:
            raise
        except Exception as exc:
            raise DistributionFailed(f"failed to create license: {exc}") from exc

        logger.info("Created license config %s (id=%s)", name, config_id)
        return Placement(mode=PlacementMode.CLUSTER, location=name, version=version)

    def _next_version(self) -> int:
        try:
            names = self._client.list_config_names(self.prefix)
        except Exception as exc:
            raise DistributionFailed(f"unable to get latest license version: {exc}") from exc
        return next_version(names, self.prefix)


def select_target(cluster: ClusterClient | None, root_dir: str | Path) -> LicenseTarget:
    """Pick the cluster target if this engine can list cluster nodes."""
    if cluster is None:
        return HostFileTarget(root_dir)
    try:
        cluster.list_nodes()
    except Exception as exc:
        logger.info("Not part of a cluster (%s), storing license on the host", exc)
        return HostFileTarget(root_dir)
    return ClusterConfigTarget(cluster)


def load_license(
    license: bytes, cluster: ClusterClient | None, root_dir: str | Path,
) -> Placement:
    """Store *license* in the cluster if there is one, else on the host.

    The bytes are written as given; verification is the reader's concern.
    """
    return select_target(cluster, root_dir).store(license)
