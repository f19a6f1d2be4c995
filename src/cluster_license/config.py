"""Configuration using pydantic-settings with YAML support."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HubConfig(BaseModel):
    """Hub / store endpoints used to obtain licenses."""

    hub_api: str = "https://hub.docker.com/v2"
    store_api: str = "https://store.docker.com/api"
    timeout: float = 30.0
    product_prefix: str = "docker-ee"
    trial_product_id: str = "docker-ee-trial"
    trial_rate_plan: str = "free-trial"


class DockerConfig(BaseModel):
    """How to reach the local engine's control plane."""

    host: str = "unix:///var/run/docker.sock"
    api_version: str = ""
    timeout: float = 30.0


class DistributionConfig(BaseModel):
    """Where standalone engines keep their license."""

    root_dir: str = "/var/lib/docker"


class Settings(BaseSettings):
    """Root configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLUSTER_LICENSE_",
        env_nested_delimiter="__",
    )

    hub: HubConfig = Field(default_factory=HubConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)

    debug: bool = False


def load_config(config_path: str | Path | None = None) -> Settings:
    """Load configuration from YAML file and environment variables.

    YAML values are passed as init arguments, so they take precedence over
    ``CLUSTER_LICENSE_*`` environment variables; both override defaults.
    """
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        candidates = [
            Path("cluster-license.yaml"),
            Path("cluster-license.yml"),
            Path("/etc/cluster-license/cluster-license.yaml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    return Settings(**yaml_data)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings singleton."""
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (for testing)."""
    global _settings
    _settings = None
