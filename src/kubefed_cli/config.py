"""CLI configuration management.

Handles persistent defaults for `kubefed init` stored in ~/.kubefed/config.yaml.
Supports environment variable overrides; command-line flags take precedence
over both.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any

import yaml

from .bootstrap.resources import DEFAULT_IMAGE, DEFAULT_NAMESPACE
from .shared.paths import get_config_path

# Default values
DEFAULT_DNS_PROVIDER = "google-clouddns"
DEFAULT_ETCD_PV_CAPACITY = "10Gi"
DEFAULT_STORAGE_BACKEND = "etcd2"
DEFAULT_LB_POLL_INTERVAL = 5.0
DEFAULT_POD_POLL_INTERVAL = 2.0
DEFAULT_HEALTH_TIMEOUT = 5.0

# Environment variable mappings
ENV_VARS = {
    "image": "KUBEFED_IMAGE",
    "dns_provider": "KUBEFED_DNS_PROVIDER",
    "etcd_pv_capacity": "KUBEFED_ETCD_PV_CAPACITY",
    "storage_backend": "KUBEFED_STORAGE_BACKEND",
    "federation_system_namespace": "KUBEFED_FEDERATION_SYSTEM_NAMESPACE",
    "lb_poll_interval": "KUBEFED_LB_POLL_INTERVAL",
    "pod_poll_interval": "KUBEFED_POD_POLL_INTERVAL",
    "health_request_timeout": "KUBEFED_HEALTH_TIMEOUT",
    "poll_timeout": "KUBEFED_POLL_TIMEOUT",
}

FLOAT_KEYS = {"lb_poll_interval", "pod_poll_interval", "health_request_timeout", "poll_timeout"}


@dataclass
class CLIConfig:
    """CLI configuration."""

    image: str = DEFAULT_IMAGE
    dns_provider: str = DEFAULT_DNS_PROVIDER
    etcd_pv_capacity: str = DEFAULT_ETCD_PV_CAPACITY
    storage_backend: str = DEFAULT_STORAGE_BACKEND
    federation_system_namespace: str = DEFAULT_NAMESPACE
    lb_poll_interval: float = DEFAULT_LB_POLL_INTERVAL
    pod_poll_interval: float = DEFAULT_POD_POLL_INTERVAL
    health_request_timeout: float = DEFAULT_HEALTH_TIMEOUT
    # None means wait forever
    poll_timeout: float | None = None

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in CONFIG_KEYS}


CONFIG_KEYS = [f.name for f in fields(CLIConfig) if not f.name.startswith("_")]


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw config value to the type of its field.

    Raises:
        ValueError: If a numeric key has a non-numeric value.
    """
    if key in FLOAT_KEYS:
        if value is None or value == "":
            if key == "poll_timeout":
                return None
            raise ValueError(f"{key} requires a number")
        return float(value)
    return str(value)


def load_config() -> CLIConfig:
    """Load CLI configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.kubefed/config.yaml)
    3. Defaults

    Returns:
        CLIConfig with values and sources
    """
    config = CLIConfig()
    sources: dict[str, str] = {key: "default" for key in CONFIG_KEYS}

    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            file_config = {}  # Ignore config file errors, use defaults

        if isinstance(file_config, dict):
            for key in CONFIG_KEYS:
                if key in file_config:
                    try:
                        setattr(config, key, _coerce(key, file_config[key]))
                        sources[key] = "config file"
                    except ValueError:
                        pass

    for key, env_var in ENV_VARS.items():
        if os.environ.get(env_var):
            try:
                setattr(config, key, _coerce(key, os.environ[env_var]))
                sources[key] = "environment"
            except ValueError:
                pass

    config._sources = sources
    return config


def save_config(key: str, value: Any) -> None:
    """Save a config value to the config file.

    Args:
        key: Config key (one of CONFIG_KEYS)
        value: Value to save

    Raises:
        KeyError: If the key is unknown.
        ValueError: If the value has the wrong type for the key.
    """
    if key not in CONFIG_KEYS:
        raise KeyError(key)
    value = _coerce(key, value)

    config_path = get_config_path()

    existing: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                existing = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            pass

    existing[key] = value

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.safe_dump(existing, f, default_flow_style=False)


def unset_config(key: str) -> bool:
    """Remove a config value from the config file.

    Args:
        key: Config key to remove

    Returns:
        True if key was removed, False if not found
    """
    config_path = get_config_path()
    if not config_path.exists():
        return False

    try:
        with open(config_path) as f:
            existing = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return False

    if key not in existing:
        return False

    del existing[key]

    with open(config_path, "w") as f:
        yaml.safe_dump(existing, f, default_flow_style=False)

    return True
