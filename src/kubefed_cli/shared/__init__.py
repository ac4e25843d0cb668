"""Shared modules for kubefed-cli."""

from .logging import configure_logging, get_logger, verbosity_to_level
from .paths import get_config_path, resolve_kubeconfig_path

__all__ = [
    # Paths
    "get_config_path",
    "resolve_kubeconfig_path",
    # Logging
    "configure_logging",
    "get_logger",
    "verbosity_to_level",
]
