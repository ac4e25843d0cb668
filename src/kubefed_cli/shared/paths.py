"""Path management for kubefed-cli."""

import os
from pathlib import Path


def get_config_path() -> Path:
    """Get the CLI config file path.

    Resolved at call time so tests can redirect HOME.
    """
    return Path.home() / ".kubefed" / "config.yaml"


def resolve_kubeconfig_path(explicit: str | Path | None = None) -> Path:
    """Resolve the kubeconfig file to read and update.

    Precedence: explicit path, then the first entry of $KUBECONFIG,
    then ~/.kube/config.

    Args:
        explicit: Path given on the command line, if any.

    Returns:
        Path to the kubeconfig file (may not exist yet).
    """
    if explicit:
        return Path(explicit).expanduser()

    env_value = os.environ.get("KUBECONFIG", "")
    for entry in env_value.split(os.pathsep):
        if entry.strip():
            return Path(entry.strip()).expanduser()

    return Path.home() / ".kube" / "config"
