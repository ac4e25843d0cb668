"""CLI output formatting helpers."""

from typing import Any

import click
import yaml


def print_config_yaml(data: dict[str, Any]) -> None:
    """Print config as YAML.

    Args:
        data: Configuration data
    """
    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
