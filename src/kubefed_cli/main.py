"""CLI main entry point."""

import json
import sys

import click

from . import __version__
from .commands.init import init
from .config import CONFIG_KEYS, load_config, save_config, unset_config
from .formatters import print_config_yaml
from .shared.logging import configure_logging, verbosity_to_level


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write logs to this file instead of stderr",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def cli(
    ctx: click.Context, verbose: int, log_json: bool, log_file: str | None, json_output: bool
) -> None:
    """Federation control plane CLI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json_output"] = json_output
    configure_logging(verbosity_to_level(verbose), log_file=log_file, json_output=log_json)


cli.add_command(init)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"kubefed version {__version__}")


@cli.group()
def config() -> None:
    """Manage kubefed defaults."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current defaults and where each value comes from."""
    cfg = load_config()
    values = cfg.to_dict()

    if ctx.obj["json_output"]:
        data = {
            "values": values,
            "sources": {key: cfg.get_source(key) for key in CONFIG_KEYS},
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.echo("kubefed CLI Configuration\n")
    print_config_yaml(values)
    click.echo("Sources:")
    for key in CONFIG_KEYS:
        click.echo(f"  {key}: {cfg.get_source(key)}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a default in ~/.kubefed/config.yaml."""
    try:
        save_config(key, value)
    except KeyError:
        click.echo(f"Error: Unknown key '{key}'", err=True)
        click.echo(f"\nValid keys:\n  {', '.join(CONFIG_KEYS)}")
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ {key} = {value}")


@config.command("unset")
@click.argument("key")
def config_unset(key: str) -> None:
    """Remove a default from ~/.kubefed/config.yaml."""
    if unset_config(key):
        click.echo(f"✓ {key} unset")
    else:
        click.echo(f"{key} was not set")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
