"""CLI module for the HLS converter service."""

import logging

import click

from hlsconv.cli.exit_codes import ExitCode
from hlsconv.config import load_config

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(package_name="hlsconv")
@click.pass_context
def main(ctx: click.Context) -> None:
    """HLS Converter - Convert HLS playlists to MP4 over HTTP."""
    ctx.ensure_object(dict)
    # Preserve a config injected by tests
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config()
        except ValueError as e:
            click.echo(f"Error: invalid configuration: {e}", err=True)
            ctx.exit(ExitCode.CONFIG_ERROR)


# Defer import to avoid circular dependency
def _register_commands():
    from hlsconv.cli.doctor import doctor_command
    from hlsconv.cli.serve import serve_command

    main.add_command(doctor_command)
    main.add_command(serve_command)


_register_commands()
