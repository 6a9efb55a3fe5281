"""hlsconv doctor command for checking the ffmpeg installation.

Runs the same preflight the server runs at startup and reports the result.
"""

import json

import click

from hlsconv.cli.exit_codes import ExitCode
from hlsconv.config.models import ConverterConfig
from hlsconv.engine.detection import detect_engine


def _format_status(available: bool) -> str:
    """Format status for display."""
    return "✓" if available else "✗"


@click.command("doctor")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output results as JSON",
)
@click.pass_context
def doctor_command(ctx: click.Context, json_output: bool) -> None:
    """Check that ffmpeg is installed and usable.

    Exit codes:
      0 - ffmpeg found and runnable
      1 - ffmpeg missing or broken
    """
    config: ConverterConfig = ctx.obj["config"]
    availability = detect_engine(config.engine.ffmpeg_path)

    if json_output:
        click.echo(json.dumps(availability.to_dict(), indent=2))
    else:
        click.echo("HLS Converter Health Check")
        click.echo("=" * 40)
        version = availability.version or "not found"
        path_info = f" ({availability.path})" if availability.path else ""
        click.echo(
            f"  {_format_status(availability.available)} ffmpeg: {version}{path_info}"
        )
        if not availability.available:
            if availability.message:
                click.echo(f"    └─ {availability.message}")
            click.echo("    └─ Install ffmpeg: https://ffmpeg.org/download.html")

    if not availability.available:
        ctx.exit(ExitCode.GENERAL_ERROR)
