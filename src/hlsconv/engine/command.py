"""FFmpeg command building for HLS to MP4 conversion.

This module constructs FFmpeg command-line arguments: network resilience
options for the remote playlist, the optional trim window, and H.264/AAC
encoding at the requested CRF.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hlsconv.engine.types import EngineRequest, NetworkOptions, TrimWindow

logger = logging.getLogger(__name__)

VIDEO_ENCODER = "libx264"
VIDEO_PRESET = "fast"
AUDIO_ENCODER = "aac"
AUDIO_BITRATE = "128k"


def _format_seconds(value: float) -> str:
    """Format seconds for ffmpeg, dropping a useless ".0"."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}"


def build_network_args(options: NetworkOptions) -> list[str]:
    """Build input options for fetching a remote playlist.

    Args:
        options: Network resilience settings.

    Returns:
        List of FFmpeg arguments that must precede -i.
    """
    args = [
        "-protocol_whitelist",
        ",".join(options.protocol_whitelist),
        "-user_agent",
        options.user_agent,
    ]
    if options.reconnect:
        args.extend(["-reconnect", "1"])
    if options.reconnect_streamed:
        args.extend(["-reconnect_streamed", "1"])
    args.extend(["-reconnect_delay_max", str(options.reconnect_delay_max)])
    return args


def build_trim_args(trim: TrimWindow | None) -> tuple[list[str], list[str]]:
    """Build seek and duration arguments.

    Seeking is done on the input side so ffmpeg skips segments instead of
    decoding them.

    Returns:
        Tuple of (input_args, output_args).
    """
    if trim is None:
        return [], []
    return (
        ["-ss", _format_seconds(trim.seek)],
        ["-t", _format_seconds(trim.duration)],
    )


def build_encode_args(crf: int) -> list[str]:
    """Build video and audio encoding arguments."""
    return [
        "-c:v",
        VIDEO_ENCODER,
        "-preset",
        VIDEO_PRESET,
        "-crf",
        str(crf),
        "-c:a",
        AUDIO_ENCODER,
        "-b:a",
        AUDIO_BITRATE,
        "-movflags",
        "+faststart",
    ]


def build_ffmpeg_command(ffmpeg_path: Path | str, request: EngineRequest) -> list[str]:
    """Build the complete FFmpeg command for a conversion.

    Args:
        ffmpeg_path: Path to the ffmpeg executable.
        request: Conversion parameters.

    Returns:
        Command as a list of arguments.
    """
    input_trim, output_trim = build_trim_args(request.trim)

    cmd = [str(ffmpeg_path), "-hide_banner", "-nostdin", "-y"]
    cmd.extend(build_network_args(request.network))
    cmd.extend(input_trim)
    cmd.extend(["-i", request.input_url])
    cmd.extend(output_trim)
    cmd.extend(build_encode_args(request.crf))
    cmd.append(str(request.output_path))

    logger.debug("Built ffmpeg command with %d arguments", len(cmd))
    return cmd
