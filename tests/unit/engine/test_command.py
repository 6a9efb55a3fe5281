"""Tests for FFmpeg command building."""

from __future__ import annotations

from pathlib import Path

from hlsconv.engine.command import (
    build_encode_args,
    build_ffmpeg_command,
    build_network_args,
    build_trim_args,
)
from hlsconv.engine.types import (
    DEFAULT_USER_AGENT,
    EngineRequest,
    NetworkOptions,
    TrimWindow,
)

OUTPUT = Path("/srv/downloads/clip_job1.mp4")
PLAYLIST = "https://cdn.example.com/stream/playlist.m3u8"


def _request(**overrides) -> EngineRequest:
    values = {"input_url": PLAYLIST, "output_path": OUTPUT, "crf": 23}
    values.update(overrides)
    return EngineRequest(**values)


class TestBuildNetworkArgs:
    def test_default_options(self) -> None:
        args = build_network_args(NetworkOptions())
        assert args == [
            "-protocol_whitelist",
            "file,http,https,tcp,tls,crypto",
            "-user_agent",
            DEFAULT_USER_AGENT,
            "-reconnect",
            "1",
            "-reconnect_streamed",
            "1",
            "-reconnect_delay_max",
            "5",
        ]

    def test_reconnect_disabled(self) -> None:
        args = build_network_args(
            NetworkOptions(reconnect=False, reconnect_streamed=False)
        )
        assert "-reconnect" not in args
        assert "-reconnect_streamed" not in args
        assert "-reconnect_delay_max" in args


class TestBuildTrimArgs:
    def test_no_trim(self) -> None:
        assert build_trim_args(None) == ([], [])

    def test_whole_seconds(self) -> None:
        assert build_trim_args(TrimWindow.from_bounds(10, 25)) == (
            ["-ss", "10"],
            ["-t", "15"],
        )

    def test_fractional_seconds(self) -> None:
        assert build_trim_args(TrimWindow(seek=1.5, duration=2.25)) == (
            ["-ss", "1.500"],
            ["-t", "2.250"],
        )


class TestBuildEncodeArgs:
    def test_uses_crf(self) -> None:
        args = build_encode_args(28)
        assert args[args.index("-crf") + 1] == "28"
        assert args[args.index("-c:v") + 1] == "libx264"
        assert args[args.index("-c:a") + 1] == "aac"
        assert "+faststart" in args


class TestBuildFfmpegCommand:
    """Tests for build_ffmpeg_command()."""

    def test_argument_order(self) -> None:
        cmd = build_ffmpeg_command("/usr/bin/ffmpeg", _request())

        assert cmd[:4] == ["/usr/bin/ffmpeg", "-hide_banner", "-nostdin", "-y"]
        assert cmd[-1] == str(OUTPUT)
        # Network options apply to the input, so they precede -i
        assert cmd.index("-protocol_whitelist") < cmd.index("-i")
        assert cmd[cmd.index("-i") + 1] == PLAYLIST

    def test_trim_wraps_input(self) -> None:
        cmd = build_ffmpeg_command(
            Path("/usr/bin/ffmpeg"), _request(trim=TrimWindow(seek=30, duration=60))
        )
        assert cmd.index("-ss") < cmd.index("-i") < cmd.index("-t")
        assert cmd[cmd.index("-ss") + 1] == "30"
        assert cmd[cmd.index("-t") + 1] == "60"

    def test_no_trim_arguments_without_window(self) -> None:
        cmd = build_ffmpeg_command("ffmpeg", _request())
        assert "-ss" not in cmd
        assert "-t" not in cmd
