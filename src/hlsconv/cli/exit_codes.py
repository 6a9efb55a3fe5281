"""Process exit codes for CLI commands."""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes returned by hlsconv commands."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    INVALID_ARGUMENTS = 2
    CONFIG_ERROR = 3
    INTERRUPTED = 130
