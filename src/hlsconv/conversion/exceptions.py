"""Custom exceptions for conversion jobs.

This module provides specific exception types for the conversion lifecycle,
enabling callers to handle different error conditions appropriately.

Only ValidationError and EngineUnavailableError are raised to callers of
ConversionOrchestrator.submit(). Engine failures happen after the submitting
request has been answered, so EngineExecutionError and EmptyOutputError are
recorded into the job instead and are only observable by polling.
"""


class ConversionError(Exception):
    """Base exception for conversion errors.

    All conversion-related exceptions inherit from this class, allowing
    callers to catch all conversion errors with a single except clause.
    """


class ValidationError(ConversionError):
    """Raised when a conversion request is missing required input.

    Attributes:
        fields: Names of the missing or invalid fields.
    """

    def __init__(self, fields: list[str], message: str | None = None) -> None:
        """Initialize the exception.

        Args:
            fields: Names of the missing or invalid fields.
            message: Optional custom message.
        """
        self.fields = fields
        default_msg = f"Missing required fields: {', '.join(fields)}"
        super().__init__(message or default_msg)


class EngineUnavailableError(ConversionError):
    """Raised when the startup preflight found no usable ffmpeg."""

    def __init__(self, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            reason: Why the engine is unavailable, from the preflight.
        """
        self.reason = reason
        message = "FFmpeg is not available on this server"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EngineExecutionError(ConversionError):
    """ffmpeg exited non-zero or reported a stream error.

    Attributes:
        detail: Failure detail reported by the engine.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class EmptyOutputError(ConversionError):
    """ffmpeg reported success but the output is missing or zero bytes.

    Attributes:
        path: Expected output path.
    """

    def __init__(self, path: str, exists: bool) -> None:
        self.path = path
        self.exists = exists
        if exists:
            super().__init__("Output file is empty")
        else:
            super().__init__("Output file was not created")
