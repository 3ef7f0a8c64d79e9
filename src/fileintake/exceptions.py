"""Custom exceptions for the application."""


class IntakeError(Exception):
    """Base class for all intake pipeline errors."""

    code: str = "intake-error"


class CompressionError(IntakeError):
    """Raised by a compression strategy when encoding fails. Never leaves the compressor."""

    code = "compression-failed"


class PayloadUnavailableError(IntakeError):
    """Raised when the binary payload of a file cannot be produced at all."""

    code = "payload-unavailable"


class CannotRetryError(IntakeError):
    """Raised when retry is requested for an attachment that is not eligible."""

    code = "cannot-retry"
