"""Exception types raised by the extraction stages.

Preprocessing never raises these; it degrades to the unmodified input.
Only image decoding at the boundary and the two OCR engines do.
"""


class DocExtractError(Exception):
    """Base class for all extraction errors."""


class InvalidImageError(DocExtractError):
    """The submitted bytes could not be decoded as an image."""


class PrimaryExtractionError(DocExtractError):
    """The vision-model engine failed after exhausting its attempts.

    Args:
        message: Human readable description.
        attempts: Number of requests that were made.
    """

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class FallbackExtractionError(DocExtractError):
    """The local Tesseract engine could not run."""


class ExtractionCancelledError(DocExtractError):
    """The caller abandoned the request before extraction finished."""
