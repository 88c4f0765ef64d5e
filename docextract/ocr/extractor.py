"""Extraction orchestrator: preprocessing, primary OCR, and fallback.

Runs one request start to finish: the fail-open preprocessing pipeline,
then the vision-model engine, then Tesseract only if the primary output
was missing or rejected. Engine failures come back as an
:class:`ExtractionOutcome` with ``success=False``, never as exceptions.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from docextract.errors import (
    ExtractionCancelledError,
    FallbackExtractionError,
    PrimaryExtractionError,
)
from docextract.preprocessing.pipeline import PreprocessingPipeline
from docextract.utils.config import AppConfig
from docextract.utils.logger import get_logger
from docextract.validation.language import detect_languages
from docextract.validation.validator import (
    RejectionReason,
    TextValidator,
    ValidationOutcome,
)

from .fallback import FallbackExtractionEngine
from .primary import PrimaryExtractionClient

logger = get_logger(__name__)


class OCREngine(StrEnum):
    """Engine that produced an accepted result."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ExtractionResult:
    """Accepted text for one uploaded image."""

    content: str
    source_file: str
    extracted_at: datetime
    ocr_engine: OCREngine
    language: str | None = None
    confidence: int | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize with the camelCase keys used by API clients."""
        return {
            "content": self.content,
            "sourceFile": self.source_file,
            "extractedAt": self.extracted_at.isoformat(),
            "ocrEngine": self.ocr_engine.value,
            "language": self.language,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ExtractionOutcome:
    """Success flag plus either a result or an error message."""

    success: bool
    data: ExtractionResult | None = None
    error: str = ""


@dataclass(frozen=True)
class EngineAttempt:
    """What one engine produced during a request."""

    engine: OCREngine
    validation: ValidationOutcome | None = None
    error: str | None = None
    confidence: float | None = None

    @property
    def accepted(self) -> bool:
        return self.validation is not None and self.validation.accepted

    def describe(self) -> str:
        if self.validation is None:
            return f"{self.engine}: {self.error or 'no result'}"
        return f"{self.engine}: {self.validation.reason} ({self.validation.length} chars)"


def _reason(attempt: EngineAttempt) -> RejectionReason | None:
    return attempt.validation.reason if attempt.validation else None


def terminal_error(attempts: list[EngineAttempt], min_length: int) -> str:
    """Describe why no engine produced acceptable text.

    Insufficient text takes precedence over no text, which takes
    precedence over engine errors.

    Args:
        attempts: Engine attempts made for the request, in order.
        min_length: Minimum accepted text length.

    Returns:
        User-facing error message.
    """
    details = "; ".join(attempt.describe() for attempt in attempts)
    reasons = [_reason(attempt) for attempt in attempts]

    if RejectionReason.TOO_SHORT in reasons:
        longest = max(
            attempt.validation.length
            for attempt in attempts
            if _reason(attempt) == RejectionReason.TOO_SHORT
        )
        return (
            f"Insufficient text extracted: best result had {longest} characters, "
            f"at least {min_length} required ({details})"
        )
    if RejectionReason.SCRIPT_MISMATCH in reasons:
        return f"Extracted text does not contain the expected script ({details})"
    if RejectionReason.EMPTY in reasons:
        return f"No text detected in the image ({details})"
    return f"All OCR engines failed ({details})"


class DocumentExtractor:
    """End-to-end text extraction for uploaded images.

    Built once per process from the immutable configuration and shared
    by every request; all per-request state stays local to
    :meth:`extract`.

    Args:
        config: Application configuration object.
        primary: Vision-model client; built from ``config`` when omitted.
        fallback: Tesseract engine; built from ``config`` when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        primary: PrimaryExtractionClient | None = None,
        fallback: FallbackExtractionEngine | None = None,
    ) -> None:
        self.config = config
        self.preprocessing = PreprocessingPipeline(config.preprocessing)
        self.primary = primary or PrimaryExtractionClient(config.primary)
        self.fallback = fallback or FallbackExtractionEngine(config.fallback)
        self.validator = TextValidator(config.validation)

    async def extract(
        self,
        image_data: bytes,
        source_file: str = "",
        cancel_event: asyncio.Event | None = None,
    ) -> ExtractionOutcome:
        """Extract text from one uploaded image.

        Args:
            image_data: Encoded upload bytes.
            source_file: Display name of the upload.
            cancel_event: Optional signal that the caller gave up.

        Returns:
            Accepted result, or a failure describing what went wrong.
        """
        logger.info(
            "Extracting text from %s (%d bytes)",
            source_file or "upload",
            len(image_data),
        )
        prepared = await asyncio.to_thread(self.preprocessing.process, image_data)

        attempts: list[EngineAttempt] = []
        try:
            primary = await self._run_primary(prepared.data, cancel_event)
            attempts.append(primary)
            if primary.accepted:
                return self._accept(primary, source_file)

            if cancel_event is not None and cancel_event.is_set():
                raise ExtractionCancelledError("Extraction cancelled before fallback")
            logger.info("Primary result rejected (%s), trying fallback", primary.describe())

            fallback = await self._run_fallback(prepared.data)
            attempts.append(fallback)
            if fallback.accepted:
                return self._accept(fallback, source_file)
        except ExtractionCancelledError as exc:
            logger.info("%s", exc)
            return ExtractionOutcome(success=False, error="Extraction cancelled")

        error = terminal_error(attempts, self.validator.min_length)
        logger.warning("Extraction failed for %s: %s", source_file or "upload", error)
        return ExtractionOutcome(success=False, error=error)

    async def _run_primary(
        self, image_data: bytes, cancel_event: asyncio.Event | None
    ) -> EngineAttempt:
        if not self.primary.available:
            return EngineAttempt(OCREngine.PRIMARY, error="engine not configured")
        try:
            text = await self.primary.extract(image_data, cancel_event=cancel_event)
        except PrimaryExtractionError as exc:
            logger.warning("Primary extraction failed: %s", exc)
            return EngineAttempt(OCREngine.PRIMARY, error=str(exc))
        return EngineAttempt(OCREngine.PRIMARY, validation=self.validator.validate(text))

    async def _run_fallback(self, image_data: bytes) -> EngineAttempt:
        if not self.fallback.enabled:
            return EngineAttempt(OCREngine.FALLBACK, error="engine disabled")
        try:
            result = await self.fallback.extract(image_data)
        except FallbackExtractionError as exc:
            logger.warning("Fallback extraction failed: %s", exc)
            return EngineAttempt(OCREngine.FALLBACK, error=str(exc))
        return EngineAttempt(
            OCREngine.FALLBACK,
            validation=self.validator.validate(result.text),
            confidence=result.confidence,
        )

    def _accept(self, attempt: EngineAttempt, source_file: str) -> ExtractionOutcome:
        content = attempt.validation.text if attempt.validation else ""
        result = ExtractionResult(
            content=content,
            source_file=source_file,
            extracted_at=datetime.now(timezone.utc),
            ocr_engine=attempt.engine,
            language=detect_languages(content),
            confidence=(
                round(attempt.confidence) if attempt.confidence is not None else None
            ),
        )
        logger.info(
            "Accepted %d characters from %s engine (language: %s)",
            len(content),
            result.ocr_engine,
            result.language,
        )
        return ExtractionOutcome(success=True, data=result)
