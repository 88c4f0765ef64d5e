"""Local Tesseract OCR used when the vision-model engine fails.

Every invocation runs in its own session that is released whether
recognition succeeds or fails. The blocking Tesseract call runs in a
worker thread so concurrent requests keep making progress.
"""

import asyncio
import io
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import pytesseract
from PIL import Image

from docextract.errors import FallbackExtractionError
from docextract.utils.config import FallbackEngineConfig
from docextract.utils.logger import get_logger

logger = get_logger(__name__)

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")


@dataclass
class FallbackResult:
    """Cleaned Tesseract output for one image.

    Attributes:
        text: Cleaned text (may be empty).
        confidence: Mean word confidence as a percentage (0-100).
        languages: Tesseract language set that was used.
    """

    text: str
    confidence: float
    languages: str


def clean_text(text: str) -> str:
    """Normalize raw Tesseract output.

    Trims the text, collapses 3+ consecutive line breaks to exactly two,
    and collapses runs of spaces/tabs to a single space.
    """
    cleaned = _EXCESS_NEWLINES.sub("\n\n", text.strip())
    return _HORIZONTAL_SPACE.sub(" ", cleaned)


def mean_confidence(data: dict) -> float:
    """Average word confidence from ``image_to_data`` output, 0-100."""
    scores = [
        float(conf)
        for conf, word in zip(data.get("conf", []), data.get("text", []))
        if float(conf) > 0 and str(word).strip()
    ]
    return sum(scores) / len(scores) if scores else 0.0


@contextmanager
def tesseract_session(image_data: bytes) -> Iterator[Image.Image]:
    """Open the image held by one recognition session and release it after.

    Release failures are logged and never replace the session's outcome.

    Args:
        image_data: Encoded image bytes.

    Yields:
        The decoded image to recognize.
    """
    image = Image.open(io.BytesIO(image_data))
    try:
        image.load()
        yield image
    finally:
        try:
            image.close()
        except Exception as exc:
            logger.error("Failed to release Tesseract session: %s", exc)


class FallbackExtractionEngine:
    """Multi-language Tesseract OCR with automatic page segmentation.

    Args:
        config: Fallback engine settings.
    """

    def __init__(self, config: FallbackEngineConfig) -> None:
        if config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = config.tesseract_cmd
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def tesseract_config(self) -> str:
        """Command-line options passed to Tesseract."""
        options = [f"--psm {self.config.psm}"]
        if self.config.preserve_interword_spaces:
            options.append("-c preserve_interword_spaces=1")
        return " ".join(options)

    def resolve_languages(self) -> str:
        """Restrict the configured language set to installed languages.

        Falls back to the configured set when the installed list cannot
        be read or none of the configured languages is installed.
        """
        requested = self.config.languages.split("+")
        try:
            installed = set(pytesseract.get_languages(config=""))
        except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
            logger.debug("Could not list Tesseract languages: %s", exc)
            return self.config.languages

        available = [lang for lang in requested if lang in installed]
        if not available:
            logger.warning(
                "None of the configured languages (%s) are installed",
                self.config.languages,
            )
            return self.config.languages
        return "+".join(available)

    def recognize(self, image_data: bytes) -> FallbackResult:
        """Run Tesseract on an image (blocking).

        Args:
            image_data: Encoded image bytes.

        Returns:
            Cleaned text and mean confidence.

        Raises:
            FallbackExtractionError: If the image cannot be read or
                Tesseract fails to run.
        """
        languages = self.resolve_languages()
        try:
            with tesseract_session(image_data) as image:
                text = pytesseract.image_to_string(
                    image,
                    lang=languages,
                    config=self.tesseract_config,
                    timeout=self.config.timeout,
                )
                data = pytesseract.image_to_data(
                    image,
                    lang=languages,
                    config=self.tesseract_config,
                    output_type=pytesseract.Output.DICT,
                    timeout=self.config.timeout,
                )
        except (
            pytesseract.TesseractError,
            Image.DecompressionBombError,
            RuntimeError,
            OSError,
            ValueError,
        ) as exc:
            raise FallbackExtractionError(f"Tesseract OCR failed: {exc}") from exc

        result = FallbackResult(
            text=clean_text(text),
            confidence=mean_confidence(data),
            languages=languages,
        )
        logger.info(
            "Tesseract extracted %d characters with confidence %.1f%%",
            len(result.text),
            result.confidence,
        )
        return result

    async def extract(self, image_data: bytes) -> FallbackResult:
        """Run :meth:`recognize` in a worker thread."""
        return await asyncio.to_thread(self.recognize, image_data)
