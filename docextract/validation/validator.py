"""Acceptance checks applied to text returned by either OCR engine."""

from dataclasses import dataclass
from enum import StrEnum

from docextract.utils.config import ValidationConfig
from docextract.utils.logger import get_logger

from .language import SCRIPT_RANGES, contains_script

logger = get_logger(__name__)


class RejectionReason(StrEnum):
    """Why a candidate text was not accepted."""

    EMPTY = "empty"
    TOO_SHORT = "too_short"
    SCRIPT_MISMATCH = "script_mismatch"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one candidate text.

    Attributes:
        text: Trimmed candidate text.
        reason: Rejection reason, ``None`` when accepted.
    """

    text: str
    reason: RejectionReason | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @property
    def length(self) -> int:
        return len(self.text)


class TextValidator:
    """Length and optional script plausibility checks.

    Script matching is off unless ``required_script`` is configured;
    over-strict script checks reject valid text in other languages.

    Args:
        config: Validation settings.

    Raises:
        ValueError: If ``required_script`` names an unknown script family.
    """

    def __init__(self, config: ValidationConfig) -> None:
        if config.required_script and config.required_script not in SCRIPT_RANGES:
            raise ValueError(f"Unknown script family: {config.required_script}")
        self.min_length = config.min_length
        self.required_script = config.required_script

    def validate(self, text: str | None) -> ValidationOutcome:
        """Validate a candidate text.

        Args:
            text: Raw engine output, possibly ``None``.

        Returns:
            Outcome holding the trimmed text and any rejection reason.
        """
        trimmed = (text or "").strip()

        if not trimmed:
            reason = RejectionReason.EMPTY
        elif len(trimmed) < self.min_length:
            reason = RejectionReason.TOO_SHORT
        elif self.required_script and not contains_script(
            trimmed, self.required_script
        ):
            reason = RejectionReason.SCRIPT_MISMATCH
        else:
            reason = None

        if reason is not None:
            logger.debug("Rejected candidate text (%s, %d chars)", reason, len(trimmed))
        return ValidationOutcome(text=trimmed, reason=reason)
