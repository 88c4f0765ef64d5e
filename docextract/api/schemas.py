"""Pydantic request/response schemas for the FastAPI endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docextract.ocr.extractor import ExtractionOutcome, ExtractionResult, OCREngine


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractRequest(CamelModel):
    """Request body for base64 image extraction."""

    base64_image: str = Field(default="")
    source_file: str = ""


class ExtractedText(CamelModel):
    """Response schema for accepted text."""

    content: str
    source_file: str
    extracted_at: datetime
    ocr_engine: OCREngine
    language: str | None = None
    confidence: int | None = None

    @classmethod
    def from_result(cls, result: ExtractionResult) -> "ExtractedText":
        return cls(
            content=result.content,
            source_file=result.source_file,
            extracted_at=result.extracted_at,
            ocr_engine=result.ocr_engine,
            language=result.language,
            confidence=result.confidence,
        )


class ExtractionResponse(CamelModel):
    """Response schema for an extraction request."""

    success: bool
    data: ExtractedText | None = None
    error: str = ""

    @classmethod
    def from_outcome(cls, outcome: ExtractionOutcome) -> "ExtractionResponse":
        return cls(
            success=outcome.success,
            data=ExtractedText.from_result(outcome.data) if outcome.data else None,
            error=outcome.error,
        )


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    primary_configured: bool
