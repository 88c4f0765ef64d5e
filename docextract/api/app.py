"""FastAPI application for the document text extraction service.

Provides REST endpoints for base64 and multipart image extraction and a
health check. Request marshaling only; all decisions live in
:class:`~docextract.ocr.extractor.DocumentExtractor`.
"""

import base64
import binascii
import shutil
from functools import lru_cache
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from docextract import __version__
from docextract.ocr.extractor import DocumentExtractor
from docextract.utils.config import load_config
from docextract.utils.logger import get_logger

from .schemas import ExtractionResponse, ExtractRequest, HealthResponse

logger = get_logger(__name__)

app = FastAPI(
    title="Document Text Extraction API",
    description="Extract text in any language from document images",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/webp",
    "image/bmp",
    "application/octet-stream",
}


@lru_cache(maxsize=1)
def _get_extractor() -> DocumentExtractor:
    """Build the process-wide extractor from configuration, once."""
    return DocumentExtractor(load_config())


def decode_base64_image(payload: str) -> bytes:
    """Decode a base64 image, tolerating a ``data:...;base64,`` prefix.

    Raises:
        HTTPException: 400 if the payload is not valid base64.
    """
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Invalid base64 image") from exc


def _check_payload_size(data: bytes, extractor: DocumentExtractor) -> None:
    minimum = extractor.config.api.min_payload_bytes
    if len(data) < minimum:
        raise HTTPException(
            status_code=400,
            detail=f"Image payload too small ({len(data)} bytes, minimum {minimum})",
        )


async def _run_extraction(
    extractor: DocumentExtractor, data: bytes, source_file: str
) -> ExtractionResponse:
    try:
        outcome = await extractor.extract(data, source_file=source_file)
    except Exception as exc:
        logger.error("Extraction failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return ExtractionResponse.from_outcome(outcome)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    extractor = _get_extractor()
    tesseract_cmd = extractor.config.fallback.tesseract_cmd or "tesseract"
    return HealthResponse(
        status="healthy",
        version=__version__,
        tesseract_available=shutil.which(tesseract_cmd) is not None,
        primary_configured=extractor.primary.available,
    )


@app.post("/extract", response_model=ExtractionResponse)
async def extract_text(request: ExtractRequest) -> ExtractionResponse:
    """Extract text from a base64-encoded image.

    Args:
        request: JSON body with ``base64Image`` and optional ``sourceFile``.

    Returns:
        ``{success, data, error}``; engine failures yield ``success=false``.
    """
    if not request.base64_image:
        raise HTTPException(status_code=400, detail="No image provided")

    extractor = _get_extractor()
    data = decode_base64_image(request.base64_image)
    _check_payload_size(data, extractor)
    logger.info("Received base64 image of %d bytes", len(data))
    return await _run_extraction(extractor, data, request.source_file)


@app.post("/extract/file", response_model=ExtractionResponse)
async def extract_file(
    file: Annotated[UploadFile, File(...)],
) -> ExtractionResponse:
    """Extract text from an uploaded image file.

    Args:
        file: Uploaded image (PNG, JPEG, TIFF, WebP, or BMP).

    Returns:
        ``{success, data, error}``; engine failures yield ``success=false``.
    """
    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )

    extractor = _get_extractor()
    data = await file.read()
    _check_payload_size(data, extractor)
    return await _run_extraction(extractor, data, file.filename or "")
