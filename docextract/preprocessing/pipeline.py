"""Fail-open image preprocessing pipeline for document OCR.

Chains boundary detection, characteristic analysis, and adaptive
enhancement. No stage ever raises to the caller: a failure at any point
degrades to the unmodified upload, with quality metrics tracked for
images that were enhanced.
"""

from dataclasses import dataclass

import cv2
import numpy as np
from PIL import Image

from docextract.errors import InvalidImageError
from docextract.utils.config import PreprocessingConfig
from docextract.utils.logger import get_logger

from .analyzer import analyze_image
from .boundary import detect_document
from .enhance import enhance_image
from .image_io import encode_jpeg, load_image, to_array
from .profiles import DEFAULT_PROFILE, PreprocessingProfile

logger = get_logger(__name__)


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


@dataclass(frozen=True)
class PreprocessedImage:
    """Image bytes handed to the OCR engines.

    Attributes:
        data: Enhanced JPEG bytes, or the original upload when
            ``enhanced`` is false.
        profile: Profile chosen for the image.
        width: Width of ``data`` in pixels (0 if undecodable).
        height: Height of ``data`` in pixels (0 if undecodable).
        enhanced: Whether the enhancement pipeline produced ``data``.
        metrics: Quality measurements for enhanced images.
    """

    data: bytes
    profile: PreprocessingProfile
    width: int
    height: int
    enhanced: bool
    metrics: QualityMetrics | None = None


def calculate_sharpness(image: np.ndarray) -> float:
    """Calculate image sharpness using Laplacian variance.

    Args:
        image: Input image (RGB or grayscale).

    Returns:
        Sharpness score (higher means sharper).
    """
    gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY) if image.ndim == 3 else image
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Calculate image contrast as the standard deviation of pixel intensities."""
    gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY) if image.ndim == 3 else image
    return float(gray.std())


class PreprocessingPipeline:
    """Prepares an uploaded image for OCR.

    Args:
        config: Preprocessing configuration controlling which steps to apply.
    """

    def __init__(self, config: PreprocessingConfig) -> None:
        self.config = config

    def process(self, data: bytes) -> PreprocessedImage:
        """Run boundary detection, analysis, and enhancement on raw bytes.

        Args:
            data: Encoded upload.

        Returns:
            The enhanced image, or the original bytes if any stage failed.
        """
        try:
            image = load_image(data)
        except InvalidImageError as exc:
            logger.warning("Cannot decode image, passing it through: %s", exc)
            return PreprocessedImage(
                data=data, profile=DEFAULT_PROFILE, width=0, height=0, enhanced=False
            )

        if not self.config.enabled:
            return PreprocessedImage(
                data=data,
                profile=DEFAULT_PROFILE,
                width=image.width,
                height=image.height,
                enhanced=False,
            )

        if self.config.boundary_detection_enabled:
            image = detect_document(image)
        profile = analyze_image(image)
        return self.enhance(image, profile, original=data)

    def enhance(
        self, image: Image.Image, profile: PreprocessingProfile, original: bytes
    ) -> PreprocessedImage:
        """Apply the profile's enhancement steps and encode the result.

        Args:
            image: Decoded (possibly cropped) upload.
            profile: Profile selected by the analyzer.
            original: Upload bytes returned unchanged on failure.

        Returns:
            Enhanced JPEG image, or the original bytes on failure.
        """
        try:
            before = to_array(image)
            pixels = enhance_image(
                image,
                profile,
                max_dimension=self.config.max_dimension,
                threshold_enabled=self.config.threshold_enabled,
            )
            encoded = encode_jpeg(pixels, quality=self.config.jpeg_quality)
        except Exception as exc:
            logger.warning("Image enhancement failed, using original image: %s", exc)
            return PreprocessedImage(
                data=original,
                profile=profile,
                width=image.width,
                height=image.height,
                enhanced=False,
            )

        metrics = QualityMetrics(
            sharpness_before=calculate_sharpness(before),
            sharpness_after=calculate_sharpness(pixels),
            contrast_before=calculate_contrast(before),
            contrast_after=calculate_contrast(pixels),
        )
        logger.info(
            "Preprocessing complete (%s): sharpness %.1f->%.1f, contrast %.1f->%.1f",
            profile.mode,
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return PreprocessedImage(
            data=encoded,
            profile=profile,
            width=pixels.shape[1],
            height=pixels.shape[0],
            enhanced=True,
            metrics=metrics,
        )
