"""Image characteristic analysis and preprocessing profile selection."""

from dataclasses import dataclass

from PIL import Image

from docextract.utils.logger import get_logger

from .image_io import channel_stats
from .profiles import (
    DEFAULT_PROFILE,
    DOCUMENT_PROFILE,
    HIGH_CONTRAST_PROFILE,
    PHOTO_PROFILE,
    SCREENSHOT_PROFILE,
    STANDARD_PROFILE,
    PreprocessingProfile,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageStats:
    """Global brightness statistics of an image."""

    mean: float
    stdev: float


def compute_stats(image: Image.Image) -> ImageStats:
    """Measure mean brightness and spread, averaged across color channels."""
    mean, stdev = channel_stats(image)
    return ImageStats(mean=mean, stdev=stdev)


def classify_stats(stats: ImageStats) -> PreprocessingProfile:
    """Map brightness statistics to a preprocessing profile.

    The ranges overlap, so the order of the checks is significant and
    the first match wins:

    1. stdev > 60 and mean > 150: ``screenshot``
    2. mean > 200 and stdev < 50: ``document``
    3. 80 <= mean <= 200 and stdev > 40: ``photo``
    4. mean < 80: ``high_contrast``
    5. otherwise: ``standard``

    Args:
        stats: Measured image statistics.

    Returns:
        The matching profile.
    """
    if stats.stdev > 60 and stats.mean > 150:
        return SCREENSHOT_PROFILE
    if stats.mean > 200 and stats.stdev < 50:
        return DOCUMENT_PROFILE
    if 80 <= stats.mean <= 200 and stats.stdev > 40:
        return PHOTO_PROFILE
    if stats.mean < 80:
        return HIGH_CONTRAST_PROFILE
    return STANDARD_PROFILE


def analyze_image(image: Image.Image) -> PreprocessingProfile:
    """Select the preprocessing profile for an image.

    Never raises: any failure yields the default ``standard`` profile.

    Args:
        image: Decoded (possibly cropped) upload.

    Returns:
        Profile to drive the enhancement pipeline.
    """
    try:
        stats = compute_stats(image)
    except Exception as exc:
        logger.warning("Image analysis failed, using default profile: %s", exc)
        return DEFAULT_PROFILE

    profile = classify_stats(stats)
    logger.info(
        "Selected preprocessing mode %s (mean %.1f, stdev %.1f)",
        profile.mode,
        stats.mean,
        stats.stdev,
    )
    return profile
