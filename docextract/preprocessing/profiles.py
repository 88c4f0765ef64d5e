"""Preprocessing profiles selected per image by the characteristic analyzer.

Each profile is a fixed bundle of enhancement parameters. The numbers are
tuning constants; what must hold is the relative aggressiveness
high_contrast > document > photo > standard.
"""

from dataclasses import dataclass
from enum import StrEnum


class ProfileMode(StrEnum):
    """Named image categories the analyzer can assign."""

    STANDARD = "standard"
    HIGH_CONTRAST = "high_contrast"
    DOCUMENT = "document"
    PHOTO = "photo"
    SCREENSHOT = "screenshot"


@dataclass(frozen=True)
class PreprocessingProfile:
    """Enhancement parameters applied by the enhancement pipeline.

    Attributes:
        mode: Category that produced this profile.
        brightness_factor: Multiplier applied to every pixel.
        contrast_factor: Linear contrast stretch around mid-gray.
        sharpen_sigma: Gaussian sigma of the unsharp mask (0 disables).
        denoise: Whether to apply a median filter.
        gamma: Gamma exponent; values below 1 brighten shadows.
        preserve_color: Skip range normalization and grayscale conversion.
        threshold: Optional binarization level for grayscale output.
    """

    mode: ProfileMode
    brightness_factor: float
    contrast_factor: float
    sharpen_sigma: float
    denoise: bool
    gamma: float
    preserve_color: bool = False
    threshold: int | None = None


SCREENSHOT_PROFILE = PreprocessingProfile(
    mode=ProfileMode.SCREENSHOT,
    brightness_factor=1.0,
    contrast_factor=1.1,
    sharpen_sigma=0.8,
    denoise=False,
    gamma=1.0,
    preserve_color=True,
)

DOCUMENT_PROFILE = PreprocessingProfile(
    mode=ProfileMode.DOCUMENT,
    brightness_factor=0.9,
    contrast_factor=1.6,
    sharpen_sigma=1.4,
    denoise=True,
    gamma=1.1,
    threshold=150,
)

PHOTO_PROFILE = PreprocessingProfile(
    mode=ProfileMode.PHOTO,
    brightness_factor=1.1,
    contrast_factor=1.4,
    sharpen_sigma=1.3,
    denoise=True,
    gamma=1.0,
)

HIGH_CONTRAST_PROFILE = PreprocessingProfile(
    mode=ProfileMode.HIGH_CONTRAST,
    brightness_factor=1.4,
    contrast_factor=1.8,
    sharpen_sigma=1.8,
    denoise=True,
    gamma=0.8,
    threshold=128,
)

STANDARD_PROFILE = PreprocessingProfile(
    mode=ProfileMode.STANDARD,
    brightness_factor=1.05,
    contrast_factor=1.3,
    sharpen_sigma=1.2,
    denoise=True,
    gamma=1.0,
)

PROFILES: dict[ProfileMode, PreprocessingProfile] = {
    profile.mode: profile
    for profile in (
        SCREENSHOT_PROFILE,
        DOCUMENT_PROFILE,
        PHOTO_PROFILE,
        HIGH_CONTRAST_PROFILE,
        STANDARD_PROFILE,
    )
}

DEFAULT_PROFILE = STANDARD_PROFILE
