"""Profile-driven image enhancement for OCR legibility.

Each step is a small array transform; :func:`enhance_image` applies them
in a fixed order, every step operating on the previous step's output.
Point operations (brightness, gamma, contrast) go through lookup tables.
"""

import cv2
import numpy as np
from PIL import Image, ImageOps

from docextract.utils.logger import get_logger

from .image_io import to_array
from .profiles import PreprocessingProfile

logger = get_logger(__name__)

_LEVELS = np.arange(256, dtype=np.float32)


def _lut(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def auto_orient(image: Image.Image) -> Image.Image:
    """Rotate/flip an image according to its EXIF orientation tag."""
    return ImageOps.exif_transpose(image)


def normalize_range(
    image: np.ndarray, low_percentile: float = 1.0, high_percentile: float = 99.0
) -> np.ndarray:
    """Stretch intensities so the given percentiles map to 0 and 255.

    Args:
        image: Grayscale or RGB uint8 array.
        low_percentile: Percentile mapped to black.
        high_percentile: Percentile mapped to white.

    Returns:
        Stretched image; unchanged when the image is flat.
    """
    low, high = np.percentile(image, (low_percentile, high_percentile))
    if high - low < 1:
        return image
    stretched = (image.astype(np.float32) - low) * (255.0 / (high - low))
    return np.clip(stretched, 0, 255).astype(np.uint8)


def adjust_brightness(image: np.ndarray, factor: float) -> np.ndarray:
    """Multiply every pixel by ``factor``."""
    if factor == 1.0:
        return image
    return cv2.LUT(image, _lut(_LEVELS * factor))


def apply_gamma(image: np.ndarray, gamma: float) -> np.ndarray:
    """Apply ``out = 255 * (in / 255) ** gamma``; gamma < 1 lifts shadows."""
    if gamma == 1.0:
        return image
    return cv2.LUT(image, _lut(255.0 * (_LEVELS / 255.0) ** gamma))


def apply_contrast(image: np.ndarray, factor: float) -> np.ndarray:
    """Linear contrast stretch around mid-gray.

    ``out = in * factor - 128 * (factor - 1)``
    """
    if factor == 1.0:
        return image
    return cv2.LUT(image, _lut(_LEVELS * factor - 128.0 * (factor - 1.0)))


def sharpen(image: np.ndarray, sigma: float, amount: float = 1.0) -> np.ndarray:
    """Unsharp-mask sharpening.

    Args:
        image: Grayscale or RGB uint8 array.
        sigma: Gaussian blur sigma; non-positive values disable sharpening.
        amount: Weight of the high-frequency detail added back.

    Returns:
        Sharpened image.
    """
    if sigma <= 0:
        return image
    blurred = cv2.GaussianBlur(image, (0, 0), sigma)
    return cv2.addWeighted(image, 1.0 + amount, blurred, -amount, 0)


def denoise_median(image: np.ndarray, kernel_size: int = 3) -> np.ndarray:
    """Median smoothing to remove speckle noise."""
    return cv2.medianBlur(image, kernel_size)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB array to a single channel; grayscale passes through."""
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    return image


def apply_threshold(image: np.ndarray, level: int) -> np.ndarray:
    """Binarize at a fixed level, producing only 0 and 255."""
    _, binary = cv2.threshold(to_grayscale(image), level, 255, cv2.THRESH_BINARY)
    return binary


def limit_size(image: np.ndarray, max_dimension: int) -> np.ndarray:
    """Downscale so the longer side is at most ``max_dimension``.

    Smaller images are never enlarged.
    """
    height, width = image.shape[:2]
    longest = max(height, width)
    if longest <= max_dimension:
        return image

    scale = max_dimension / longest
    size = (max(1, round(width * scale)), max(1, round(height * scale)))
    logger.debug("Resizing %dx%d to %dx%d", width, height, size[0], size[1])
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def enhance_image(
    image: Image.Image,
    profile: PreprocessingProfile,
    max_dimension: int = 2048,
    threshold_enabled: bool = False,
) -> np.ndarray:
    """Run the ordered enhancement steps for a profile.

    Args:
        image: Decoded (possibly cropped) upload.
        profile: Parameters chosen by the analyzer.
        max_dimension: Longest allowed output side in pixels.
        threshold_enabled: Apply the profile's binarization level, if any.

    Returns:
        Enhanced uint8 array, grayscale unless the profile preserves color.
    """
    pixels = to_array(auto_orient(image))

    if not profile.preserve_color:
        pixels = normalize_range(pixels)
    pixels = adjust_brightness(pixels, profile.brightness_factor)
    pixels = apply_gamma(pixels, profile.gamma)
    pixels = apply_contrast(pixels, profile.contrast_factor)
    pixels = sharpen(pixels, profile.sharpen_sigma)
    if profile.denoise:
        pixels = denoise_median(pixels)
    if not profile.preserve_color:
        pixels = to_grayscale(pixels)
        if threshold_enabled and profile.threshold is not None:
            pixels = apply_threshold(pixels, profile.threshold)

    return limit_size(pixels, max_dimension)
