"""Decoding, encoding, and pixel access helpers for uploaded images."""

import io

import numpy as np
from PIL import Image

from docextract.errors import InvalidImageError

_GRAY_MODES = {"1", "L", "LA"}
# Single-channel modes deeper than 8 bits; Pillow's convert("L") clips these.
_HIGH_DEPTH_MODES = {"I", "I;16", "I;16L", "I;16B", "I;16N", "F"}


def load_image(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image.

    Args:
        data: Encoded image bytes (PNG, JPEG, TIFF, WebP, ...).

    Returns:
        Decoded image with its metadata (including EXIF) intact.

    Raises:
        InvalidImageError: If the bytes are not a readable image.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise InvalidImageError(f"Unreadable image data: {exc}") from exc
    return image


def to_array(image: Image.Image) -> np.ndarray:
    """Convert an image to a uint8 array, grayscale (H, W) or RGB (H, W, 3).

    Alpha channels and palettes are dropped. High-bit-depth grayscale is
    rescaled to 0-255 rather than clipped.
    """
    if image.mode in _HIGH_DEPTH_MODES:
        return rescale_to_uint8(np.asarray(image), image.mode)
    if image.mode in _GRAY_MODES:
        return np.asarray(image.convert("L"))
    return np.asarray(image.convert("RGB"))


def rescale_to_uint8(pixels: np.ndarray, mode: str) -> np.ndarray:
    """Map a high-bit-depth grayscale array onto 0-255.

    ``I;16`` data always spans 0-65535. Wider ``I`` data is scaled by the
    16-bit range unless it exceeds it. ``F`` data in 0-1 is treated as
    normalized intensities.

    Args:
        pixels: Single-channel integer or float array.
        mode: Pillow mode the array came from.

    Returns:
        uint8 array of the same shape.
    """
    values = pixels.astype(np.float64)
    peak = float(values.max()) if values.size else 0.0
    if mode.startswith("I;16"):
        full_scale = 65535.0
    elif mode == "F" and peak <= 1.0:
        full_scale = 1.0
    elif mode == "F" and peak <= 255:
        full_scale = 255.0
    else:
        full_scale = max(65535.0, peak)
    scaled = np.rint(np.clip(values, 0, None) * (255.0 / full_scale))
    return np.clip(scaled, 0, 255).astype(np.uint8)


def channel_stats(image: Image.Image) -> tuple[float, float]:
    """Mean and standard deviation of brightness averaged across channels.

    Args:
        image: Input image.

    Returns:
        Tuple of (mean, stdev), both on the 0-255 scale.
    """
    pixels = to_array(image).astype(np.float64)
    if pixels.ndim == 2:
        return float(pixels.mean()), float(pixels.std())

    flat = pixels.reshape(-1, pixels.shape[2])
    return float(flat.mean(axis=0).mean()), float(flat.std(axis=0).mean())


def encode_jpeg(image: Image.Image | np.ndarray, quality: int = 95) -> bytes:
    """Encode an image or pixel array as JPEG bytes.

    Args:
        image: Pillow image, or a uint8 grayscale/RGB array.
        quality: JPEG quality (1-100).

    Returns:
        Encoded JPEG bytes.
    """
    if isinstance(image, np.ndarray):
        image = Image.fromarray(image)
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()
