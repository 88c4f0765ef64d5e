"""Document boundary detection for photographed pages.

Trims background and clutter from the edges of an upload using a
brightness heuristic. This is a uniform proportional crop, not contour
detection: it never locates the actual page quadrilateral, it only
removes a fixed margin whose size depends on overall brightness.
"""

from PIL import Image

from docextract.utils.logger import get_logger

from .image_io import channel_stats

logger = get_logger(__name__)

BRIGHTNESS_SPLIT = 128.0
DARK_CROP_RATIO = 0.05
LIGHT_CROP_RATIO = 0.10


def crop_ratio_for_brightness(mean_brightness: float) -> float:
    """Pick the per-edge crop fraction for an image's average brightness.

    Dark-dominant images are usually a light page on a dark backdrop and
    need only a small trim; light-dominant images tend to carry wider
    intrusive borders.
    """
    if mean_brightness < BRIGHTNESS_SPLIT:
        return DARK_CROP_RATIO
    return LIGHT_CROP_RATIO


def compute_crop_box(
    width: int, height: int, ratio: float
) -> tuple[int, int, int, int] | None:
    """Compute a centered crop box removing ``ratio`` from every edge.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        ratio: Fraction of each dimension to remove from each side.

    Returns:
        ``(left, top, right, bottom)``, or ``None`` when the region would
        be degenerate or identical to the full image.
    """
    if width < 1 or height < 1:
        return None

    left = int(width * ratio)
    top = int(height * ratio)
    crop_width = max(1, int(width * (1 - 2 * ratio)))
    crop_height = max(1, int(height * (1 - 2 * ratio)))

    if left + crop_width > width or top + crop_height > height:
        return None
    if crop_width == width and crop_height == height:
        return None
    return left, top, left + crop_width, top + crop_height


def detect_document(image: Image.Image) -> Image.Image:
    """Crop an image to its probable document region.

    Never raises: on any failure the input image is returned unchanged.
    The crop is symmetric, so EXIF orientation can still be applied to
    the result afterwards.

    Args:
        image: Decoded upload.

    Returns:
        The cropped image, or the original when no crop applies.
    """
    try:
        mean, _ = channel_stats(image)
        ratio = crop_ratio_for_brightness(mean)
        box = compute_crop_box(image.width, image.height, ratio)
        if box is None:
            logger.debug(
                "Skipping document crop for %dx%d image", image.width, image.height
            )
            return image

        cropped = image.crop(box)
        logger.info(
            "Document detection cropped %.0f%% from each edge (brightness %.1f)",
            ratio * 100,
            mean,
        )
        return cropped
    except Exception as exc:
        logger.warning("Document detection failed, using original image: %s", exc)
        return image
