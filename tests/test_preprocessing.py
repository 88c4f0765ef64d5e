"""Tests for boundary detection, analysis, and image enhancement."""

import io
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from docextract.errors import InvalidImageError
from docextract.preprocessing.analyzer import (
    ImageStats,
    analyze_image,
    classify_stats,
    compute_stats,
)
from docextract.preprocessing.boundary import (
    DARK_CROP_RATIO,
    LIGHT_CROP_RATIO,
    compute_crop_box,
    crop_ratio_for_brightness,
    detect_document,
)
from docextract.preprocessing.enhance import (
    adjust_brightness,
    apply_contrast,
    apply_gamma,
    apply_threshold,
    auto_orient,
    denoise_median,
    enhance_image,
    limit_size,
    normalize_range,
    sharpen,
    to_grayscale,
)
from docextract.preprocessing.image_io import (
    channel_stats,
    encode_jpeg,
    load_image,
    to_array,
)
from docextract.preprocessing.pipeline import (
    PreprocessedImage,
    PreprocessingPipeline,
    QualityMetrics,
    calculate_contrast,
    calculate_sharpness,
)
from docextract.preprocessing.profiles import (
    DEFAULT_PROFILE,
    DOCUMENT_PROFILE,
    PROFILES,
    SCREENSHOT_PROFILE,
    STANDARD_PROFILE,
    ProfileMode,
)
from docextract.utils.config import PreprocessingConfig


def _uniform(value: int, width: int = 200, height: int = 100) -> Image.Image:
    """Create a flat grayscale image."""
    return Image.fromarray(np.full((height, width), value, dtype=np.uint8))


def _encode(image: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt, **params)
    return buf.getvalue()


def _gradient(height: int, width: int) -> np.ndarray:
    """Horizontal 0-255 gradient."""
    row = np.linspace(0, 255, width).astype(np.uint8)
    return np.tile(row, (height, 1))


def _gradient16(height: int, width: int) -> np.ndarray:
    """Horizontal 0-65535 gradient, as written by 16-bit scanners."""
    row = np.linspace(0, 65535, width).astype(np.uint16)
    return np.tile(row, (height, 1))


class TestImageIO:
    """Tests for decoding and statistics helpers."""

    def test_load_invalid_bytes_raises(self) -> None:
        with pytest.raises(InvalidImageError):
            load_image(b"definitely not an image")

    def test_channel_stats_gray(self) -> None:
        mean, stdev = channel_stats(_uniform(120))
        assert mean == pytest.approx(120.0)
        assert stdev == pytest.approx(0.0)

    def test_channel_stats_ignores_alpha(self) -> None:
        pixels = np.zeros((10, 10, 4), dtype=np.uint8)
        pixels[..., :3] = 90
        pixels[..., 3] = 255
        mean, _ = channel_stats(Image.fromarray(pixels))
        assert mean == pytest.approx(90.0)

    def test_sixteen_bit_gradient_rescaled(self) -> None:
        image = load_image(_encode(Image.fromarray(_gradient16(64, 256))))
        assert image.mode.startswith("I")

        pixels = to_array(image)
        mean, _ = channel_stats(image)

        assert pixels.dtype == np.uint8
        assert pixels.min() == 0
        assert pixels.max() == 255
        assert mean == pytest.approx(127.5, abs=1.0)

    def test_sixteen_bit_dark_image_stays_dark(self) -> None:
        dark = np.full((20, 20), 2000, dtype=np.uint16)
        pixels = to_array(Image.fromarray(dark))
        assert int(pixels.max()) == 8

    def test_float_image_in_unit_range(self) -> None:
        pixels = to_array(Image.fromarray(np.full((8, 8), 0.5, dtype=np.float32)))
        assert int(pixels[0, 0]) == 128

    def test_encode_jpeg_from_array(self) -> None:
        data = encode_jpeg(np.full((20, 30), 128, dtype=np.uint8), quality=90)
        assert data[:3] == b"\xff\xd8\xff"
        assert Image.open(io.BytesIO(data)).size == (30, 20)


class TestBoundaryDetection:
    """Tests for the brightness-based document crop."""

    def test_ratio_for_dark_and_light_images(self) -> None:
        assert crop_ratio_for_brightness(60.0) == DARK_CROP_RATIO
        assert crop_ratio_for_brightness(127.9) == DARK_CROP_RATIO
        assert crop_ratio_for_brightness(128.0) == LIGHT_CROP_RATIO
        assert crop_ratio_for_brightness(240.0) == LIGHT_CROP_RATIO

    def test_dark_image_cropped_five_percent(self) -> None:
        result = detect_document(_uniform(50))
        assert result.size == (180, 90)

    def test_light_image_cropped_ten_percent(self) -> None:
        result = detect_document(_uniform(220))
        assert result.size == (160, 80)

    def test_crop_box_is_centered(self) -> None:
        assert compute_crop_box(200, 100, 0.1) == (20, 10, 180, 90)

    def test_single_pixel_image_unchanged(self) -> None:
        image = _uniform(220, width=1, height=1)
        assert detect_document(image) is image

    def test_degenerate_box_skipped(self) -> None:
        assert compute_crop_box(0, 10, 0.1) is None
        assert compute_crop_box(1, 1, 0.1) is None

    @pytest.mark.parametrize(
        "size", [(1, 1), (1, 50), (3, 3), (7, 2), (640, 480), (33, 1000)]
    )
    def test_output_within_input_bounds(self, size: tuple[int, int]) -> None:
        width, height = size
        for value in (10, 240):
            result = detect_document(_uniform(value, width, height))
            assert 1 <= result.width <= width
            assert 1 <= result.height <= height

    def test_failure_returns_original(self) -> None:
        image = _uniform(200)
        with patch(
            "docextract.preprocessing.boundary.channel_stats",
            side_effect=RuntimeError("boom"),
        ):
            assert detect_document(image) is image


class TestAnalyzer:
    """Tests for profile classification."""

    @pytest.mark.parametrize(
        ("mean", "stdev", "mode"),
        [
            (170.0, 70.0, ProfileMode.SCREENSHOT),
            (210.0, 20.0, ProfileMode.DOCUMENT),
            (230.0, 49.0, ProfileMode.DOCUMENT),
            (120.0, 50.0, ProfileMode.PHOTO),
            (80.0, 41.0, ProfileMode.PHOTO),
            (50.0, 10.0, ProfileMode.HIGH_CONTRAST),
            (79.0, 45.0, ProfileMode.HIGH_CONTRAST),
            (120.0, 20.0, ProfileMode.STANDARD),
            (210.0, 55.0, ProfileMode.STANDARD),
        ],
    )
    def test_classification_order(
        self, mean: float, stdev: float, mode: ProfileMode
    ) -> None:
        assert classify_stats(ImageStats(mean, stdev)).mode == mode

    def test_screenshot_wins_over_photo(self) -> None:
        # Matches both the screenshot and the photo range; screenshot is first.
        assert classify_stats(ImageStats(190.0, 65.0)).mode == ProfileMode.SCREENSHOT

    def test_classification_is_deterministic(self) -> None:
        stats = ImageStats(140.0, 45.0)
        assert classify_stats(stats) is classify_stats(stats)

    def test_every_mode_has_a_profile(self) -> None:
        assert set(PROFILES) == set(ProfileMode)

    def test_aggressiveness_ordering(self) -> None:
        order = [
            ProfileMode.HIGH_CONTRAST,
            ProfileMode.DOCUMENT,
            ProfileMode.PHOTO,
            ProfileMode.STANDARD,
        ]
        contrasts = [PROFILES[mode].contrast_factor for mode in order]
        sharpness = [PROFILES[mode].sharpen_sigma for mode in order]
        assert contrasts == sorted(contrasts, reverse=True)
        assert sharpness == sorted(sharpness, reverse=True)
        assert PROFILES[ProfileMode.HIGH_CONTRAST].gamma < 1.0

    def test_screenshot_preserves_color(self) -> None:
        assert SCREENSHOT_PROFILE.preserve_color is True
        assert SCREENSHOT_PROFILE.denoise is False

    def test_analyze_bright_flat_page(self) -> None:
        assert analyze_image(_uniform(230)).mode == ProfileMode.DOCUMENT

    def test_analyze_dark_image(self) -> None:
        assert analyze_image(_uniform(30)).mode == ProfileMode.HIGH_CONTRAST

    def test_compute_stats_color(self, sample_color_image: np.ndarray) -> None:
        stats = compute_stats(Image.fromarray(sample_color_image))
        assert 0 < stats.mean < 255
        assert stats.stdev > 0

    def test_failure_returns_default_profile(self) -> None:
        with patch(
            "docextract.preprocessing.analyzer.compute_stats",
            side_effect=ValueError("bad image"),
        ):
            assert analyze_image(_uniform(100)) is DEFAULT_PROFILE
        assert DEFAULT_PROFILE.mode == ProfileMode.STANDARD


class TestEnhancementSteps:
    """Tests for individual enhancement transforms."""

    def test_brightness_multiplies(self) -> None:
        result = adjust_brightness(np.full((10, 10), 100, dtype=np.uint8), 1.5)
        assert np.all(result == 150)

    def test_brightness_clips(self) -> None:
        result = adjust_brightness(np.full((4, 4), 200, dtype=np.uint8), 2.0)
        assert np.all(result == 255)

    def test_gamma_below_one_brightens(self) -> None:
        result = apply_gamma(np.full((4, 4), 64, dtype=np.uint8), 0.8)
        assert result.mean() > 64

    def test_gamma_one_is_identity(self) -> None:
        image = np.full((4, 4), 64, dtype=np.uint8)
        assert apply_gamma(image, 1.0) is image

    def test_contrast_formula(self) -> None:
        image = np.array([[100, 200, 128]], dtype=np.uint8)
        result = apply_contrast(image, 2.0)
        np.testing.assert_array_equal(result, [[72, 255, 128]])

    def test_normalize_stretches_range(self) -> None:
        row = np.arange(100, 151, dtype=np.uint8)
        image = np.tile(row, (10, 1))
        result = normalize_range(image)
        assert result.min() == 0
        assert result.max() == 255

    def test_normalize_flat_image_unchanged(self) -> None:
        image = np.full((10, 10), 77, dtype=np.uint8)
        np.testing.assert_array_equal(normalize_range(image), image)

    def test_sharpen_disabled_for_zero_sigma(self) -> None:
        image = np.full((10, 10), 50, dtype=np.uint8)
        assert sharpen(image, 0) is image

    def test_sharpen_increases_edge_contrast(self, sample_image: np.ndarray) -> None:
        result = sharpen(sample_image, 1.2)
        assert result.shape == sample_image.shape
        assert calculate_sharpness(result) >= calculate_sharpness(sample_image)

    def test_median_removes_speckle(self) -> None:
        image = np.zeros((9, 9), dtype=np.uint8)
        image[4, 4] = 255
        assert denoise_median(image).max() == 0

    def test_grayscale_conversion(self, sample_color_image: np.ndarray) -> None:
        gray = to_grayscale(sample_color_image)
        assert gray.ndim == 2
        assert to_grayscale(gray) is gray

    def test_threshold_is_binary(self, sample_image: np.ndarray) -> None:
        binary = apply_threshold(sample_image, 128)
        assert set(np.unique(binary)).issubset({0, 255})

    def test_limit_size_downscales_longest_side(self) -> None:
        result = limit_size(np.zeros((1000, 3000), dtype=np.uint8), 2048)
        assert result.shape == (683, 2048)

    def test_limit_size_never_enlarges(self) -> None:
        image = np.zeros((300, 500), dtype=np.uint8)
        assert limit_size(image, 2048) is image

    def test_auto_orient_applies_exif_rotation(self) -> None:
        exif = Image.Exif()
        exif[0x0112] = 6
        data = _encode(
            Image.fromarray(np.zeros((20, 40), dtype=np.uint8)),
            fmt="JPEG",
            exif=exif.tobytes(),
        )
        oriented = auto_orient(load_image(data))
        assert oriented.size == (20, 40)


class TestEnhanceImage:
    """Tests for the ordered enhancement run."""

    def test_standard_profile_outputs_grayscale(
        self, sample_color_image: np.ndarray
    ) -> None:
        result = enhance_image(Image.fromarray(sample_color_image), STANDARD_PROFILE)
        assert result.ndim == 2

    def test_screenshot_profile_keeps_color(
        self, sample_color_image: np.ndarray
    ) -> None:
        result = enhance_image(Image.fromarray(sample_color_image), SCREENSHOT_PROFILE)
        assert result.ndim == 3

    def test_threshold_only_when_enabled(self, sample_image: np.ndarray) -> None:
        image = Image.fromarray(sample_image)
        binary = enhance_image(image, DOCUMENT_PROFILE, threshold_enabled=True)
        assert set(np.unique(binary)).issubset({0, 255})

        gray = enhance_image(image, DOCUMENT_PROFILE, threshold_enabled=False)
        assert gray.ndim == 2

    def test_respects_max_dimension(self) -> None:
        image = Image.fromarray(_gradient(600, 900))
        result = enhance_image(image, STANDARD_PROFILE, max_dimension=300)
        assert max(result.shape[:2]) == 300


class TestQualityMetrics:
    """Tests for image quality measurement functions."""

    def test_blank_image_low_sharpness(self) -> None:
        blank = np.zeros((100, 100), dtype=np.uint8)
        assert calculate_sharpness(blank) == 0.0

    def test_contrast_color_image(self, sample_color_image: np.ndarray) -> None:
        assert calculate_contrast(sample_color_image) > 0


class TestPreprocessingPipeline:
    """Tests for the fail-open preprocessing pipeline."""

    def test_process_produces_jpeg(self, sample_png: bytes) -> None:
        result = PreprocessingPipeline(PreprocessingConfig()).process(sample_png)
        assert isinstance(result, PreprocessedImage)
        assert result.enhanced is True
        assert result.data[:3] == b"\xff\xd8\xff"
        assert isinstance(result.metrics, QualityMetrics)
        decoded = Image.open(io.BytesIO(result.data))
        assert decoded.size == (result.width, result.height)

    def test_large_image_capped_at_max_dimension(self) -> None:
        data = _encode(Image.fromarray(_gradient(1500, 3000)))
        result = PreprocessingPipeline(PreprocessingConfig()).process(data)
        decoded = Image.open(io.BytesIO(result.data))
        assert max(decoded.size) <= 2048

    def test_reprocessing_enhanced_output_does_not_fail(
        self, sample_png: bytes
    ) -> None:
        pipeline = PreprocessingPipeline(PreprocessingConfig())
        first = pipeline.process(sample_png)
        second = pipeline.process(first.data)
        assert second.enhanced is True
        Image.open(io.BytesIO(second.data)).verify()

    def test_boundary_detection_crops(self, sample_png: bytes) -> None:
        result = PreprocessingPipeline(PreprocessingConfig()).process(sample_png)
        assert (result.width, result.height) == (240, 160)

    def test_boundary_detection_disabled(self, sample_png: bytes) -> None:
        config = PreprocessingConfig(boundary_detection_enabled=False)
        result = PreprocessingPipeline(config).process(sample_png)
        assert (result.width, result.height) == (300, 200)

    def test_scanned_page_uses_document_profile(self, scanned_page_png: bytes) -> None:
        result = PreprocessingPipeline(PreprocessingConfig()).process(scanned_page_png)
        assert result.profile.mode == ProfileMode.DOCUMENT

    def test_sixteen_bit_scan_keeps_its_contrast(self) -> None:
        data = _encode(Image.fromarray(_gradient16(64, 256)))
        result = PreprocessingPipeline(PreprocessingConfig()).process(data)

        assert result.enhanced is True
        assert result.profile.mode == ProfileMode.PHOTO
        decoded = np.asarray(Image.open(io.BytesIO(result.data)).convert("L"))
        assert decoded.mean() < 200
        assert decoded.std() > 40

    def test_undecodable_bytes_pass_through(self) -> None:
        data = b"\x00\x01garbage"
        result = PreprocessingPipeline(PreprocessingConfig()).process(data)
        assert result.data == data
        assert result.enhanced is False
        assert result.profile is DEFAULT_PROFILE

    def test_enhancement_failure_returns_original(self, sample_png: bytes) -> None:
        with patch(
            "docextract.preprocessing.pipeline.enhance_image",
            side_effect=RuntimeError("opencv exploded"),
        ):
            result = PreprocessingPipeline(PreprocessingConfig()).process(sample_png)
        assert result.data == sample_png
        assert result.enhanced is False

    def test_disabled_pipeline_passes_through(self, sample_png: bytes) -> None:
        config = PreprocessingConfig(enabled=False)
        result = PreprocessingPipeline(config).process(sample_png)
        assert result.data == sample_png
        assert result.enhanced is False
        assert (result.width, result.height) == (300, 200)
