"""Shared test fixtures for the extraction test suite."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from docextract.utils.config import (
    AppConfig,
    HistoryConfig,
    PrimaryEngineConfig,
)


def _encode_image(pixels: np.ndarray, fmt: str = "PNG") -> bytes:
    """Encode a uint8 array as image bytes."""
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a synthetic grayscale page with dark text-like bars."""
    image = np.full((200, 300), 230, dtype=np.uint8)
    image[40:50, 30:270] = 20
    image[80:90, 30:200] = 20
    image[120:130, 30:250] = 20
    return image


@pytest.fixture
def sample_color_image() -> np.ndarray:
    """Create a synthetic RGB test image."""
    image = np.zeros((200, 300, 3), dtype=np.uint8)
    image[50:150, 50:250] = (255, 255, 255)
    return image


@pytest.fixture
def sample_png(sample_image: np.ndarray) -> bytes:
    """The grayscale sample page encoded as PNG."""
    return _encode_image(sample_image)


@pytest.fixture
def scanned_page_png() -> bytes:
    """A bright, low-spread page (mean ~210, stdev ~20)."""
    rng = np.random.default_rng(7)
    pixels = rng.normal(210, 20, size=(240, 320)).clip(0, 255).astype(np.uint8)
    return _encode_image(pixels)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Configuration with no API key and history under tmp_path."""
    return AppConfig(
        primary=PrimaryEngineConfig(api_key=None),
        history=HistoryConfig(path=str(tmp_path / "history.json")),
    )


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent
