"""Pytest fixtures for optimizer tests."""

import io

import numpy as np
import pytest
from PIL import Image

from pio.core.image import RasterImage
from tests.helpers.images import make_photo


@pytest.fixture
def photo() -> RasterImage:
    """Opaque RGB test image."""
    return RasterImage(make_photo())


@pytest.fixture
def photo_rgba() -> RasterImage:
    """RGBA test image with a transparent left half."""
    rgb = make_photo()
    alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
    alpha[:, : rgb.shape[1] // 2] = 0
    return RasterImage(np.concatenate([rgb, alpha], axis=2))


@pytest.fixture
def photo_png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(make_photo(96, 64)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def photo_jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(make_photo(96, 64)).save(buffer, format="JPEG", quality=98)
    return buffer.getvalue()
