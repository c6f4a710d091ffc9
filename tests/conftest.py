"""Pytest configuration.

Transforms read the process-wide settings and record into the shared metrics
registry, so both are reset around every test.
"""

from __future__ import annotations

import numpy as np
import pytest

from image_loader.metrics import metrics
from image_loader.raster import RasterImage
from image_loader.settings import TransformSettings, set_settings


@pytest.fixture(autouse=True)
def _isolated_state():
    set_settings(TransformSettings())
    metrics.reset()
    yield
    set_settings(None)
    metrics.reset()


def make_gradient(width: int, height: int, density: int = 320) -> RasterImage:
    """Opaque raster whose red channel encodes x and green channel encodes y."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, 0] = (np.arange(width) * 255 // max(1, width - 1))[None, :]
    pixels[:, :, 1] = (np.arange(height) * 255 // max(1, height - 1))[:, None]
    pixels[:, :, 2] = 128
    pixels[:, :, 3] = 255
    return RasterImage(pixels, density)


@pytest.fixture
def gradient():
    return make_gradient
