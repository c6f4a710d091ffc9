"""In-memory RGBA raster buffer used by the transform engine.

The buffer is a `(height, width, 4)` uint8 numpy array. `density` is the
display density metadata carried along by every transform that allocates a
new buffer (0 means unknown).
"""

from __future__ import annotations

from typing import Any

import numpy as np
from PIL import Image

from .errors import AllocationError, PreconditionError, RecycledImageError
from .logger import get_logger
from .metrics import metrics
from .settings import get_settings

_logger = get_logger("raster")

RGBA_CHANNELS = 4
RGB_CHANNELS = 3


def _density(density: int | None) -> int:
    return get_settings().default_density if density is None else int(density)


def _new_buffer(width: int, height: int) -> np.ndarray:
    try:
        return np.zeros((height, width, RGBA_CHANNELS), dtype=np.uint8)
    except MemoryError as e:
        _logger.error("raster allocation failed: %dx%d: %s", width, height, e)
        raise AllocationError(f"cannot allocate {width}x{height} raster") from e


class RasterImage:
    __slots__ = ("_pixels", "density")

    def __init__(self, pixels: np.ndarray, density: int = 0):
        if not isinstance(pixels, np.ndarray):
            raise PreconditionError(f"pixels must be a numpy array, got {type(pixels).__name__}")
        if pixels.ndim != 3 or pixels.shape[2] != RGBA_CHANNELS:
            raise PreconditionError(f"pixels must have shape (h, w, 4), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise PreconditionError(f"pixels must be uint8, got {pixels.dtype}")
        if pixels.shape[0] <= 0 or pixels.shape[1] <= 0:
            raise PreconditionError(f"raster dimensions must be non-zero, got {pixels.shape[1]}x{pixels.shape[0]}")
        self._pixels: np.ndarray | None = pixels
        self.density = int(density)
        metrics.inc("raster.allocated")

    @classmethod
    def allocate(cls, width: int, height: int, density: int | None = None) -> RasterImage:
        """Fully transparent raster of the given size."""
        if width <= 0 or height <= 0:
            raise PreconditionError(f"raster dimensions must be positive, got {width}x{height}")
        return cls(_new_buffer(width, height), _density(density))

    @classmethod
    def from_array(cls, array: Any, density: int | None = None) -> RasterImage:
        """Copy a gray (h, w), RGB (h, w, 3) or RGBA (h, w, 4) array into a new raster."""
        arr = np.asarray(array)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3 or arr.shape[2] not in (1, RGB_CHANNELS, RGBA_CHANNELS):
            raise PreconditionError(f"unsupported array shape {arr.shape}")
        height, width = arr.shape[0], arr.shape[1]
        if width <= 0 or height <= 0:
            raise PreconditionError(f"raster dimensions must be non-zero, got {width}x{height}")
        buf = _new_buffer(width, height)
        src = np.clip(arr, 0, 255).astype(np.uint8, copy=False)
        if src.shape[2] == 1:
            buf[:, :, :RGB_CHANNELS] = src
            buf[:, :, 3] = 255
        elif src.shape[2] == RGB_CHANNELS:
            buf[:, :, :RGB_CHANNELS] = src
            buf[:, :, 3] = 255
        else:
            buf[:] = src
        return cls(buf, _density(density))

    @classmethod
    def from_pil(cls, image: Image.Image, density: int | None = None) -> RasterImage:
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        return cls.from_array(np.asarray(rgba), density)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RecycledImageError("raster image has been recycled")
        return self._pixels

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def is_recycled(self) -> bool:
        return self._pixels is None

    def recycle(self) -> None:
        """Release the pixel buffer. Further pixel access raises RecycledImageError."""
        if self._pixels is None:
            return
        self._pixels = None
        metrics.inc("raster.recycled")

    def copy(self) -> RasterImage:
        return RasterImage(self.pixels.copy(), self.density)

    def same_pixels(self, other: RasterImage) -> bool:
        return self.size == other.size and bool(np.array_equal(self.pixels, other.pixels))

    def __repr__(self) -> str:
        if self._pixels is None:
            return f"RasterImage(recycled, density={self.density})"
        return f"RasterImage({self.width}x{self.height}, density={self.density})"
