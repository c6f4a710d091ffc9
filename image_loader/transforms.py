"""Transform engine: color, geometric and sizing operations on RasterImage.

Every function leaves its input untouched. Functions that allocate a result
copy the source density into it; sizing functions return the input instance
itself when no work is needed. Intermediate buffers that are neither the
input nor the returned value are recycled before the function returns.

Sizing decisions compare aspect ratios reduced by their greatest common
divisor, so they are integer-exact.
"""

from __future__ import annotations

import functools
import math
import operator
from collections.abc import Callable
from typing import Any, Union

import numpy as np
from PIL import Image, ImageDraw

from .errors import PreconditionError, RecycledImageError
from .logger import get_logger
from .metrics import metrics
from .raster import RGB_CHANNELS, RasterImage
from .settings import get_settings

_logger = get_logger("transforms")

_RESAMPLE = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}
# Image.rotate only supports these three
_ROTATE_RESAMPLE = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.BICUBIC,
}

_GRAY_R = 0.213
_GRAY_G = 0.715
_GRAY_B = 0.072


class ColorMatrix:
    """4x5 matrix mapping [R, G, B, A, 1] to [R', G', B', A'] in 0..255 units."""

    __slots__ = ("_m",)

    def __init__(self, values: Any):
        m = np.asarray(values, dtype=np.float32)
        if m.size != 20:
            raise PreconditionError(f"color matrix needs 20 values, got {m.size}")
        self._m = m.reshape(4, 5).copy()
        self._m.setflags(write=False)

    @classmethod
    def identity(cls) -> ColorMatrix:
        m = np.zeros((4, 5), dtype=np.float32)
        m[0, 0] = m[1, 1] = m[2, 2] = m[3, 3] = 1.0
        return cls(m)

    @classmethod
    def saturation(cls, sat: float) -> ColorMatrix:
        """0 desaturates completely, 1 is the identity."""
        inv = 1.0 - sat
        r, g, b = _GRAY_R * inv, _GRAY_G * inv, _GRAY_B * inv
        return cls(
            [
                [r + sat, g, b, 0, 0],
                [r, g + sat, b, 0, 0],
                [r, g, b + sat, 0, 0],
                [0, 0, 0, 1, 0],
            ]
        )

    @classmethod
    def invert(cls) -> ColorMatrix:
        return cls(
            [
                [-1, 0, 0, 0, 255],
                [0, -1, 0, 0, 255],
                [0, 0, -1, 0, 255],
                [0, 0, 0, 1, 0],
            ]
        )

    @classmethod
    def scale(cls, r: float, g: float, b: float, a: float = 1.0) -> ColorMatrix:
        m = np.zeros((4, 5), dtype=np.float32)
        m[0, 0], m[1, 1], m[2, 2], m[3, 3] = r, g, b, a
        return cls(m)

    def concat(self, other: ColorMatrix) -> ColorMatrix:
        """Matrix that applies `self` first and then `other`."""
        first = np.vstack([self._m, [0, 0, 0, 0, 1]])
        second = np.vstack([other._m, [0, 0, 0, 0, 1]])
        return ColorMatrix((second @ first)[:4])

    def as_array(self) -> np.ndarray:
        return self._m.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColorMatrix):
            return NotImplemented
        return bool(np.allclose(self._m, other._m))

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ColorMatrix({self._m.tolist()})"


ColorFilter = Union[ColorMatrix, Callable[[np.ndarray], np.ndarray]]


def _check_image(image: RasterImage) -> None:
    if not isinstance(image, RasterImage):
        raise PreconditionError(f"expected RasterImage, got {type(image).__name__}")
    if image.is_recycled:
        raise RecycledImageError("cannot transform a recycled raster image")


def _check_dim(name: str, value: Any) -> int:
    try:
        dim = operator.index(value)
    except TypeError as e:
        raise PreconditionError(f"{name} must be an integer, got {value!r}") from e
    if isinstance(value, bool) or dim <= 0:
        raise PreconditionError(f"{name} must be positive, got {value!r}")
    return dim


def _resample():
    return _RESAMPLE[get_settings().resample]


def _transform(func):
    """Time the call under transforms.<name> and log the resulting size."""
    key = f"transforms.{func.__name__}"

    @functools.wraps(func)
    def wrapper(image, *args, **kwargs):
        _check_image(image)
        with metrics.timed(key):
            result = func(image, *args, **kwargs)
        _logger.debug(
            "%s: %dx%d -> %dx%d%s",
            func.__name__,
            image.width,
            image.height,
            result.width,
            result.height,
            " (same instance)" if result is image else "",
        )
        return result

    return wrapper


def greatest_common_divisor(a: int, b: int) -> int:
    return math.gcd(a, b)


def reduce_ratio(width: int, height: int) -> tuple[int, int]:
    """Aspect ratio in lowest terms, e.g. (400, 300) -> (4, 3)."""
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    divisor = greatest_common_divisor(width, height)
    return width // divisor, height // divisor


# ---------- Color ----------


def _apply_matrix(pixels: np.ndarray, matrix: ColorMatrix) -> np.ndarray:
    m = matrix.as_array()
    out = pixels.astype(np.float32) @ m[:, :4].T + m[:, 4]
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


@_transform
def apply_color_filter(image: RasterImage, color_filter: ColorFilter) -> RasterImage:
    """Apply a color matrix, or any callable mapping an RGBA array to a same-shaped array.

    The callable receives a private copy of the pixels, so it may work in place.
    """
    if isinstance(color_filter, ColorMatrix):
        pixels = _apply_matrix(image.pixels, color_filter)
    elif callable(color_filter):
        out = np.asarray(color_filter(image.pixels.copy()))
        if out.shape != image.pixels.shape:
            raise PreconditionError(f"color filter changed shape {image.pixels.shape} -> {out.shape}")
        pixels = np.clip(out, 0, 255).astype(np.uint8)
    else:
        raise PreconditionError(f"unsupported color filter {type(color_filter).__name__}")
    return RasterImage(pixels, image.density)


def apply_color_matrix(image: RasterImage, matrix: Any) -> RasterImage:
    if not isinstance(matrix, ColorMatrix):
        matrix = ColorMatrix(matrix)
    return apply_color_filter(image, matrix)


def invert_colors(image: RasterImage) -> RasterImage:
    return apply_color_filter(image, ColorMatrix.invert())


def convert_to_grayscale(image: RasterImage) -> RasterImage:
    return apply_color_filter(image, ColorMatrix.saturation(0.0))


# ---------- Geometry ----------


@_transform
def mirror_horizontally(image: RasterImage) -> RasterImage:
    return RasterImage(np.array(image.pixels[:, ::-1]), image.density)


@_transform
def mirror_vertically(image: RasterImage) -> RasterImage:
    return RasterImage(np.array(image.pixels[::-1, :]), image.density)


@_transform
def rotate(image: RasterImage, degrees: float) -> RasterImage:
    """Rotate clockwise about the centre; the result is the rotated bounding box."""
    degrees = float(degrees)
    if not math.isfinite(degrees):
        raise PreconditionError(f"rotation angle must be finite, got {degrees}")
    angle = degrees % 360.0
    if angle % 90.0 == 0.0:
        # quarter turns are exact transposes
        turns = int(angle // 90.0)
        return RasterImage(np.array(np.rot90(image.pixels, k=-turns)), image.density)
    # premultiplied so edge pixels do not blend toward the transparent black fill
    src = image.to_pil().convert("RGBa")
    rotated = src.rotate(-angle, resample=_ROTATE_RESAMPLE[get_settings().resample], expand=True)
    rotated = rotated.convert("RGBA")
    return RasterImage(np.array(rotated, dtype=np.uint8), image.density)


def _rounded_mask(width: int, height: int, radius: float) -> np.ndarray:
    factor = get_settings().round_corners_supersample
    mask = Image.new("L", (width * factor, height * factor), 0)
    ImageDraw.Draw(mask).rounded_rectangle(
        (0, 0, width * factor - 1, height * factor - 1),
        radius=int(round(radius * factor)),
        fill=255,
    )
    if factor > 1:
        mask = mask.resize((width, height), Image.Resampling.BOX)
    return np.asarray(mask, dtype=np.float32) / 255.0


@_transform
def round_corners(image: RasterImage, radius: float) -> RasterImage:
    """Keep only the pixels inside a rounded rectangle; the rest become transparent."""
    radius = float(radius)
    if not math.isfinite(radius) or radius < 0:
        raise PreconditionError(f"corner radius must be >= 0, got {radius}")
    mask = _rounded_mask(image.width, image.height, radius)
    pixels = image.pixels.copy()
    alpha = np.rint(pixels[:, :, 3].astype(np.float32) * mask).astype(np.uint8)
    pixels[:, :, 3] = alpha
    pixels[alpha == 0, :RGB_CHANNELS] = 0
    return RasterImage(pixels, image.density)


# ---------- Sizing ----------


@_transform
def scale(image: RasterImage, width: int, height: int) -> RasterImage:
    """Resample to exactly width x height; the input itself when already that size."""
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    if image.size == (width, height):
        return image
    resized = image.to_pil().resize((width, height), resample=_resample())
    return RasterImage(np.array(resized, dtype=np.uint8), image.density)


@_transform
def crop(image: RasterImage, left: int, top: int, width: int, height: int) -> RasterImage:
    """Copy of the given sub-rectangle; the input itself when it covers the whole image."""
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    try:
        left, top = operator.index(left), operator.index(top)
    except TypeError as e:
        raise PreconditionError(f"crop offsets must be integers, got ({left!r}, {top!r})") from e
    if left < 0 or top < 0 or left + width > image.width or top + height > image.height:
        raise PreconditionError(
            f"crop ({left}, {top}, {width}, {height}) outside {image.width}x{image.height} image"
        )
    if (left, top, width, height) == (0, 0, image.width, image.height):
        return image
    region = image.pixels[top : top + height, left : left + width]
    return RasterImage(np.array(region, dtype=np.uint8), image.density)


@_transform
def crop_center(image: RasterImage, width: int, height: int) -> RasterImage:
    """Crop the centre in the proportions of width:height and scale it to width x height."""
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    source_width, source_height = image.size
    if source_width == width and source_height == height:
        return image
    source_ratio = reduce_ratio(source_width, source_height)
    result_ratio_width, result_ratio_height = reduce_ratio(width, height)
    if source_ratio == (result_ratio_width, result_ratio_height):
        return scale(image, width, height)
    crop_width = result_ratio_width * source_height // result_ratio_height
    if crop_width > source_width:
        crop_height = result_ratio_height * source_width // result_ratio_width
        cropped = crop(image, 0, (source_height - crop_height) // 2, source_width, crop_height)
    else:
        cropped = crop(image, (source_width - crop_width) // 2, 0, crop_width, source_height)
    if cropped.size == (width, height):
        return cropped
    try:
        return scale(cropped, width, height)
    finally:
        if cropped is not image:
            cropped.recycle()


@_transform
def fit_center(image: RasterImage, width: int, height: int) -> RasterImage:
    """Draw the image, aspect preserved, centred on a transparent width x height frame."""
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    source_width, source_height = image.size
    if source_width == width and source_height == height:
        return image
    source_ratio_width, source_ratio_height = reduce_ratio(source_width, source_height)
    if (source_ratio_width, source_ratio_height) == reduce_ratio(width, height):
        return scale(image, width, height)
    fit_width = source_ratio_width * height // source_ratio_height
    if fit_width > width:
        fit_height = source_ratio_height * width // source_ratio_width
        left, top = 0, (height - fit_height) // 2
        fit_width = width
    else:
        fit_height = height
        left, top = (width - fit_width) // 2, 0
    result = RasterImage.allocate(width, height, image.density)
    if fit_width == 0 or fit_height == 0:
        _logger.debug("fit_center: %dx%d collapses to an empty rect in %dx%d", source_width, source_height, width, height)
        return result
    try:
        placed = scale(image, fit_width, fit_height)
    except Exception:
        result.recycle()
        raise
    try:
        result.pixels[top : top + fit_height, left : left + fit_width] = placed.pixels
    finally:
        if placed is not image:
            placed.recycle()
    return result


@_transform
def scale_to_fit(image: RasterImage, width: int, height: int, upscale: bool = False) -> RasterImage:
    """Scale to fit inside width x height with the aspect ratio kept, without padding.

    Images smaller than the frame on both axes are returned as is unless
    `upscale` is set.
    """
    width = _check_dim("width", width)
    height = _check_dim("height", height)
    source_width, source_height = image.size
    if source_width == width and source_height == height:
        return image
    if not upscale and source_width < width and source_height < height:
        return image
    source_ratio_width, source_ratio_height = reduce_ratio(source_width, source_height)
    if (source_ratio_width, source_ratio_height) == reduce_ratio(width, height):
        return scale(image, width, height)
    fit_width = source_ratio_width * height // source_ratio_height
    if fit_width > width:
        if source_width == width:
            return image
        fit_height = source_ratio_height * width // source_ratio_width
        return scale(image, width, max(1, fit_height))
    if source_height == height:
        return image
    return scale(image, max(1, fit_width), height)
