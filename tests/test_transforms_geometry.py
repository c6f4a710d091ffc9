from __future__ import annotations

import numpy as np
import pytest

from image_loader import transforms
from image_loader.errors import PreconditionError, RecycledImageError
from image_loader.raster import RasterImage
from image_loader.settings import TransformSettings, set_settings


def _marked(width: int = 4, height: int = 3) -> RasterImage:
    """Opaque black raster with a white top-left pixel."""
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    pixels[0, 0, :3] = 255
    return RasterImage(pixels, density=400)


def test_mirror_horizontally_moves_left_to_right() -> None:
    src = _marked()
    out = transforms.mirror_horizontally(src)
    assert out is not src
    assert out.size == src.size
    assert out.density == 400
    assert tuple(out.pixels[0, -1]) == (255, 255, 255, 255)
    assert tuple(out.pixels[0, 0]) == (0, 0, 0, 255)


def test_mirror_vertically_moves_top_to_bottom() -> None:
    out = transforms.mirror_vertically(_marked())
    assert tuple(out.pixels[-1, 0]) == (255, 255, 255, 255)


def test_mirror_round_trip(gradient) -> None:
    src = gradient(13, 7)
    assert transforms.mirror_horizontally(transforms.mirror_horizontally(src)).same_pixels(src)
    assert transforms.mirror_vertically(transforms.mirror_vertically(src)).same_pixels(src)


def test_mirror_result_does_not_share_memory(gradient) -> None:
    src = gradient(5, 5)
    out = transforms.mirror_horizontally(src)
    out.pixels[:] = 0
    assert src.pixels[:, :, 3].all()


def test_rotate_quarter_turn_is_clockwise() -> None:
    out = transforms.rotate(_marked(4, 3), 90)
    assert out.size == (3, 4)
    assert out.density == 400
    assert tuple(out.pixels[0, -1]) == (255, 255, 255, 255)


def test_rotate_negative_and_full_turns() -> None:
    src = _marked(4, 3)
    assert transforms.rotate(src, -90).same_pixels(transforms.rotate(src, 270))
    full = transforms.rotate(src, 360)
    assert full is not src
    assert full.same_pixels(src)
    full.pixels[:] = 0
    assert src.pixels[:, :, 3].all()


def test_rotate_arbitrary_angle_expands_bounds(gradient) -> None:
    out = transforms.rotate(gradient(100, 100), 45)
    assert out.width > 100
    assert out.height > 100
    assert abs(out.width - out.height) <= 1
    assert out.density == 320
    # corners of the bounding box lie outside the rotated source
    assert out.pixels[0, 0, 3] == 0
    assert out.pixels[out.height // 2, out.width // 2, 3] == 255


def test_rotate_rejects_non_finite_angle() -> None:
    with pytest.raises(PreconditionError):
        transforms.rotate(_marked(), float("nan"))


def test_round_corners_clears_corners(gradient) -> None:
    src = gradient(100, 60)
    out = transforms.round_corners(src, 20)

    assert out is not src
    assert out.size == src.size
    assert out.density == src.density
    for y, x in ((0, 0), (0, 99), (59, 0), (59, 99)):
        assert tuple(out.pixels[y, x]) == (0, 0, 0, 0)
    assert tuple(out.pixels[30, 50]) == tuple(src.pixels[30, 50])
    assert out.pixels[0, 50, 3] == 255
    assert src.pixels[0, 0, 3] == 255


def test_round_corners_zero_radius_keeps_pixels(gradient) -> None:
    src = gradient(10, 10)
    assert transforms.round_corners(src, 0).same_pixels(src)


def test_round_corners_without_supersampling(gradient, tmp_path) -> None:
    settings = TransformSettings(str(tmp_path / "settings.json"))
    settings.set("round_corners_supersample", 1)
    set_settings(settings)
    out = transforms.round_corners(gradient(40, 40), 10)
    assert out.pixels[0, 0, 3] == 0
    assert out.pixels[20, 20, 3] == 255


def test_round_corners_rejects_negative_radius(gradient) -> None:
    with pytest.raises(PreconditionError):
        transforms.round_corners(gradient(4, 4), -1)


def test_recycled_input_is_rejected(gradient) -> None:
    src = gradient(4, 4)
    src.recycle()
    with pytest.raises(RecycledImageError):
        transforms.mirror_horizontally(src)


def test_rotate_edges_keep_their_color() -> None:
    pixels = np.full((40, 40, 4), 255, dtype=np.uint8)
    out = transforms.rotate(RasterImage(pixels), 30)

    alpha = out.pixels[:, :, 3]
    edge = (alpha > 0) & (alpha < 255)
    assert edge.any()
    # partially covered pixels stay white instead of darkening toward the fill
    assert out.pixels[edge][:, :3].min() >= 240
