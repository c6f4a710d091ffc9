"""image_loader core: cache identity for image requests and raster transforms.

This package provides:
- Descriptors whose SHA-256 key identifies a cache entry (descriptor)
- An RGBA raster buffer with density metadata (raster)
- Color, geometric and sizing transforms (transforms)

Usage:
    from image_loader import make_descriptor, RasterImage, transforms

    descriptor = make_descriptor(url)
    image = cache.get(descriptor.key) or transforms.crop_center(decoded, 100, 100)
"""

from . import transforms
from .descriptor import (
    Canonical,
    DataDescriptor,
    StringDataDescriptor,
    generate_sha256,
    make_descriptor,
    storage_file_name,
)
from .errors import (
    AllocationError,
    HashUnavailableError,
    ImageLoaderError,
    PreconditionError,
    RecycledImageError,
)
from .raster import RasterImage
from .transforms import ColorMatrix

__all__ = [
    "AllocationError",
    "Canonical",
    "ColorMatrix",
    "DataDescriptor",
    "HashUnavailableError",
    "ImageLoaderError",
    "PreconditionError",
    "RasterImage",
    "RecycledImageError",
    "StringDataDescriptor",
    "generate_sha256",
    "make_descriptor",
    "storage_file_name",
    "transforms",
]
