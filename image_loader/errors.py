"""Error taxonomy for the identity model and the transform engine."""

from __future__ import annotations


class ImageLoaderError(Exception):
    """Base class for every error raised by image_loader."""


class PreconditionError(ImageLoaderError, ValueError):
    """Absent data, zero/negative dimensions or an otherwise invalid argument."""


class RecycledImageError(PreconditionError):
    """A recycled RasterImage was used as a transform input."""


class AllocationError(ImageLoaderError, MemoryError):
    """A raster buffer could not be allocated."""


class HashUnavailableError(ImageLoaderError, RuntimeError):
    """The SHA-256 digest is not available on this interpreter."""
