"""Content-addressable identity for image requests.

A descriptor pairs the caller's source data (URL, path, request object) with a
key derived from the SHA-256 digest of the data's canonical string form. The
key is the only value that may be used as a cache token or as part of a
storage file name.

Usage:
    from image_loader.descriptor import make_descriptor

    descriptor = make_descriptor("https://example.com/cat.png")
    cache.get(descriptor.key)
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from .errors import HashUnavailableError, PreconditionError
from .logger import get_logger

_logger = get_logger("descriptor")

T = TypeVar("T")

_KEY_RE = re.compile(r"^[0-9a-f]{64}$")


@runtime_checkable
class Canonical(Protocol):
    """Data types that provide their own stable textual form for hashing."""

    def canonical_string(self) -> str: ...


def generate_sha256(text: str) -> str:
    """Lowercase hex SHA-256 digest of the UTF-8 encoding of `text`.

    Strings decoded from non-UTF-8 file names hash their original bytes.
    """
    try:
        digest = hashlib.new("sha256")
    except ValueError as e:
        _logger.error("sha256 digest unavailable: %s", e)
        raise HashUnavailableError("SHA-256 digest is not available") from e
    # lone surrogates from os.fsdecode() map back to the original file name bytes
    digest.update(text.encode("utf-8", "surrogateescape"))
    return digest.hexdigest()


def canonical_string(data: Any) -> str:
    """Return the string that identifies `data` for hashing.

    `Canonical` values supply it explicitly; anything else falls back to
    `str(data)`, which the caller must keep stable for logically equal requests.
    """
    if data is None:
        raise PreconditionError("descriptor data must not be None")
    if isinstance(data, Canonical):
        value = data.canonical_string()
        if not isinstance(value, str):
            raise PreconditionError(f"canonical_string() must return str, got {type(value).__name__}")
        return value
    return str(data)


def is_valid_key(key: str) -> bool:
    return isinstance(key, str) and _KEY_RE.match(key) is not None


class DataDescriptor(ABC, Generic[T]):
    """Source data plus its cache key. Equal keys mean the same cache entry."""

    __slots__ = ()

    @property
    @abstractmethod
    def data(self) -> T: ...

    @property
    @abstractmethod
    def key(self) -> str: ...

    def get_data(self) -> T:
        return self.data

    def get_key(self) -> str:
        return self.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if not isinstance(other, DataDescriptor):
            return NotImplemented
        return self.key == other.key

    def __repr__(self) -> str:
        return f"DataDescriptor [key: {self.key}, data: {self.data}]"


class StringDataDescriptor(DataDescriptor[T]):
    """Descriptor whose key is the SHA-256 of the data's canonical string."""

    __slots__ = ("_data", "_key")

    def __init__(self, data: T):
        key = generate_sha256(canonical_string(data))
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_key", key)

    @property
    def data(self) -> T:
        return self._data

    @property
    def key(self) -> str:
        return self._key

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")


def make_descriptor(data: T) -> StringDataDescriptor[T]:
    descriptor = StringDataDescriptor(data)
    _logger.debug("descriptor created: key=%s", descriptor.key)
    return descriptor


def storage_file_name(descriptor: DataDescriptor[Any], suffix: str = "") -> str:
    """File name for persisting the entry of `descriptor`, e.g. `<key>.png`."""
    key = descriptor.key
    if not is_valid_key(key):
        raise PreconditionError(f"key is not file name safe: {key!r}")
    if "/" in suffix or "\\" in suffix or "\x00" in suffix:
        raise PreconditionError(f"suffix must not contain path separators: {suffix!r}")
    return key + suffix
