"""Exception hierarchy for ENVI raster reading and writing."""
from __future__ import annotations


class EnviError(RuntimeError):
    """Base class for every error raised by :mod:`envi_raw`."""


class FormatError(EnviError):
    pass


class InvalidType(EnviError, ValueError):
    pass


class UnsupportedFeature(EnviError):
    pass


class DuplicateKey(EnviError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return RuntimeError.__str__(self)


class InconsistentMetadata(EnviError):
    pass


class MetadataFrozen(EnviError):
    pass


class ChannelOutOfRange(EnviError, IndexError):
    pass


class ChannelNotFound(EnviError, KeyError):
    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class StrideError(EnviError, ValueError):
    pass


class ChannelSizeError(EnviError, ValueError):
    pass


class WriterFinalized(EnviError):
    pass


class InvalidName(EnviError, ValueError):
    """A band name or metadata entry the header syntax cannot carry."""


class IOFailure(EnviError, OSError):
    pass


__all__ = [
    "EnviError",
    "FormatError",
    "InvalidType",
    "UnsupportedFeature",
    "DuplicateKey",
    "InconsistentMetadata",
    "MetadataFrozen",
    "ChannelOutOfRange",
    "ChannelNotFound",
    "StrideError",
    "ChannelSizeError",
    "WriterFinalized",
    "InvalidName",
    "IOFailure",
]
