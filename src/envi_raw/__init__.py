"""Read and write multi-band ENVI raw rasters (BSQ data file plus ``.hdr`` header)."""
from __future__ import annotations

from .config import NATIVE_BYTE_ORDER, ByteOrder, EnviSettings, get_settings
from .dtypes import DataType, next_type, resolve_codec, type_code, valid_type
from .envi_header import EnviHeader, parse_envi_header, read_envi_header
from .envi_reader import EnviReader, ropen, undump
from .envi_writer import EnviWriter, create, dump
from .errors import (
    ChannelNotFound,
    ChannelOutOfRange,
    ChannelSizeError,
    DuplicateKey,
    EnviError,
    FormatError,
    InconsistentMetadata,
    InvalidName,
    InvalidType,
    IOFailure,
    MetadataFrozen,
    StrideError,
    UnsupportedFeature,
    WriterFinalized,
)
from .header_writer import build_envi_header_text
from .metadata import SKIP, Metadata
from .paths import header_path

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "ByteOrder",
    "ChannelNotFound",
    "ChannelOutOfRange",
    "ChannelSizeError",
    "DataType",
    "DuplicateKey",
    "EnviError",
    "EnviHeader",
    "EnviReader",
    "EnviSettings",
    "EnviWriter",
    "FormatError",
    "IOFailure",
    "InconsistentMetadata",
    "InvalidName",
    "InvalidType",
    "Metadata",
    "MetadataFrozen",
    "NATIVE_BYTE_ORDER",
    "SKIP",
    "StrideError",
    "UnsupportedFeature",
    "WriterFinalized",
    "build_envi_header_text",
    "create",
    "dump",
    "get_settings",
    "header_path",
    "next_type",
    "parse_envi_header",
    "read_envi_header",
    "resolve_codec",
    "ropen",
    "type_code",
    "undump",
    "valid_type",
]
