"""ENVI header record and the brace-aware header parser."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from .config import NATIVE_BYTE_ORDER, ByteOrder, EnviSettings, resolve_settings
from .dtypes import DataType, valid_type
from .errors import (
    DuplicateKey,
    FormatError,
    InconsistentMetadata,
    InvalidType,
    UnsupportedFeature,
)
from .metadata import Metadata, scan_int

logger = logging.getLogger(__name__)

MAGIC = "ENVI"
INTERLEAVE = "bsq"

# keys the parser interprets itself; never stored as user metadata
HEADER_FIELDS = frozenset(
    {
        "description",
        "samples",
        "lines",
        "bands",
        "data type",
        "interleave",
        "header offset",
        "byte order",
        "band names",
    }
)


@dataclass
class EnviHeader:
    """Everything a header describes about its raw data file."""

    lines: int = 0
    samples: int = 0
    data_type: Optional[DataType] = None
    description: str = ""
    data_offset: int = 0
    byte_order: ByteOrder = NATIVE_BYTE_ORDER
    interleave: str = INTERLEAVE
    band_names: Tuple[str, ...] = ()
    metadata: Metadata = field(default_factory=Metadata)

    @property
    def pixels(self) -> int:
        return self.lines * self.samples

    @property
    def bands(self) -> int:
        return len(self.band_names)


def _iter_lines(source) -> Iterator[str]:
    for raw in source:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8", errors="replace")
        yield raw.rstrip("\r\n")


def _split_band_names(value: str) -> Tuple[str, ...]:
    names = [name.strip() for name in value.split(",")]
    if names and not names[-1]:
        names.pop()
    return tuple(names)


def default_band_names(count: int) -> Tuple[str, ...]:
    return tuple(f"Band {i}" for i in range(1, count + 1))


class HeaderParser:
    """Line-oriented state machine turning header text into an :class:`EnviHeader`.

    Each record is ``key = value``. A value that opens a brace without closing
    it continues on the following lines, which are joined without separators
    until the closing brace shows up.
    """

    def __init__(self, settings: EnviSettings | None = None) -> None:
        self.settings = resolve_settings(settings)
        self.header = EnviHeader(metadata=Metadata(self.settings.float_precision))
        self._lines: Optional[int] = None
        self._samples: Optional[int] = None
        self._expected_bands: Optional[int] = None
        self._band_names: Optional[Tuple[str, ...]] = None

    # -- tokenizing -------------------------------------------------------
    @staticmethod
    def _read_magic(lines: Iterator[str]) -> None:
        for line in lines:
            if not line.strip():
                continue
            if line != MAGIC:
                raise FormatError(f"missing '{MAGIC}' in header, found {line!r}")
            return
        raise FormatError(f"missing '{MAGIC}' in header (empty stream)")

    @staticmethod
    def read_keyval(lines: Iterator[str]) -> Optional[Tuple[str, str]]:
        """Return the next ``(key, value)`` record, or ``None`` at end of stream."""
        for line in lines:
            if line.strip():
                break
        else:
            return None

        keyval = line
        open_at = keyval.find("{")
        close_at = -1
        if open_at != -1:
            close_at = keyval.find("}", open_at)
            while close_at == -1:
                try:
                    keyval += next(lines)
                except StopIteration:
                    raise FormatError("missing '}'") from None
                close_at = keyval.find("}", open_at)

        eq = keyval.find("=")
        if eq == -1 or (open_at != -1 and eq > open_at):
            raise FormatError(f"missing '=' in header record {keyval!r}")

        key = keyval[:eq].strip()
        if open_at != -1:
            value = keyval[open_at + 1 : close_at].strip()
        else:
            value = keyval[eq + 1 :].strip()
        return key, value

    # -- interpretation ---------------------------------------------------
    @staticmethod
    def _count(key: str, value: str) -> int:
        try:
            number = scan_int(value)
        except ValueError as exc:
            raise FormatError(f"'{key}' is not an integer: {value!r}") from exc
        if number < 0:
            raise FormatError(f"'{key}' cannot be negative: {value!r}")
        return number

    def process_keyval(self, key: str, value: str) -> None:
        header = self.header
        if key == "description":
            header.description = value
        elif key == "samples":
            self._samples = self._count(key, value)
        elif key == "lines":
            self._lines = self._count(key, value)
        elif key == "bands":
            if self._expected_bands is not None:
                raise DuplicateKey("'bands' seen twice")
            count = self._count(key, value)
            if self._band_names is not None and count != len(self._band_names):
                raise InconsistentMetadata("inconsistent bands and band names")
            self._expected_bands = count
        elif key == "data type":
            try:
                code = scan_int(value)
            except ValueError:
                code = None
            if code is None or not valid_type(code):
                raise InvalidType(f"unknown ENVI type '{value}'")
            header.data_type = DataType(code)
        elif key == "interleave":
            if value.lower() != INTERLEAVE:
                raise UnsupportedFeature(f"interleave '{value}' not supported")
            header.interleave = INTERLEAVE
        elif key == "header offset":
            header.data_offset = self._count(key, value)
        elif key == "byte order":
            order = self._count(key, value)
            if order != self.settings.byte_order:
                raise UnsupportedFeature(
                    f"unsupported byte order {order}, native is {int(self.settings.byte_order)}"
                )
            header.byte_order = ByteOrder(order)
        elif key == "band names":
            if self._band_names is not None:
                raise DuplicateKey("'band names' seen twice")
            names = _split_band_names(value)
            if self._expected_bands is not None and len(names) != self._expected_bands:
                raise InconsistentMetadata("inconsistent band names and bands")
            self._band_names = names
        else:
            header.metadata.add(key, value)

    def parse(self, source: Iterable) -> EnviHeader:
        lines = _iter_lines(source)
        self._read_magic(lines)

        while True:
            record = self.read_keyval(lines)
            if record is None:
                break
            key, value = record
            if not key:
                break
            logger.debug("KEY: %r, VAL: %r", key, value)
            self.process_keyval(key, value)

        return self._finish()

    def _finish(self) -> EnviHeader:
        header = self.header
        missing = [
            name
            for name, seen in (
                ("samples", self._samples),
                ("lines", self._lines),
                ("data type", header.data_type),
            )
            if seen is None
        ]
        if missing:
            raise FormatError(f"header is missing {', '.join(repr(m) for m in missing)}")

        header.samples = self._samples
        header.lines = self._lines
        if self._band_names is not None:
            header.band_names = self._band_names
        elif self._expected_bands:
            header.band_names = default_band_names(self._expected_bands)
        header.metadata.freeze()
        return header


def parse_envi_header(source: Iterable, settings: EnviSettings | None = None) -> EnviHeader:
    """Parse header text from a text/binary stream or any iterable of lines."""
    return HeaderParser(settings).parse(source)


def read_envi_header(hdr_path: Path, settings: EnviSettings | None = None) -> EnviHeader:
    """Parse an ENVI ``.hdr`` file.

    The file is read as bytes and decoded as UTF-8; undecodable bytes become
    U+FFFD, as for any binary stream given to :func:`parse_envi_header`.
    """
    hdr_path = Path(os.fspath(hdr_path))
    if not hdr_path.exists():
        raise FileNotFoundError(hdr_path)
    with hdr_path.open("rb") as fp:
        return parse_envi_header(fp, settings)


__all__ = [
    "EnviHeader",
    "HEADER_FIELDS",
    "HeaderParser",
    "MAGIC",
    "default_band_names",
    "parse_envi_header",
    "read_envi_header",
]
