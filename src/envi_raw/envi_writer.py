"""Write multi-band BSQ rasters as an ENVI raw file plus ``.hdr`` header."""
from __future__ import annotations

import logging
import operator
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import numpy as np

from .channels import (
    append_channel,
    channel_from_buffer,
    channel_from_func,
    channel_from_rect,
)
from .config import EnviSettings, resolve_settings
from .dtypes import DataType, resolve_codec, type_code
from .envi_header import EnviHeader
from .errors import IOFailure, WriterFinalized
from .header_writer import (
    check_band_name,
    check_description,
    check_meta_key,
    check_meta_value,
    write_envi_header,
)
from .metadata import Metadata, format_list, format_value
from .paths import EnviPaths, PathLike, open_stream

logger = logging.getLogger(__name__)


def _positive(name: str, value: Any) -> int:
    number = operator.index(value)
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number}")
    return number


class EnviWriter:
    """
    EnviWriter assembles bands, in order, into a BSQ ENVI file.

    Every band is converted to the writer's fixed on-disk dtype and appended
    to the data stream as soon as it is added; the header is written once,
    by :meth:`finalize` (or :meth:`close`, or leaving a ``with`` block).

    Usage pattern::

        with EnviWriter("out.raw", "NDVI stack", lines, samples, np.float32) as w:
            w.add_channel("ndvi_2021", ndvi_2021)
            w.add_channel_rect("ndvi_2022", big_scene, row=100, col=250)
            w.add_meta("map info", "UTM", 1, 1, 5e5, 4e6, 30, 30, 33, "North", "WGS-84")

    After close() you'll have ``out.raw`` and ``out.hdr``.

    Streams passed to :meth:`from_streams` are borrowed: they are flushed
    but never closed.
    """

    def __init__(
        self,
        path: PathLike,
        description: str,
        lines: int,
        samples: int,
        dtype: Any = np.float32,
        *,
        settings: EnviSettings | None = None,
    ) -> None:
        self._closed = True
        self._configure(description, lines, samples, dtype, settings)

        paths = EnviPaths(path)
        if paths.hdr == paths.data:
            raise ValueError(f"data file {paths.data} would be overwritten by its own header")
        data = open_stream(paths.data, "wb")
        try:
            hdr = open_stream(paths.hdr, "w")
        except IOFailure:
            data.close()
            raise
        self.data_path: Optional[Path] = paths.data
        self.hdr_path: Optional[Path] = paths.hdr
        self._attach(data, hdr, owns_streams=True)

    @classmethod
    def from_streams(
        cls,
        data,
        hdr,
        description: str,
        lines: int,
        samples: int,
        dtype: Any = np.float32,
        *,
        settings: EnviSettings | None = None,
    ) -> "EnviWriter":
        """Write to caller-owned streams: binary ``data``, text or binary ``hdr``."""
        writer = cls.__new__(cls)
        writer._closed = True
        writer._configure(description, lines, samples, dtype, settings)
        writer.data_path = None
        writer.hdr_path = None
        writer._attach(data, hdr, owns_streams=False)
        return writer

    def _configure(
        self,
        description: str,
        lines: int,
        samples: int,
        dtype: Any,
        settings: EnviSettings | None,
    ) -> None:
        self.settings = resolve_settings(settings)
        self.description = check_description(str(description))
        self.lines = _positive("lines", lines)
        self.samples = _positive("samples", samples)
        self.pixels = self.lines * self.samples
        self.data_type: DataType = type_code(dtype, self.settings)
        self._codec = resolve_codec(self.data_type, self.settings)
        self._meta = Metadata(self.settings.float_precision)
        self._channels: List[str] = []
        self._header: Optional[EnviHeader] = None
        self._failed = False

    def _attach(self, data, hdr, *, owns_streams: bool) -> None:
        self._data = data
        self._hdr = hdr
        self._owns_streams = owns_streams
        self._closed = False

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def dtype(self) -> np.dtype:
        return self._codec.dtype

    @property
    def extent(self) -> Tuple[int, int]:
        return self.lines, self.samples

    @property
    def channel_names(self) -> Tuple[str, ...]:
        return tuple(self._channels)

    @property
    def num_channels(self) -> int:
        return len(self._channels)

    @property
    def metadata(self) -> Metadata:
        return self._meta

    @property
    def finalized(self) -> bool:
        return self._header is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self, what: str) -> None:
        if self._failed:
            raise WriterFinalized(f"cannot {what}: an earlier write failed")
        if self._header is not None:
            raise WriterFinalized(f"cannot {what}: header already written")
        if self._closed:
            raise WriterFinalized(f"cannot {what}: writer is closed")

    def build_header(self) -> EnviHeader:
        """The header describing what has been written so far."""
        return EnviHeader(
            lines=self.lines,
            samples=self.samples,
            data_type=self.data_type,
            description=self.description,
            data_offset=0,
            byte_order=self.settings.byte_order,
            band_names=tuple(self._channels),
            metadata=self._meta,
        )

    # ------------------------------------------------------------------
    # channels
    # ------------------------------------------------------------------
    def _commit(self, name: str, samples: np.ndarray) -> int:
        name = check_band_name(str(name))
        try:
            append_channel(self._data, self._codec, samples, name)
        except IOFailure:
            # the data stream may now hold part of a band
            self._failed = True
            raise
        self._channels.append(name)
        return len(self._channels) - 1

    def add_channel(self, name: str, source: Any) -> int:
        """Append a band from a buffer holding exactly ``lines * samples`` values.

        Returns the index of the new band.
        """
        self._check_open(f"add channel {name}")
        return self._commit(name, channel_from_buffer(source, self.pixels, name))

    def add_channel_rect(
        self,
        name: str,
        source: Any,
        stride: Optional[int] = None,
        row: int = 0,
        col: int = 0,
    ) -> int:
        """Append the ``lines x samples`` window at ``(row, col)`` of a larger buffer.

        ``stride`` is the distance in elements between consecutive rows of
        ``source``; it defaults to the width of a 2-D ``source``.
        """
        self._check_open(f"add channel {name}")
        window = channel_from_rect(source, self.lines, self.samples, stride, row, col, name)
        return self._commit(name, window)

    def add_channel_func(self, name: str, func: Callable[..., Any], *args: Any) -> int:
        """Append a band whose samples are ``func(*args, row, col)``."""
        self._check_open(f"add channel {name}")
        return self._commit(name, channel_from_func(func, args, self.lines, self.samples))

    # ------------------------------------------------------------------
    # metadata
    # ------------------------------------------------------------------
    def add_meta(self, key: str, *values: Any) -> None:
        """Add ``key``; several values are stored as one ``{ a, b, ... }`` list."""
        self._check_open(f"add metadata {key}")
        if not values:
            raise TypeError("add_meta() needs at least one value")
        check_meta_key(key)
        precision = self._meta.precision
        if len(values) == 1:
            text = format_value(values[0], precision)
        else:
            text = format_list(values, precision)
        self._meta.add(key, check_meta_value(key, text))

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def finalize(self) -> EnviHeader:
        """Flush the samples and write the header. Only the first call writes."""
        if self._header is not None:
            return self._header
        if self._failed:
            raise WriterFinalized("cannot finalize: an earlier write failed")
        if self._closed:
            raise WriterFinalized("cannot finalize a closed writer")

        header = self.build_header()
        try:
            self._data.flush()
            write_envi_header(self._hdr, header)
            self._hdr.flush()
        except IOFailure:
            self._failed = True
            raise
        except OSError as exc:
            self._failed = True
            raise IOFailure(f"failed finalizing ENVI output: {exc}") from exc

        self._header = header
        logger.info(
            "Wrote ENVI header for %s: %d band(s), %dx%d, %s",
            self.data_path or "<stream>",
            header.bands,
            self.lines,
            self.samples,
            self._codec.dtype,
        )
        return header

    def _close_streams(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_streams:
            self._data.close()
            self._hdr.close()

    def close(self) -> EnviHeader:
        """Finalize (if not done yet) and close the streams this writer opened."""
        if self._closed and self._header is not None:
            return self._header
        try:
            header = self.finalize()
        finally:
            self._close_streams()
        return header

    def __enter__(self) -> "EnviWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.close()
        else:
            if self._header is None:
                logger.warning(
                    "Discarding ENVI output %s without header: %s",
                    self.data_path or "<stream>",
                    exc,
                )
            self._close_streams()
        return False

    def __del__(self) -> None:
        # never writes the header; only releases what we opened
        if not getattr(self, "_closed", True):
            self._close_streams()


def create(
    path: PathLike,
    description: str,
    lines: int,
    samples: int,
    dtype: Any = np.float32,
    *,
    settings: EnviSettings | None = None,
) -> EnviWriter:
    """Open an ENVI file pair for writing; existing files are overwritten."""
    return EnviWriter(path, description, lines, samples, dtype, settings=settings)


def dump(
    path: PathLike,
    description: str,
    data: Any,
    dtype: Any = None,
    *,
    settings: EnviSettings | None = None,
) -> EnviHeader:
    """Write a 2-D array as a single-band file named after ``description``."""
    arr = np.asarray(data)
    if arr.ndim != 2:
        raise ValueError(f"dump() expects a 2-D array, got shape {arr.shape}")
    lines, samples = arr.shape
    with create(
        path, description, lines, samples, arr.dtype if dtype is None else dtype, settings=settings
    ) as writer:
        writer.add_channel(description, arr)
    return writer.close()


__all__ = ["EnviWriter", "create", "dump"]
