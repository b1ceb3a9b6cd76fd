"""Read BSQ ENVI rasters band by band."""
from __future__ import annotations

import logging
import operator
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from .channels import channel_offset, read_channel
from .config import EnviSettings, resolve_settings
from .dtypes import DataType, SampleCodec, resolve_codec
from .envi_header import EnviHeader, parse_envi_header
from .errors import ChannelNotFound, ChannelOutOfRange, ChannelSizeError, InconsistentMetadata
from .metadata import Metadata
from .paths import EnviPaths, PathLike, open_stream

logger = logging.getLogger(__name__)

ChannelSpec = Union[int, str]


class EnviReader:
    """Parse an ENVI header once, then decode bands on demand.

    Nothing is cached between :meth:`get_channel` calls: every call seeks
    and decodes the band again.
    """

    def __init__(self, path: PathLike, *, settings: EnviSettings | None = None) -> None:
        self._closed = True
        paths = EnviPaths(path)
        hdr_path = paths.existing_hdr()
        data = open_stream(paths.data, "rb")
        try:
            with open_stream(hdr_path, "rb") as hdr:
                self._load(data, hdr, settings)
        except Exception:
            data.close()
            raise
        self.data_path: Optional[Path] = paths.data
        self.hdr_path: Optional[Path] = hdr_path
        self._owns_streams = True
        self._closed = False

    @classmethod
    def from_streams(
        cls, data, hdr, *, settings: EnviSettings | None = None
    ) -> "EnviReader":
        """Read from caller-owned streams; the header stream is consumed fully."""
        reader = cls.__new__(cls)
        reader._closed = True
        reader._load(data, hdr, settings)
        reader.data_path = None
        reader.hdr_path = None
        reader._owns_streams = False
        reader._closed = False
        return reader

    def _load(self, data, hdr, settings: EnviSettings | None) -> None:
        self.settings = resolve_settings(settings)
        self._header: EnviHeader = parse_envi_header(hdr, self.settings)
        self._data = data
        logger.debug(
            "opened ENVI raster %dx%d, %d band(s), data type %d",
            self._header.lines,
            self._header.samples,
            self._header.bands,
            int(self._header.data_type),
        )

    # ------------------------------------------------------------------
    # header accessors
    # ------------------------------------------------------------------
    @property
    def header(self) -> EnviHeader:
        return self._header

    @property
    def lines(self) -> int:
        return self._header.lines

    @property
    def samples(self) -> int:
        return self._header.samples

    @property
    def pixels(self) -> int:
        return self._header.pixels

    @property
    def extent(self) -> Tuple[int, int]:
        return self._header.lines, self._header.samples

    @property
    def description(self) -> str:
        return self._header.description

    @property
    def data_type(self) -> DataType:
        return self._header.data_type

    @property
    def data_offset(self) -> int:
        return self._header.data_offset

    @property
    def num_channels(self) -> int:
        return self._header.bands

    @property
    def channel_names(self) -> Tuple[str, ...]:
        return self._header.band_names

    @property
    def metadata(self) -> Metadata:
        return self._header.metadata

    def has_meta(self, key: str) -> bool:
        return self.metadata.has_key(key)

    def get_meta(self, key: str, default: str = "") -> str:
        return self.metadata.get(key, default)

    def get_meta_typed(self, key: str, default: Any, decoder=None) -> Any:
        return self.metadata.get_typed(key, default, decoder)

    def get_meta_values(self, key: str) -> list[str]:
        return self.metadata.get_values(key)

    def get_meta_tuple(self, key: str, *decoders: Any) -> tuple:
        return self.metadata.get_tuple(key, *decoders)

    def get_meta_record(self, key: str, schema: Sequence) -> dict[str, Any]:
        return self.metadata.get_record(key, schema)

    # ------------------------------------------------------------------
    # bands
    # ------------------------------------------------------------------
    def channel_index(self, channel: ChannelSpec) -> int:
        """Resolve a band name or index to an index, without touching the data."""
        names = self._header.band_names
        if isinstance(channel, str):
            try:
                return names.index(channel)
            except ValueError:
                raise ChannelNotFound(f"channel {channel} not found") from None
        index = operator.index(channel)
        if not 0 <= index < len(names):
            raise ChannelOutOfRange(
                f"channel number {index} out of range for {len(names)} channel(s)"
            )
        return index

    def _codec(self) -> SampleCodec:
        return resolve_codec(self._header.data_type, self.settings)

    def get_channel(
        self,
        channel: ChannelSpec,
        out: Optional[np.ndarray] = None,
        dtype: Any = None,
    ) -> np.ndarray:
        """
        Decode one band.

        Parameters
        ----------
        channel : int or str
            Band index or band name.
        out : np.ndarray, optional
            Destination with exactly ``lines * samples`` elements, filled in
            place with a cast to its own dtype.
        dtype : numpy dtype, optional
            Requested element type when ``out`` is not given. Defaults to the
            on-disk dtype, which takes the bulk read path.

        Returns
        -------
        np.ndarray
            ``out`` if given, else a new ``(lines, samples)`` array.
        """
        index = self.channel_index(channel)
        codec = self._codec()
        if out is None:
            out = np.empty(self.extent, dtype=codec.dtype if dtype is None else dtype)
        elif out.size != self.pixels:
            raise ChannelSizeError(
                f"output buffer holds {out.size} elements, channel has {self.pixels}"
            )
        offset = channel_offset(self._header.data_offset, index, self.pixels, codec)
        return read_channel(self._data, codec, offset, out)

    def read_all(self, dtype: Any = None) -> np.ndarray:
        """All bands as a ``(bands, lines, samples)`` cube."""
        codec = self._codec()
        cube = np.empty(
            (self.num_channels,) + self.extent, dtype=codec.dtype if dtype is None else dtype
        )
        for index in range(self.num_channels):
            self.get_channel(index, out=cube[index])
        return cube

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_streams:
            self._data.close()

    def __enter__(self) -> "EnviReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            self.close()


def ropen(path: PathLike, *, settings: EnviSettings | None = None) -> EnviReader:
    """Open an ENVI file for reading."""
    return EnviReader(path, settings=settings)


def undump(
    path: PathLike,
    channel: Optional[ChannelSpec] = None,
    dtype: Any = None,
    *,
    settings: EnviSettings | None = None,
) -> np.ndarray:
    """Load one band as a 2-D array.

    Without ``channel`` the file must hold a single band.
    """
    with ropen(path, settings=settings) as reader:
        if channel is None:
            if reader.num_channels > 1:
                raise InconsistentMetadata(
                    f"file has {reader.num_channels} channels, cannot do a simple undump"
                )
            channel = 0
        return reader.get_channel(channel, dtype=dtype)


__all__ = ["EnviReader", "ropen", "undump"]
