"""Band-level I/O: turn caller buffers into BSQ bytes and back.

Writers append one whole band at a time to the data stream; readers seek to
``data_offset + index * pixels * itemsize`` and decode exactly one band.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

import numpy as np

from .dtypes import SampleCodec
from .errors import ChannelSizeError, IOFailure, StrideError

logger = logging.getLogger(__name__)


def _write(stream, payload: bytes, name: str) -> None:
    try:
        stream.write(payload)
    except IOFailure:
        raise
    except OSError as exc:
        raise IOFailure(f"failed writing channel {name}: {exc}") from exc


# ---------------------------------------------------------------------
# writing
# ---------------------------------------------------------------------
def channel_from_buffer(source: Any, pixels: int, name: str) -> np.ndarray:
    """Flatten ``source``; it must hold exactly ``pixels`` samples."""
    arr = np.asarray(source)
    if arr.size != pixels:
        raise ChannelSizeError(
            f"wrong number of pixels in channel {name}: expected {pixels}, got {arr.size}"
        )
    return arr.reshape(-1)


def channel_from_rect(
    source: Any,
    lines: int,
    samples: int,
    stride: Optional[int],
    row: int,
    col: int,
    name: str,
) -> np.ndarray:
    """Cut a ``lines x samples`` window out of a row-major buffer with ``stride``.

    ``stride`` is counted in elements and defaults to the width of a 2-D
    ``source``. The window starts at ``(row, col)``.
    """
    arr = np.asarray(source)
    if stride is None:
        if arr.ndim != 2:
            raise StrideError(f"stride is required for a {arr.ndim}-D source in channel {name}")
        stride = arr.shape[1]
    if row < 0 or col < 0:
        raise ChannelSizeError(f"negative window origin ({row}, {col}) in channel {name}")
    if stride < samples + col:
        raise StrideError(
            f"data stride too small in channel {name}: {stride} < {samples} + {col}"
        )
    flat = arr.reshape(-1)
    if lines == 0:
        return flat[:0]
    extent = (row + lines - 1) * stride + col + samples
    if extent > flat.size:
        raise ChannelSizeError(
            f"source too small for channel {name}: needs {extent} elements, has {flat.size}"
        )
    start = row * stride + col
    index = start + np.arange(lines)[:, None] * stride + np.arange(samples)[None, :]
    return flat[index].reshape(-1)


def channel_from_func(
    func: Callable[..., Any], args: Sequence[Any], lines: int, samples: int
) -> np.ndarray:
    """Evaluate ``func(*args, row, col)`` for every pixel, row-major."""
    values = [func(*args, r, c) for r in range(lines) for c in range(samples)]
    return np.asarray(values)


def append_channel(stream, codec: SampleCodec, samples: np.ndarray, name: str) -> int:
    """Encode ``samples`` with ``codec`` and append them; returns bytes written."""
    payload = codec.encode(samples)
    _write(stream, payload, name)
    logger.debug("appended channel %r (%d bytes as %s)", name, len(payload), codec.dtype)
    return len(payload)


# ---------------------------------------------------------------------
# reading
# ---------------------------------------------------------------------
def channel_offset(data_offset: int, index: int, pixels: int, codec: SampleCodec) -> int:
    return data_offset + index * pixels * codec.itemsize


def read_channel(stream, codec: SampleCodec, offset: int, out: np.ndarray) -> np.ndarray:
    """Seek to ``offset`` and decode ``out.size`` samples into ``out``."""
    logger.debug("reading %d %s samples at offset %d", out.size, codec.dtype, offset)
    try:
        stream.seek(offset)
        codec.decode_into(stream, out)
    except IOFailure:
        raise
    except OSError as exc:
        raise IOFailure(f"failed reading channel at offset {offset}: {exc}") from exc
    return out


__all__ = [
    "append_channel",
    "channel_from_buffer",
    "channel_from_func",
    "channel_from_rect",
    "channel_offset",
    "read_channel",
]
