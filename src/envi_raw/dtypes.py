"""ENVI sample encodings and the codecs that read and write them.

Every on-disk encoding is one :class:`SampleCodec` in a fixed table. Which
codec handles a file is only known once its header has been parsed, so
:func:`resolve_codec` walks the encodings in their fixed order (see
:func:`next_type`) until it meets the requested one. Conversion between the
on-disk encoding and the caller's dtype is always a plain numpy cast, so no
per-pair code exists.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import numpy as np

from .config import EnviSettings, resolve_settings
from .errors import IOFailure, InvalidType

logger = logging.getLogger(__name__)


class DataType(IntEnum):
    """ENVI ``data type`` codes. 7, 8, 10 and 11 are unused by the format."""

    INT8 = 1
    INT16 = 2
    INT32 = 3
    FLOAT32 = 4
    FLOAT64 = 5
    COMPLEX64 = 6
    COMPLEX128 = 9
    UINT16 = 12
    UINT32 = 13
    INT64 = 14
    UINT64 = 15


FIRST_TYPE = DataType.INT8
LAST_TYPE = DataType.UINT64
COMPLEX_TYPES = frozenset({DataType.COMPLEX64, DataType.COMPLEX128})

_NUMPY_DTYPES: dict[DataType, np.dtype] = {
    DataType.INT8: np.dtype(np.int8),
    DataType.INT16: np.dtype(np.int16),
    DataType.INT32: np.dtype(np.int32),
    DataType.FLOAT32: np.dtype(np.float32),
    DataType.FLOAT64: np.dtype(np.float64),
    DataType.COMPLEX64: np.dtype(np.complex64),
    DataType.COMPLEX128: np.dtype(np.complex128),
    DataType.UINT16: np.dtype(np.uint16),
    DataType.UINT32: np.dtype(np.uint32),
    DataType.INT64: np.dtype(np.int64),
    DataType.UINT64: np.dtype(np.uint64),
}
_BY_DTYPE: dict[np.dtype, DataType] = {dt: code for code, dt in _NUMPY_DTYPES.items()}


def valid_type(code: Any) -> bool:
    """Return ``True`` if ``code`` is one of the eleven legal ENVI codes."""
    if isinstance(code, bool):
        return False
    try:
        value = int(code)
    except (TypeError, ValueError):
        return False
    if value != code:
        return False
    return 1 <= value <= 15 and value not in (7, 8) and (value <= 9 or value >= 12)


def is_enabled(code: DataType, settings: EnviSettings | None = None) -> bool:
    if code in COMPLEX_TYPES:
        return resolve_settings(settings).enable_complex
    return True


def _check_code(code: Any) -> DataType:
    if not valid_type(code):
        raise InvalidType(f"unknown ENVI data type {code!r}")
    return DataType(int(code))


def next_type(current: DataType, settings: EnviSettings | None = None) -> DataType:
    """Successor of ``current`` among the enabled encodings.

    ``UINT64`` maps to itself; callers walking the chain must treat that as
    the end rather than looping on it.
    """
    current = _check_code(current)
    if current is LAST_TYPE:
        return LAST_TYPE
    settings = resolve_settings(settings)
    for candidate in DataType:
        if candidate > current and is_enabled(candidate, settings):
            return candidate
    return LAST_TYPE


def numpy_dtype(code: DataType) -> np.dtype:
    return _NUMPY_DTYPES[_check_code(code)]


def itemsize(code: DataType) -> int:
    return numpy_dtype(code).itemsize


def type_code(dtype: Any, settings: EnviSettings | None = None) -> DataType:
    """Map a numpy dtype (or an ENVI code) to the matching :class:`DataType`.

    Raises :class:`InvalidType` for dtypes ENVI cannot store natively and for
    complex dtypes when complex support is disabled.
    """
    if isinstance(dtype, (int, np.integer)) and not isinstance(dtype, bool):
        code = _check_code(dtype)
    else:
        try:
            resolved = np.dtype(dtype)
        except TypeError as exc:
            raise InvalidType(f"not a numpy dtype: {dtype!r}") from exc
        code = _BY_DTYPE.get(resolved)
        if code is None:
            raise InvalidType(f"dtype {resolved} has no ENVI data type")
    if not is_enabled(code, settings):
        raise InvalidType(
            f"data type {int(code)} ({code.name}) needs complex support "
            "(set ENVI_RAW_COMPLEX=1 or EnviSettings(enable_complex=True))"
        )
    return code


def convert(values: np.ndarray, dtype: Any) -> np.ndarray:
    """Cast ``values`` to ``dtype`` with ordinary (unchecked) numeric conversion."""
    target = np.dtype(dtype)
    if np.iscomplexobj(values) and target.kind != "c":
        raise InvalidType(f"cannot convert complex samples to {target}")
    if values.dtype == target:
        return values
    with np.errstate(invalid="ignore", over="ignore"):
        return values.astype(target)


def _read_exact(stream, nbytes: int) -> bytes:
    data = stream.read(nbytes)
    if data is None or len(data) != nbytes:
        got = 0 if data is None else len(data)
        raise IOFailure(f"short read: expected {nbytes} bytes, got {got}")
    return data


def _readinto_exact(stream, target: np.ndarray) -> None:
    view = memoryview(target)
    filled = 0
    while filled < len(view):
        count = stream.readinto(view[filled:])
        if not count:
            raise IOFailure(f"short read: expected {len(view)} bytes, got {filled}")
        filled += count


@dataclass(frozen=True)
class SampleCodec:
    """Encoder/decoder for one on-disk sample encoding."""

    data_type: DataType
    dtype: np.dtype

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    def encode(self, values: Any) -> bytes:
        return convert(np.asarray(values), self.dtype).tobytes()

    def decode(self, stream, count: int, dtype: Any = None) -> np.ndarray:
        """Read ``count`` samples and return them as a 1-D array of ``dtype``."""
        target = self.dtype if dtype is None else np.dtype(dtype)
        out = np.empty(count, dtype=target)
        self.decode_into(stream, out)
        return out

    def decode_into(self, stream, out: np.ndarray) -> None:
        """Fill ``out`` (any shape) with ``out.size`` samples read from ``stream``."""
        if self.dtype.kind == "c" and out.dtype.kind != "c":
            raise InvalidType(f"cannot convert {self.dtype} samples to {out.dtype}")
        if out.dtype == self.dtype and out.flags.c_contiguous and hasattr(
            stream, "readinto"
        ):
            # byte-exact bulk read, no per-sample conversion
            _readinto_exact(stream, out.reshape(-1).view(np.uint8))
            return
        raw = np.frombuffer(_read_exact(stream, out.size * self.itemsize), dtype=self.dtype)
        np.copyto(out, convert(raw, out.dtype).reshape(out.shape), casting="unsafe")


_CODECS: dict[DataType, SampleCodec] = {
    code: SampleCodec(code, dt) for code, dt in _NUMPY_DTYPES.items()
}


def resolve_codec(target: Any, settings: EnviSettings | None = None) -> SampleCodec:
    """Find the codec for ``target`` by walking the encodings in order.

    The walk starts at :data:`FIRST_TYPE` and follows :func:`next_type`.
    Reaching the end of the chain without a match (an illegal code, or a
    complex code with complex support off) raises :class:`InvalidType`.
    """
    if not valid_type(target):
        raise InvalidType(f"unknown ENVI data type {target!r}")
    settings = resolve_settings(settings)
    wanted = int(target)
    current = FIRST_TYPE
    while current != wanted:
        following = next_type(current, settings)
        if following == current:
            raise InvalidType(
                f"no codec for data type {wanted}; complex support is "
                f"{'enabled' if settings.enable_complex else 'disabled'}"
            )
        current = following
    logger.debug("resolved data type %d to %s", wanted, _CODECS[current].dtype)
    return _CODECS[current]


__all__ = [
    "DataType",
    "FIRST_TYPE",
    "LAST_TYPE",
    "COMPLEX_TYPES",
    "SampleCodec",
    "convert",
    "is_enabled",
    "itemsize",
    "next_type",
    "numpy_dtype",
    "resolve_codec",
    "type_code",
    "valid_type",
]
