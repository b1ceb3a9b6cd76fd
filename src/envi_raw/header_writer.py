"""Serialize an :class:`~envi_raw.envi_header.EnviHeader` to ENVI header text."""
from __future__ import annotations

import io
from typing import List, Sequence

from .dtypes import valid_type
from .envi_header import HEADER_FIELDS, INTERLEAVE, MAGIC, EnviHeader
from .errors import DuplicateKey, InvalidName, InvalidType

_NAME_FORBIDDEN = set(",{}\r\n")
_KEY_FORBIDDEN = set("={}\r\n")
_LINE_BREAKS = set("\r\n")


def check_band_name(name: str) -> str:
    """Return ``name`` if it survives a trip through ``band names = { ... }``."""
    if not name or name != name.strip():
        raise InvalidName(f"band name {name!r} is empty or has surrounding whitespace")
    bad = _NAME_FORBIDDEN.intersection(name)
    if bad:
        raise InvalidName(f"band name {name!r} contains {''.join(sorted(bad))!r}")
    return name


def check_meta_key(key: str) -> str:
    if not key or key != key.strip():
        raise InvalidName(f"metadata key {key!r} is empty or has surrounding whitespace")
    bad = _KEY_FORBIDDEN.intersection(key)
    if bad:
        raise InvalidName(f"metadata key {key!r} contains {''.join(sorted(bad))!r}")
    if key in HEADER_FIELDS:
        raise DuplicateKey(f"metadata key {key!r} is a header field written by the writer")
    return key


def check_meta_value(key: str, value: str) -> str:
    """A value is one line; braces only as a single ``{ ... }`` wrapper."""
    if _LINE_BREAKS.intersection(value):
        raise InvalidName(f"metadata value for {key!r} spans several lines")
    inner = value[1:-1] if value.startswith("{") and value.endswith("}") else value
    if "{" in inner or "}" in inner:
        raise InvalidName(f"metadata value for {key!r} has unbalanced braces: {value!r}")
    return value


def check_description(description: str) -> str:
    bad = _NAME_FORBIDDEN.difference(",").intersection(description)
    if bad:
        raise InvalidName(f"description {description!r} contains {''.join(sorted(bad))!r}")
    return description


def _format_band_names(names: Sequence[str]) -> str:
    """One band stays inline, several go one per line, comma-terminated but the last."""
    if len(names) == 1:
        return "{ " + names[0] + " }"
    return "{\n" + ",\n".join(names) + "\n}"


def build_envi_header_text(header: EnviHeader) -> str:
    """
    Build the ``.hdr`` text for ``header``.

    Conventional keys come first in a fixed order so readers that expect
    them up front keep working; user metadata follows verbatim in insertion
    order::

        ENVI
        description = { <text> }
        samples = <uint>
        lines = <uint>
        bands = <uint>
        data type = <code>
        interleave = bsq
        header offset = <uint>
        byte order = <0|1>
        band names = { ... }
        <key> = <value>
    """
    if header.data_type is None or not valid_type(header.data_type):
        raise InvalidType(f"cannot write header with data type {header.data_type!r}")

    lines: List[str] = [MAGIC]
    lines.append(f"description = {{ {header.description} }}")
    lines.extend(
        [
            f"samples = {header.samples}",
            f"lines = {header.lines}",
            f"bands = {header.bands}",
            f"data type = {int(header.data_type)}",
            f"interleave = {INTERLEAVE}",
            f"header offset = {header.data_offset}",
            f"byte order = {int(header.byte_order)}",
        ]
    )
    if header.band_names:
        lines.append(f"band names = {_format_band_names(header.band_names)}")

    for key, value in header.metadata.items():
        lines.append(f"{key} = {value}")

    return "\n".join(lines) + "\n"


def write_envi_header(stream, header: EnviHeader) -> str:
    """Write the header text to a text or binary stream and return it.

    Binary streams receive UTF-8, the encoding :func:`~envi_raw.paths.open_stream`
    uses for text.
    """
    text = build_envi_header_text(header)
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        stream.write(text.encode("utf-8"))
    else:
        stream.write(text)
    return text


__all__ = [
    "build_envi_header_text",
    "check_band_name",
    "check_description",
    "check_meta_key",
    "check_meta_value",
    "write_envi_header",
]
