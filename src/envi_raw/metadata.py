"""Ordered key/value metadata with typed, positional, multi-value accessors.

ENVI headers carry arbitrary ``key = value`` pairs whose values may pack
several heterogeneous fields into one brace-delimited, comma-separated list
(``map info = { UTM, 1, 1, 500000, 4000000, 30, 30, 33, North, WGS-84 }``).
:class:`Metadata` keeps those pairs in insertion order and offers accessors
that recover typed values from them positionally.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Iterator, Sequence, Tuple, Union

import numpy as np

from .errors import DuplicateKey, MetadataFrozen

logger = logging.getLogger(__name__)

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)
_TRUE_WORDS = {"true", "yes", "on"}
_FALSE_WORDS = {"false", "no", "off"}


class _Skip:
    """Positional placeholder that consumes a token without binding it."""

    _instance: "_Skip | None" = None

    def __new__(cls) -> "_Skip":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SKIP"


SKIP = _Skip()

Decoder = Callable[[str], Any]
SchemaEntry = Union[Tuple[str, Decoder], _Skip]


def scan_int(token: str) -> int:
    """Parse the leading integer of ``token`` (``"12abc"`` -> 12).

    Raises ``ValueError`` when no digits lead the token.
    """
    match = _INT_PREFIX.match(token)
    if match is None:
        raise ValueError(f"no integer at start of {token!r}")
    return int(match.group(1))


def scan_float(token: str) -> float:
    match = _FLOAT_PREFIX.match(token)
    if match is None:
        raise ValueError(f"no number at start of {token!r}")
    return float(match.group(1))


def _scan_bool(token: str) -> bool:
    lowered = token.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    return scan_int(token) != 0


def extract(token: str, decoder: Decoder) -> Any:
    """Convert one token with ``decoder``; numeric builtins use prefix scanning."""
    if decoder is str:
        return token
    if decoder is bool:
        return _scan_bool(token)
    if decoder is int:
        return scan_int(token)
    if decoder is float:
        return scan_float(token)
    return decoder(token)


def decoder_default(decoder: Decoder) -> Any:
    """The value a field takes when its token is missing or unparsable."""
    try:
        return decoder()
    except (TypeError, ValueError):
        return None


def format_value(value: Any, precision: int = 16) -> str:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, float):
        return format(value, f".{precision}g")
    return str(value)


def format_list(values: Iterable[Any], precision: int = 16) -> str:
    """``{ v1, v2, ..., vn }`` with each value formatted by :func:`format_value`."""
    return "{ " + ", ".join(format_value(v, precision) for v in values) + " }"


def split_values(value: str) -> list[str]:
    """Split a (possibly brace-wrapped) list value on commas and trim each token.

    A trailing empty token after the final comma is dropped; inner empty
    tokens are kept so positions stay stable.
    """
    inner = value.strip()
    if inner.startswith("{") and inner.endswith("}"):
        inner = inner[1:-1]
    if not inner:
        return []
    tokens = [token.strip() for token in inner.split(",")]
    if not tokens[-1]:
        tokens.pop()
    return tokens


def _bind(tokens: Sequence[str], decoders: Iterable[Any]) -> Iterator[Tuple[int, Any]]:
    for pos, decoder in enumerate(decoders):
        if decoder is SKIP:
            continue
        if pos >= len(tokens):
            yield pos, decoder_default(decoder)
            continue
        try:
            yield pos, extract(tokens[pos], decoder)
        except (TypeError, ValueError, ArithmeticError):
            yield pos, decoder_default(decoder)


class Metadata:
    """Insertion-ordered metadata store with unique keys.

    Writers fill it incrementally; readers fill it once from the parsed
    header and then :meth:`freeze` it.
    """

    def __init__(self, precision: int = 16) -> None:
        self._entries: dict[str, str] = {}
        self._frozen = False
        self.precision = precision

    # ------------------------------------------------------------------
    # mutation
    # ------------------------------------------------------------------
    def _check_new(self, key: str) -> None:
        if self._frozen:
            raise MetadataFrozen(f"metadata is read-only, cannot add key {key!r}")
        if key in self._entries:
            raise DuplicateKey(
                f"key {key} already exists with value {self._entries[key]}"
            )

    def add(self, key: str, value: Any) -> None:
        self._check_new(key)
        self._entries[key] = format_value(value, self.precision)

    def add_multi(self, key: str, *values: Any) -> None:
        """Store several values under ``key`` as ``{ v1, v2, ..., vn }``."""
        self._check_new(key)
        self._entries[key] = format_list(values, self.precision)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # access
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __repr__(self) -> str:
        return f"Metadata({list(self._entries.items())!r})"

    def has_key(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        return list(self._entries)

    def items(self) -> list[Tuple[str, str]]:
        return list(self._entries.items())

    def key(self, index: int) -> str:
        return self.keys()[index]

    def value(self, index: int) -> str:
        return list(self._entries.values())[index]

    def get(self, key: str, default: str = "") -> str:
        return self._entries.get(key, default)

    def get_typed(self, key: str, default: Any, decoder: Decoder | None = None) -> Any:
        """Return ``key`` parsed as ``type(default)`` (or ``decoder``).

        A missing key and a value that does not parse both yield ``default``;
        the two cases are not distinguishable by the caller.
        """
        raw = self._entries.get(key)
        if raw is None:
            return default
        if decoder is None:
            if default is None:
                return raw
            decoder = type(default)
        try:
            return extract(raw, decoder)
        except (TypeError, ValueError, ArithmeticError):
            logger.debug("metadata %r value %r not parsable, using default", key, raw)
            return default

    def get_values(self, key: str) -> list[str]:
        return split_values(self._entries.get(key, ""))

    def get_tuple(self, key: str, *decoders: Any) -> tuple:
        """Convert the comma-separated tokens of ``key`` positionally.

        Each decoder is a callable such as ``str``, ``int`` or ``float``, or
        :data:`SKIP` to consume a token without returning it. Missing tokens
        take the decoder default (``decoder()``); surplus tokens are ignored.

        >>> meta.get_tuple("map info", str, SKIP, SKIP, float, float)
        ('UTM', 500000.0, 4000000.0)
        """
        tokens = self.get_values(key)
        return tuple(value for _, value in _bind(tokens, decoders))

    def get_record(self, key: str, schema: Sequence[SchemaEntry]) -> dict[str, Any]:
        """Like :meth:`get_tuple` with an ordered ``(name, decoder)`` schema."""
        tokens = self.get_values(key)
        decoders = [SKIP if entry is SKIP else entry[1] for entry in schema]
        return {schema[pos][0]: value for pos, value in _bind(tokens, decoders)}


__all__ = [
    "Metadata",
    "SKIP",
    "extract",
    "format_list",
    "format_value",
    "scan_float",
    "scan_int",
    "split_values",
]
