"""Process-wide settings for ENVI reading and writing.

The native byte order is resolved once at import time and carried through
:class:`EnviSettings`; readers and writers never probe it themselves.
Optional complex sample support is toggled with the ``ENVI_RAW_COMPLEX``
environment variable or by passing explicit settings.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache

from .errors import UnsupportedFeature


class ByteOrder(IntEnum):
    """ENVI ``byte order`` values. Mixed-endian hardware is not representable."""

    LITTLE = 0
    BIG = 1


NATIVE_BYTE_ORDER = ByteOrder.LITTLE if sys.byteorder == "little" else ByteOrder.BIG

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class EnviSettings:
    """Immutable configuration shared by the codec registry and the file façades.

    Attributes
    ----------
    enable_complex : bool
        Allow the complex encodings (codes 6 and 9) in dispatch and writing.
    byte_order : ByteOrder
        Byte order written to and expected from headers. Only the native
        order is accepted since no conversion is implemented.
    float_precision : int
        Significant digits used when formatting float metadata values.
    """

    enable_complex: bool = False
    byte_order: ByteOrder = NATIVE_BYTE_ORDER
    float_precision: int = 16

    def __post_init__(self) -> None:
        object.__setattr__(self, "byte_order", ByteOrder(self.byte_order))
        if self.byte_order != NATIVE_BYTE_ORDER:
            raise UnsupportedFeature(
                f"byte order {int(self.byte_order)} is not native "
                f"({int(NATIVE_BYTE_ORDER)}); conversion is not supported"
            )
        if self.float_precision < 1:
            raise ValueError("float_precision must be positive")

    @classmethod
    def from_env(cls) -> "EnviSettings":
        return cls(enable_complex=_env_flag("ENVI_RAW_COMPLEX"))


@lru_cache(maxsize=1)
def get_settings() -> EnviSettings:
    """Return the process-wide default settings (read from the environment once)."""
    return EnviSettings.from_env()


def reset_settings() -> None:
    get_settings.cache_clear()


def resolve_settings(settings: EnviSettings | None) -> EnviSettings:
    return settings if settings is not None else get_settings()


__all__ = [
    "ByteOrder",
    "NATIVE_BYTE_ORDER",
    "EnviSettings",
    "get_settings",
    "reset_settings",
    "resolve_settings",
]
