"""Naming rules for the raw data file and its companion ``.hdr`` header."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import IOFailure

PathLike = Union[str, "os.PathLike[str]"]


def header_path(data_path: PathLike) -> Path:
    """Return the header path ENVI pairs with ``data_path``.

    ENVI replaces the last extension of the file name with ``.hdr``, or
    appends ``.hdr`` when the name has no extension. A trailing dot gets
    ``hdr`` appended; hidden files (leading dot only) count as having no
    extension.
    """
    raw = os.fspath(data_path)
    if not raw:
        raise ValueError("data filename cannot be empty")
    path = Path(raw)
    name = path.name
    dot = name.rfind(".")
    if dot == len(name) - 1:
        return path.with_name(name + "hdr")
    if dot < 1:
        return path.with_name(name + ".hdr")
    return path.with_name(name[:dot] + ".hdr")


def open_stream(path: Path, mode: str):
    """Open ``path``; text modes use UTF-8. ``OSError`` becomes :class:`IOFailure`."""
    try:
        if "b" in mode:
            return open(path, mode)
        return open(path, mode, encoding="utf-8")
    except OSError as exc:
        raise IOFailure(f"cannot open {path}: {exc}") from exc


@dataclass(frozen=True)
class EnviPaths:
    """Data/header path pair for one ENVI raster."""

    data: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", Path(os.fspath(self.data)))

    @property
    def hdr(self) -> Path:
        return header_path(self.data)

    @property
    def hdr_fallback(self) -> Path:
        """``<data>.hdr``, the alternative some tools write."""
        return self.data.with_name(self.data.name + ".hdr")

    def existing_hdr(self) -> Path:
        """The header that exists on disk, preferring :attr:`hdr`."""
        if self.hdr.exists():
            return self.hdr
        if self.hdr_fallback.exists():
            return self.hdr_fallback
        return self.hdr


__all__ = ["EnviPaths", "header_path", "open_stream"]
