from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"

for candidate in (PROJECT_ROOT, SRC_ROOT):
    path_str = str(candidate)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


logging.getLogger("envi_raw").setLevel(logging.DEBUG)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Every test starts from environment-derived defaults with complex support off."""
    from envi_raw.config import reset_settings

    monkeypatch.delenv("ENVI_RAW_COMPLEX", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def complex_settings():
    from envi_raw.config import EnviSettings

    return EnviSettings(enable_complex=True)
