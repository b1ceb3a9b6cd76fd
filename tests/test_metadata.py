from __future__ import annotations

import numpy as np
import pytest

from envi_raw.errors import DuplicateKey, MetadataFrozen
from envi_raw.metadata import SKIP, Metadata, format_value, scan_float, scan_int, split_values

MAP_INFO = ("UTM", 1, 1, 5e5, 4e6, 30, 30, 33, "North", "WGS-84")
MAP_TYPES = (str, int, int, float, float, float, float, int, str, str)


def _map_meta() -> Metadata:
    meta = Metadata()
    meta.add_multi("map info", *MAP_INFO)
    return meta


def test_add_multi_stores_brace_list():
    assert _map_meta().get("map info") == (
        "{ UTM, 1, 1, 500000, 4000000, 30, 30, 33, North, WGS-84 }"
    )


def test_get_tuple_reproduces_each_field():
    values = _map_meta().get_tuple("map info", *MAP_TYPES)

    assert values == MAP_INFO
    assert [type(v) for v in values] == list(MAP_TYPES)


def test_get_tuple_fewer_decoders_truncates():
    assert _map_meta().get_tuple("map info", str, int, int) == ("UTM", 1, 1)


def test_get_tuple_more_decoders_defaults_trailing_fields():
    values = _map_meta().get_tuple("map info", *MAP_TYPES, str, int)

    assert values[:10] == MAP_INFO
    assert values[10] == ""
    assert values[11] == 0


def test_get_tuple_skip_consumes_token():
    values = _map_meta().get_tuple("map info", SKIP, int, int, float, float, int, int)

    assert values == (1, 1, 5e5, 4e6, 30, 30)


def test_get_tuple_unparsable_token_takes_default():
    meta = Metadata()
    meta.add("pair", "{ x, 3 }")

    assert meta.get_tuple("pair", int, int) == (0, 3)


def test_get_record_applies_named_schema():
    record = _map_meta().get_record(
        "map info",
        [("projection", str), SKIP, SKIP, ("easting", float), ("northing", float)],
    )

    assert record == {"projection": "UTM", "easting": 5e5, "northing": 4e6}


def test_add_rejects_duplicate_key():
    meta = Metadata()
    meta.add("sensor", "AVIRIS")

    with pytest.raises(DuplicateKey):
        meta.add("sensor", "HyMap")
    with pytest.raises(KeyError):
        meta.add_multi("sensor", 1, 2)
    assert meta.get("sensor") == "AVIRIS"


def test_insertion_order_is_preserved():
    meta = Metadata()
    for key in ("zeta", "alpha", "mid"):
        meta.add(key, key.upper())

    assert meta.keys() == ["zeta", "alpha", "mid"]
    assert list(meta) == ["zeta", "alpha", "mid"]
    assert meta.key(1) == "alpha"
    assert meta.value(2) == "MID"
    assert len(meta) == 3


def test_get_returns_default_when_absent():
    meta = Metadata()

    assert meta.get("missing") == ""
    assert meta.get("missing", "n/a") == "n/a"
    assert not meta.has_key("missing")


def test_get_typed_parses_and_falls_back():
    meta = Metadata()
    meta.add("gain", "2.5")
    meta.add("offset", "12abc")

    assert meta.get_typed("gain", 0.0) == 2.5
    assert meta.get_typed("offset", 0) == 12
    assert meta.get_typed("missing", 7) == 7
    assert meta.get_typed("gain", None) == "2.5"


def test_get_typed_malformed_value_silently_returns_default():
    meta = Metadata()
    meta.add("reflectance scale factor", "not-a-number")

    # malformed and absent are indistinguishable to the caller
    assert meta.get_typed("reflectance scale factor", 10000.0) == 10000.0
    assert meta.get_typed("reflectance scale factor", 1) == 1


def test_get_typed_custom_decoder():
    meta = Metadata()
    meta.add("flag", "yes")

    assert meta.get_typed("flag", False, decoder=bool) is True


def test_get_values_splits_and_trims():
    meta = Metadata()
    meta.add("wavelength", "{ 400.0 , 410.5,420 }")
    meta.add("trailing", "a, b,")
    meta.add("gaps", "a,,b")
    meta.add("empty", "")

    assert meta.get_values("wavelength") == ["400.0", "410.5", "420"]
    assert meta.get_values("trailing") == ["a", "b"]
    assert meta.get_values("gaps") == ["a", "", "b"]
    assert meta.get_values("empty") == []
    assert meta.get_values("missing") == []


def test_frozen_metadata_rejects_mutation():
    meta = _map_meta()
    meta.freeze()

    assert meta.frozen
    with pytest.raises(MetadataFrozen):
        meta.add("late", 1)


def test_format_value_uses_sixteen_significant_digits():
    assert format_value(0.1) == "0.1"
    assert format_value(1 / 3) == "0.3333333333333333"
    assert format_value(np.float32(0.5)) == "0.5"
    assert format_value(np.int16(-4)) == "-4"
    assert format_value(True) == "1"
    assert format_value(0.1234567, precision=3) == "0.123"


def test_scanners_read_numeric_prefix():
    assert scan_int(" 42px") == 42
    assert scan_int("-7") == -7
    assert scan_float("1.5e3m") == 1500.0
    assert scan_float(".25") == 0.25
    with pytest.raises(ValueError):
        scan_int("px42")
    with pytest.raises(ValueError):
        scan_float("e5")


def test_split_values_handles_bare_lists():
    assert split_values("a, b") == ["a", "b"]
    assert split_values("{ }") == []
