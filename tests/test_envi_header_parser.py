import io
from pathlib import Path

import pytest

from envi_raw.dtypes import DataType
from envi_raw.envi_header import HeaderParser, parse_envi_header, read_envi_header
from envi_raw.errors import (
    DuplicateKey,
    FormatError,
    InconsistentMetadata,
    InvalidType,
    UnsupportedFeature,
)
from tests.utils_builders import FOREIGN, NATIVE, header_text, minimal_header


def _write_envi_header(path: Path) -> None:
    path.write_text(
        "\n".join(
            [
                "ENVI",
                "description = {",
                "  Hyperspectral test scene }",
                "samples = 4",
                "lines = 3",
                "bands = 2",
                "interleave = bsq",
                "data type = 4",
                f"byte order = {NATIVE}",
                "header offset = 0",
                "wavelength units = Nanometers",
                "wavelength = {",
                "400.0,",
                "410.0",
                "}",
                "band names = {",
                "B1,",
                "B2",
                "}",
                "map info = {UTM, 1, 1, 500000, 4420000, 1, 1, 13, North, WGS-84}",
                "",
            ]
        ),
        encoding="utf-8",
    )


def _parse(text: str):
    return parse_envi_header(io.StringIO(text))


def test_parse_envi_header_multiline(tmp_path):
    hdr_path = tmp_path / "example.hdr"
    _write_envi_header(hdr_path)

    header = read_envi_header(hdr_path)

    assert header.samples == 4
    assert header.lines == 3
    assert header.pixels == 12
    assert header.bands == 2
    assert header.data_type is DataType.FLOAT32
    assert header.data_offset == 0
    assert header.description == "Hyperspectral test scene"
    assert header.band_names == ("B1", "B2")

    meta = header.metadata
    assert meta.keys() == ["wavelength units", "wavelength", "map info"]
    # continuation lines are joined without separators
    assert meta.get("wavelength") == "400.0,410.0"
    assert meta.get_values("wavelength") == ["400.0", "410.0"]
    assert meta.get_tuple("map info", str, float, float, float, float) == (
        "UTM",
        1.0,
        1.0,
        500000.0,
        4420000.0,
    )
    assert meta.frozen


def test_read_envi_header_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_envi_header(tmp_path / "absent.hdr")


def test_leading_blank_lines_and_blank_records_are_skipped():
    header = _parse("\n\n" + minimal_header().replace("lines = 3\n", "lines = 3\n\n   \n"))

    assert header.lines == 3
    assert header.band_names == ("Band 1", "Band 2")


def test_binary_stream_is_accepted():
    header = parse_envi_header(io.BytesIO(minimal_header(band_names="{a, b}").encode()))

    assert header.band_names == ("a", "b")


def test_windows_line_endings():
    header = _parse(minimal_header(band_names="{\na,\nb\n}").replace("\n", "\r\n"))

    assert header.band_names == ("a", "b")


@pytest.mark.parametrize("first_line", ["ENVI file", "envi", "samples = 4", "ENVI  ", " ENVI"])
def test_missing_magic_is_format_error(first_line):
    with pytest.raises(FormatError, match="ENVI"):
        _parse(header_text("samples = 4", magic=first_line))


def test_empty_stream_is_format_error():
    with pytest.raises(FormatError):
        _parse("")


def test_unterminated_brace_is_format_error():
    text = minimal_header(band_names="{a,b,c")

    with pytest.raises(FormatError, match="missing '}'"):
        _parse(text)


def test_record_without_equals_is_format_error():
    with pytest.raises(FormatError, match="missing '='"):
        _parse(header_text("samples 4"))


def test_equals_inside_braces_only_is_format_error():
    with pytest.raises(FormatError, match="missing '='"):
        _parse(header_text("band names { a = b }"))


@pytest.mark.parametrize("code", ["7", "8", "10", "11", "16", "0", "float"])
def test_illegal_data_type_is_invalid_type(code):
    with pytest.raises(InvalidType):
        _parse(minimal_header(data_type=code))


def test_interleave_must_be_bsq():
    with pytest.raises(UnsupportedFeature, match="bip"):
        _parse(minimal_header(interleave="bip"))
    assert _parse(minimal_header(interleave="BSQ")).interleave == "bsq"


def test_foreign_byte_order_is_unsupported():
    with pytest.raises(UnsupportedFeature):
        _parse(minimal_header(byte_order=FOREIGN))


def test_band_names_twice_is_duplicate():
    text = minimal_header(band_names="{a, b}") + "band names = {c, d}\n"

    with pytest.raises(DuplicateKey):
        _parse(text)


def test_bands_twice_is_duplicate():
    with pytest.raises(DuplicateKey):
        _parse(minimal_header() + "bands = 2\n")


def test_band_names_count_must_match_declared_bands():
    with pytest.raises(InconsistentMetadata):
        _parse(minimal_header(band_names="{a, b, c}"))


def test_declared_bands_must_match_earlier_band_names():
    text = header_text(
        "samples = 4", "lines = 3", "data type = 4", "band names = {a, b, c}", "bands = 2"
    )

    with pytest.raises(InconsistentMetadata):
        _parse(text)


def test_duplicate_user_key_is_duplicate():
    text = minimal_header() + "sensor = AVIRIS\nsensor = HyMap\n"

    with pytest.raises(DuplicateKey):
        _parse(text)


def test_empty_key_stops_parsing():
    text = minimal_header() + "before = 1\n= stop\nafter = 2\n"

    header = _parse(text)

    assert header.metadata.keys() == ["before"]


@pytest.mark.parametrize("dropped", ["samples", "lines", "data type"])
def test_missing_required_field_is_format_error(dropped):
    text = "".join(
        line + "\n"
        for line in minimal_header().splitlines()
        if not line.startswith(dropped)
    )

    with pytest.raises(FormatError, match=dropped):
        _parse(text)


def test_negative_geometry_is_format_error():
    with pytest.raises(FormatError):
        _parse(minimal_header(samples="-4"))


def test_header_offset_and_trailing_band_comma():
    header = _parse(minimal_header(header_offset="512", band_names="{red, nir,}"))

    assert header.data_offset == 512
    assert header.band_names == ("red", "nir")


def test_read_keyval_returns_none_at_end():
    lines = iter(["", "  "])

    assert HeaderParser.read_keyval(lines) is None


def test_value_outside_braces_is_ignored():
    lines = iter(["map info = { UTM, 1 } trailing"])

    assert HeaderParser.read_keyval(lines) == ("map info", "UTM, 1")


def test_undecodable_header_bytes_are_replaced(tmp_path):
    hdr_path = tmp_path / "latin1.hdr"
    hdr_path.write_bytes(
        minimal_header().encode("utf-8").replace(b"ENVI\n", b"ENVI\ndescription = { caf\xe9 }\n", 1)
    )

    from_path = read_envi_header(hdr_path)
    from_stream = parse_envi_header(io.BytesIO(hdr_path.read_bytes()))

    assert from_path.description == "caf\ufffd"
    assert from_stream.description == from_path.description
    assert from_path.samples == 4


def test_utf8_header_text_is_decoded(tmp_path):
    hdr_path = tmp_path / "utf8.hdr"
    hdr_path.write_text(minimal_header(description="{ café }"), encoding="utf-8")

    assert read_envi_header(hdr_path).description == "café"
