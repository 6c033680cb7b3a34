import os
import struct

import pytest

from tes_extract.exceptions import ShortReadError, StructuralParseError
from tes_extract.reader import ArchiveReader, LayoutMismatch, expect_literal


def test_read_exact():
    reader = ArchiveReader.from_bytes(b"abcdef")
    assert reader.read(4) == b"abcd"
    assert reader.tell() == 4


def test_short_read_reports_offset():
    reader = ArchiveReader.from_bytes(b"abcdef", name="short.bsa")
    reader.seek(4)
    with pytest.raises(ShortReadError, match="offset 4 of short.bsa"):
        reader.read(8)


def test_seek_relative():
    reader = ArchiveReader.from_bytes(b"0123456789")
    reader.read(2)
    reader.seek(3, os.SEEK_CUR)
    assert reader.read(1) == b"5"


def test_parse_exact_applies_layout():
    reader = ArchiveReader.from_bytes(struct.pack("<II", 7, 9))
    assert reader.parse_exact(8, lambda data: struct.unpack("<II", data)) == (7, 9)


def test_parse_exact_wraps_struct_errors():
    reader = ArchiveReader.from_bytes(b"\x00" * 6)
    with pytest.raises(StructuralParseError, match="header"):
        reader.parse_exact(6, lambda data: struct.unpack("<I", data), "header")


def test_parse_exact_wraps_literal_mismatch():
    def layout(data):
        (sentinel,) = struct.unpack("<I", data)
        expect_literal(sentinel, 0xBAADF00D, "sentinel")
        return sentinel

    reader = ArchiveReader.from_bytes(struct.pack("<I", 0xDEADBEEF))
    with pytest.raises(StructuralParseError, match="0xdeadbeef"):
        reader.parse_exact(4, layout)


def test_expect_literal_bytes():
    expect_literal(b"BTDX", b"BTDX", "magic")
    with pytest.raises(LayoutMismatch, match="magic"):
        expect_literal(b"BSA\x00", b"BTDX", "magic")


def test_read_bstring_prefix_widths():
    reader = ArchiveReader.from_bytes(b"\x03abc" + struct.pack("<H", 4) + b"wxyz")
    assert reader.read_bstring() == "abc"
    assert reader.read_bstring(prefix_width=2) == "wxyz"


def test_read_bstring_rejects_unknown_prefix_width():
    with pytest.raises(ValueError):
        ArchiveReader.from_bytes(b"\x00" * 8).read_bstring(prefix_width=4)


def test_read_bzstring_strips_terminator():
    reader = ArchiveReader.from_bytes(b"\x07meshes\x00")
    assert reader.read_bzstring() == "meshes"


@pytest.mark.parametrize("data", [b"\x06meshes", b"\x00", b"\x04ab\x00\x00", b"\x04a\x00b\x00"])
def test_read_bzstring_requires_single_terminator(data):
    with pytest.raises(StructuralParseError):
        ArchiveReader.from_bytes(data).read_bzstring()


def test_read_zstring():
    reader = ArchiveReader.from_bytes(b"a.nif\x00b.dds\x00")
    assert reader.read_zstring() == "a.nif"
    assert reader.read_zstring() == "b.dds"


def test_read_zstring_unterminated():
    with pytest.raises(ShortReadError):
        ArchiveReader.from_bytes(b"a.nif").read_zstring()


def test_read_bstring_block_keeps_interior_empty_names():
    reader = ArchiveReader.from_bytes(b"a\x00\x00b\x00")
    assert reader.read_bstring_block(5) == ["a", "", "b"]


def test_read_bstring_block_without_final_terminator():
    reader = ArchiveReader.from_bytes(b"a\x00b")
    assert reader.read_bstring_block(3) == ["a", "b"]


def test_strings_are_latin1():
    reader = ArchiveReader.from_bytes(b"\x05caf\xe9\x00")
    assert reader.read_bzstring() == "café"


def test_from_file_closes(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"xyz")
    with ArchiveReader.from_file(path) as reader:
        assert reader.read(3) == b"xyz"
        assert reader.name == str(path)
    assert reader.stream.closed
