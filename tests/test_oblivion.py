import struct

import pytest

from archive_builders import (
    COMPRESSED_ARCHIVE, EMBED_FILE_NAMES, INCLUDE_DIR_NAMES, INCLUDE_FILE_NAMES, OBLIVION, SKYRIM,
    SKYRIM_SE, XBOX_360_ARCHIVE, BSAFile, build_bsa,
)
from tes_extract.archive import Archive
from tes_extract.compression import Compression
from tes_extract.exceptions import ShortReadError, StructuralParseError, UnsupportedFeatureError
from tes_extract.models import ArchiveFlags, FileFlags, FormatVariant

NAMED = INCLUDE_DIR_NAMES | INCLUDE_FILE_NAMES


def test_header(open_archive):
    data = build_bsa(
        [("meshes", [BSAFile("a.nif", b"a")])],
        version=OBLIVION,
        archive_flags=NAMED | COMPRESSED_ARCHIVE,
        file_flags=0x1 | 0x2,
    )
    archive = open_archive(data)

    header = archive.header
    assert header.version is FormatVariant.OBLIVION
    assert header.archive_flags == (
        ArchiveFlags.INCLUDE_DIR_NAMES | ArchiveFlags.INCLUDE_FILE_NAMES | ArchiveFlags.COMPRESSED_ARCHIVE
    )
    assert header.file_flags == FileFlags.MESHES | FileFlags.TEXTURES
    assert header.file_count == 1
    assert "INCLUDE_FILE_NAMES" in str(header)


def test_names_pair_with_records_across_folders(open_archive):
    folders = [(f"folder{i}", [BSAFile(f"file{i}.txt", f"content {i}".encode())]) for i in range(5)]
    archive = open_archive(build_bsa(folders))

    assert list(archive) == [f"folder{i}/file{i}.txt" for i in range(5)]
    for i in range(5):
        assert archive.extract(f"folder{i}/file{i}.txt") == f"content {i}".encode()


def test_several_files_per_folder(open_archive):
    folders = [
        ("meshes\\clutter", [BSAFile("cup.nif", b"cup"), BSAFile("plate.nif", b"plate")]),
        ("sound\\fx", [BSAFile("boom.wav", b"boom")]),
        ("textures", [BSAFile("cup.dds", b"cup texture"), BSAFile("plate.dds", b"plate texture")]),
    ]
    archive = open_archive(build_bsa(folders))

    assert list(archive) == [
        "meshes/clutter/cup.nif",
        "meshes/clutter/plate.nif",
        "sound/fx/boom.wav",
        "textures/cup.dds",
        "textures/plate.dds",
    ]
    assert archive.extract("meshes\\clutter\\plate.nif") == b"plate"
    assert archive.extract("textures/cup.dds") == b"cup texture"


def test_empty_folder(open_archive):
    folders = [("empty", []), ("full", [BSAFile("x.txt", b"x")])]
    archive = open_archive(build_bsa(folders))
    assert list(archive) == ["full/x.txt"]


@pytest.mark.parametrize("archive_compressed", [False, True])
@pytest.mark.parametrize("toggle", [False, True])
def test_compression_toggle(open_archive, archive_compressed, toggle):
    content = b"some repetitive content " * 50
    flags = NAMED | (COMPRESSED_ARCHIVE if archive_compressed else 0)
    data = build_bsa([("misc", [BSAFile("f.txt", content, toggle_compression=toggle)])], archive_flags=flags)
    archive = open_archive(data)

    entry = archive.entries["misc/f.txt"]
    assert entry.is_compressed == (archive_compressed != toggle)
    assert archive.extract("misc/f.txt") == content


def test_size_mask_removes_toggle(open_archive):
    data = build_bsa([("misc", [BSAFile("f.txt", b"12345", toggle_compression=True)])])
    entry = open_archive(data).entries["misc/f.txt"]
    # Compressed: 4-byte size field plus the zlib stream, without bit 30
    assert entry.size < 0x4000_0000
    assert entry.compression is Compression.ZLIB


def test_oblivion_uses_zlib(open_archive):
    content = b"oblivion " * 40
    data = build_bsa(
        [("misc", [BSAFile("f.txt", content)])], version=OBLIVION, archive_flags=NAMED | COMPRESSED_ARCHIVE
    )
    archive = open_archive(data)
    assert archive.entries["misc/f.txt"].compression is Compression.ZLIB
    assert archive.extract("misc/f.txt") == content


def test_skyrim_se_uses_lz4(open_archive):
    content = b"special edition " * 40
    folders = [("a", [BSAFile("one.txt", content)]), ("b", [BSAFile("two.txt", b"stored", toggle_compression=True)])]
    data = build_bsa(folders, version=SKYRIM_SE, archive_flags=NAMED | COMPRESSED_ARCHIVE)
    archive = open_archive(data)

    assert archive.header.version is FormatVariant.SKYRIM_SE
    assert archive.entries["a/one.txt"].compression is Compression.LZ4
    assert not archive.entries["b/two.txt"].is_compressed
    assert archive.extract("a/one.txt") == content
    assert archive.extract("b/two.txt") == b"stored"


@pytest.mark.parametrize("version", [SKYRIM, SKYRIM_SE])
@pytest.mark.parametrize("compressed", [False, True])
def test_embedded_names_are_skipped(open_archive, version, compressed):
    content = b"embedded " * 30
    flags = NAMED | EMBED_FILE_NAMES | (COMPRESSED_ARCHIVE if compressed else 0)
    data = build_bsa([("meshes", [BSAFile("a.nif", content)])], version=version, archive_flags=flags)
    archive = open_archive(data)

    assert archive.entries["meshes/a.nif"].has_name
    assert archive.extract("meshes/a.nif") == content


def test_oblivion_ignores_embed_flag(open_archive):
    data = build_bsa(
        [("meshes", [BSAFile("a.nif", b"no name here")])],
        version=OBLIVION,
        archive_flags=NAMED | EMBED_FILE_NAMES,
    )
    archive = open_archive(data)

    assert not archive.entries["meshes/a.nif"].has_name
    assert archive.extract("meshes/a.nif") == b"no name here"


def test_without_dir_names(open_archive):
    data = build_bsa([("ignored", [BSAFile("a.txt", b"a"), BSAFile("b.txt", b"b")])], archive_flags=INCLUDE_FILE_NAMES)
    archive = open_archive(data)

    assert list(archive) == ["a.txt", "b.txt"]
    assert archive.extract("b.txt") == b"b"


def test_without_file_names_is_unsupported(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], archive_flags=INCLUDE_DIR_NAMES)
    with pytest.raises(UnsupportedFeatureError, match="INCLUDE_FILE_NAMES"):
        open_archive(data)


def test_xbox_is_unsupported(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], archive_flags=NAMED | XBOX_360_ARCHIVE)
    with pytest.raises(UnsupportedFeatureError, match="Xbox"):
        open_archive(data)


def test_unknown_version(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], version=0x66)
    with pytest.raises(StructuralParseError, match="version"):
        open_archive(data)


def test_unknown_archive_flag(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], archive_flags=NAMED | 0x800)
    with pytest.raises(StructuralParseError, match="archive flags"):
        open_archive(data)


def test_unknown_file_flag(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], file_flags=0x200)
    with pytest.raises(StructuralParseError, match="file flags"):
        open_archive(data)


def test_header_file_count_mismatch(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])], file_count=2)
    with pytest.raises(StructuralParseError, match="declares 2 files"):
        open_archive(data)


def test_missing_folder_name_terminator(open_archive):
    data = bytearray(build_bsa([("misc", [BSAFile("a.txt", b"a")])]))
    # First folder name follows the 36-byte header and one 16-byte folder record
    name_start = 36 + 16
    assert data[name_start:name_start + 6] == b"\x05misc\x00"
    data[name_start + 5] = ord("x")
    with pytest.raises(StructuralParseError, match="NUL terminator"):
        open_archive(bytes(data))


def test_truncated_folder_records(open_archive):
    data = build_bsa([("misc", [BSAFile("a.txt", b"a")])])
    with pytest.raises(ShortReadError):
        open_archive(data[:36 + 8])


def test_name_block_shorter_than_records(open_archive):
    data = bytearray(build_bsa([("misc", [BSAFile("a.txt", b"a"), BSAFile("b.txt", b"b")])]))
    # total_file_name_length is the 7th u32 after the magic
    struct.pack_into("<I", data, 4 + 24, 6)
    with pytest.raises(StructuralParseError, match="1 file names for 2 file records"):
        open_archive(bytes(data))


def test_embedded_name_longer_than_block(open_archive, write_archive):
    data = bytearray(build_bsa(
        [("meshes", [BSAFile("a.nif", b"abc")])], version=SKYRIM, archive_flags=NAMED | EMBED_FILE_NAMES
    ))
    entry = open_archive(bytes(data)).entries["meshes/a.nif"]
    assert data[entry.offset] == len("meshes\\a.nif")
    data[entry.offset] = 0xFF

    archive = Archive.from_file(write_archive(bytes(data), "long_name.bsa"))
    with pytest.raises(StructuralParseError, match="runs past"):
        archive.extract("meshes/a.nif")
