"""
Fallout 4 BA2 decoder (general and texture archives)
Layout credit: http://en.uesp.net/wiki/Tes5Mod:Archive_File_Format (BA2 section)

    ---------------------------------------------------------------------------
    | header       | 24 bytes (magic included)  | version, type, count, names
    | file_records | GNRL: 36 bytes per file    | one chunk per file
    |              | DX10: 24 + 24 * chunks     | texture header + chunks
    | raw_data     | file data                  | zlib or stored
    | name_table   | at name_table_offset       | u16 length-prefixed paths
    ---------------------------------------------------------------------------

Every record ends with the 0xBAADF00D marker. Names in the table are in
record order.
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, Tuple

from tes_extract import constants
from tes_extract.models import (
    ArchiveHeader, DecodedArchive, EntryName, FileRecord, FormatVariant,
    TextureChunk, TextureEntry, TextureHeader,
)
from tes_extract.reader import ArchiveReader, LayoutMismatch, expect_literal


logger = logging.getLogger("tes_extract.fallout4")

BA2_TYPES = {
    constants.BA2_TYPE_GENERAL: FormatVariant.FALLOUT4_GENERAL,
    constants.BA2_TYPE_TEXTURES: FormatVariant.FALLOUT4_TEXTURES,
}


@dataclass
class BA2Header:
    """
    BA2 header fields.

    Encoded format:
        magic              char[4]  "BTDX"
        version            u32
        file_type          char[4]  "GNRL" or "DX10"
        file_count         u32
        name_table_offset  u64
    """
    version: FormatVariant
    file_count: int
    name_table_offset: int


def parse_header(data: bytes) -> BA2Header:
    magic, version, file_type, file_count, name_table_offset = struct.unpack("<4sI4sIQ", data)
    expect_literal(magic, constants.BA2_MAGIC, "magic")
    expect_literal(version, constants.BA2_VERSION_FALLOUT4, "version")

    variant = BA2_TYPES.get(file_type)
    if variant is None:
        raise LayoutMismatch(f"unrecognized BA2 type {file_type!r}")

    return BA2Header(version=variant, file_count=file_count, name_table_offset=name_table_offset)


def parse_general_records(data: bytes) -> List[FileRecord]:
    """
    Decode general file records.

    Encoded format:
        name_hash          u32
        extension          char[4]
        dir_hash           u32
        flags              u32
        offset             u64
        compressed_size    u32  (0 when stored)
        uncompressed_size  u32
        sentinel           u32  0xBAADF00D
    """
    records = []
    for (_name_hash, _extension, _dir_hash, _flags, offset,
         compressed_size, uncompressed_size, sentinel) in struct.iter_unpack("<I4sIIQIII", data):
        expect_literal(sentinel, constants.BA2_RECORD_SENTINEL, "record sentinel")
        records.append(FileRecord(offset=offset, size=uncompressed_size, compressed_size=compressed_size))
    return records


def parse_texture_header(data: bytes) -> TextureHeader:
    """
    Decode a texture header.

    Encoded format:
        name_hash          u32
        extension          char[4]
        dir_hash           u32
        unknown            u8
        chunk_count        u8
        chunk_header_size  u16
        height             u16
        width              u16
        mip_count          u8
        dxgi_format        u8
        unknown            u16
    """
    (_name_hash, _extension, _dir_hash, _unknown, chunk_count, chunk_header_size,
     height, width, mip_count, dxgi_format, _unknown_2) = struct.unpack("<I4sIBBHHHBBH", data)
    return TextureHeader(
        width=width,
        height=height,
        mip_count=mip_count,
        dxgi_format=dxgi_format,
        chunk_count=chunk_count,
        chunk_header_size=chunk_header_size,
    )


def parse_texture_chunks(data: bytes) -> Tuple[TextureChunk, ...]:
    """
    Decode the chunks of one texture.

    Encoded format (per chunk):
        offset             u64
        compressed_size    u32
        uncompressed_size  u32
        mip_start          u16
        mip_end            u16
        sentinel           u32  0xBAADF00D
    """
    chunks = []
    for offset, compressed_size, uncompressed_size, mip_start, mip_end, sentinel in struct.iter_unpack("<QIIHHI", data):
        expect_literal(sentinel, constants.BA2_RECORD_SENTINEL, "chunk sentinel")
        chunks.append(TextureChunk(
            offset=offset,
            compressed_size=compressed_size,
            uncompressed_size=uncompressed_size,
            mip_start=mip_start,
            mip_end=mip_end,
        ))
    return tuple(chunks)


def read_name_table(reader: ArchiveReader, header: BA2Header) -> List[str]:
    reader.seek(header.name_table_offset)
    return [reader.read_bstring(prefix_width=2) for _ in range(header.file_count)]


def read_texture_entries(reader: ArchiveReader, file_count: int) -> List[TextureEntry]:
    entries = []
    for index in range(file_count):
        texture_header = reader.parse_exact(
            constants.BA2_TEXTURE_HEADER_LEN, parse_texture_header, f"texture header {index}"
        )
        chunks = reader.parse_exact(
            constants.BA2_TEXTURE_CHUNK_LEN * texture_header.chunk_count,
            parse_texture_chunks,
            f"chunks of texture {index}",
        )
        entries.append(TextureEntry(header=texture_header, chunks=chunks))
    return entries


def parse(reader: ArchiveReader) -> DecodedArchive:
    """
    Decode a BA2 archive.

    The header is read from offset 0, magic included, wherever the
    reader currently is.

    Args:
        reader: Reader over the archive

    Returns:
        Decoded header, records and names; record offsets are absolute
    """
    reader.seek(0)
    header = reader.parse_exact(constants.BA2_HEADER_LEN, parse_header, "Fallout 4 BA2 header")
    logger.debug(
        f"BA2 header: type={header.version.name}, files={header.file_count}, "
        f"name_table_offset={header.name_table_offset}"
    )

    # The name table sits after the file data
    names = read_name_table(reader, header)

    reader.seek(constants.BA2_HEADER_LEN)
    if header.version is FormatVariant.FALLOUT4_GENERAL:
        records = reader.parse_exact(
            constants.BA2_GENERAL_RECORD_LEN * header.file_count,
            parse_general_records,
            "Fallout 4 general file records",
        )
    else:
        records = read_texture_entries(reader, header.file_count)

    return DecodedArchive(
        header=ArchiveHeader(version=header.version, file_count=header.file_count),
        records=records,
        names=[EntryName("", name) for name in names],
    )
