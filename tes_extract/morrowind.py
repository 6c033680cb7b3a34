"""
Morrowind-style BSA decoder
Layout credit: http://en.uesp.net/wiki/Tes3Mod:BSA_File_Format

    -------------------------------------------------------------------------------------
    | header             | 8 bytes after magic             | hash_offset, file_count
    | file_records       | 8 * file_count                  | size, offset into raw_data
    | name_offsets       | 4 * file_count                  | offset of each name (unused)
    | name_block         | hash_offset - 12 * file_count   | NUL-terminated file names
    | hash_block         | 8 * file_count                  | hashes of the names (unused)
    | raw_data           | rest of the file                | uncompressed file data
    -------------------------------------------------------------------------------------

hash_offset is relative to the end of the 12-byte header (magic included),
and so is the start of raw_data once the hash block is skipped.
"""

import logging
import os
import struct
from dataclasses import dataclass
from typing import List

from tes_extract import constants
from tes_extract.exceptions import StructuralParseError
from tes_extract.models import ArchiveHeader, DecodedArchive, EntryName, FileRecord, FormatVariant
from tes_extract.reader import ArchiveReader


logger = logging.getLogger("tes_extract.morrowind")


@dataclass
class MWHeader:
    """Morrowind header fields (after the magic)."""
    hash_offset: int
    file_count: int

    @property
    def data_offset(self) -> int:
        """Absolute offset of the raw data section."""
        return (
            constants.MAGIC_LEN + constants.MW_HEADER_LEN
            + self.hash_offset + constants.MW_HASH_LEN * self.file_count
        )

    @property
    def name_block_size(self) -> int:
        return self.hash_offset - (constants.MW_FILE_RECORD_LEN + constants.MW_NAME_OFFSET_LEN) * self.file_count


def parse_header(data: bytes) -> MWHeader:
    hash_offset, file_count = struct.unpack("<II", data)
    return MWHeader(hash_offset=hash_offset, file_count=file_count)


def parse_file_records(data: bytes) -> List[FileRecord]:
    # Record offsets are relative to raw_data
    return [
        FileRecord(offset=offset, size=size)
        for size, offset in struct.iter_unpack("<II", data)
    ]


def parse(reader: ArchiveReader) -> DecodedArchive:
    """
    Decode a Morrowind BSA positioned just after its magic.

    Args:
        reader: Reader over the archive

    Returns:
        Decoded header, records and names; record offsets are relative
        to data_offset
    """
    header = reader.parse_exact(constants.MW_HEADER_LEN, parse_header, "Morrowind BSA header")
    logger.debug(f"Morrowind header: hash_offset={header.hash_offset}, file_count={header.file_count}")

    if header.name_block_size < 0:
        raise StructuralParseError(
            f"Morrowind hash offset {header.hash_offset} is too small for "
            f"{header.file_count} files in {reader.name}"
        )

    records = reader.parse_exact(
        constants.MW_FILE_RECORD_LEN * header.file_count,
        parse_file_records,
        "Morrowind file records",
    )

    # Skip the name offsets, the name block is read in one go
    reader.seek(constants.MW_NAME_OFFSET_LEN * header.file_count, os.SEEK_CUR)
    file_names = reader.read_bstring_block(header.name_block_size)

    return DecodedArchive(
        header=ArchiveHeader(version=FormatVariant.MORROWIND, file_count=header.file_count),
        records=records,
        names=[EntryName("", name) for name in file_names],
        data_offset=header.data_offset,
    )
