"""
Oblivion-style BSA decoder (Oblivion, Fallout 3, Fallout New Vegas, Skyrim, Skyrim SE)
Layout credit: http://en.uesp.net/wiki/Tes5Mod:Archive_File_Format

    ---------------------------------------------------------------------------------
    | header             | 32 bytes after magic          | metadata for the archive
    | folder_records     | 16 or 24 bytes * folder_count | file count per folder
    | file_record_blocks | one per folder                | bzstring name + file records
    | file_name_block    | total_file_name_length        | optional NUL-terminated names
    | files              | raw file blocks               | optionally compressed
    ---------------------------------------------------------------------------------

File names are stored apart from the file records. They come in the same
order as the records, which are grouped by folder, so the Nth name belongs
to the Nth record of the folder-by-folder traversal.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import List

from tes_extract import constants
from tes_extract.exceptions import StructuralParseError, UnsupportedFeatureError
from tes_extract.index import folder_file_pairs
from tes_extract.models import (
    ArchiveFlags, ArchiveHeader, DecodedArchive, EntryName, FileFlags, FileRecord, FormatVariant,
)
from tes_extract.reader import ArchiveReader, LayoutMismatch


logger = logging.getLogger("tes_extract.oblivion")

BSA_VERSIONS = {
    constants.BSA_VERSION_OBLIVION: FormatVariant.OBLIVION,
    constants.BSA_VERSION_SKYRIM: FormatVariant.SKYRIM,
    constants.BSA_VERSION_SKYRIM_SE: FormatVariant.SKYRIM_SE,
}


@dataclass
class OBHeader:
    """
    Oblivion-style header fields (after the magic).

    Encoded format:
        version                   u32
        offset                    u32  (unused)
        archive_flags             u32
        folder_count              u32
        file_count                u32
        total_folder_name_length  u32  (unused)
        total_file_name_length    u32
        file_flags                u16
        padding                   u16
    """
    version: FormatVariant
    archive_flags: ArchiveFlags
    folder_count: int
    file_count: int
    total_file_name_length: int
    file_flags: FileFlags


@dataclass
class OBFolderRecord:
    """A folder's name and its file records, in on-disk order."""
    name: str
    file_records: List[FileRecord] = field(default_factory=list)


def parse_header(data: bytes) -> OBHeader:
    (version, _offset, archive_flags, folder_count, file_count,
     _total_folder_name_length, total_file_name_length, file_flags, _padding) = struct.unpack("<7I2H", data)

    variant = BSA_VERSIONS.get(version)
    if variant is None:
        raise LayoutMismatch(f"unrecognized BSA version {version:#x}")

    flags = ArchiveFlags.from_bits(archive_flags)
    if flags is None:
        raise LayoutMismatch(f"unknown archive flags {archive_flags:#x}")

    types = FileFlags.from_bits(file_flags)
    if types is None:
        raise LayoutMismatch(f"unknown file flags {file_flags:#x}")

    return OBHeader(
        version=variant,
        archive_flags=flags,
        folder_count=folder_count,
        file_count=file_count,
        total_file_name_length=total_file_name_length,
        file_flags=types,
    )


def parse_folder_counts(data: bytes) -> List[int]:
    # name_hash u64, count u32, offset u32
    return [count for _name_hash, count, _offset in struct.iter_unpack("<QII", data)]


def parse_sse_folder_counts(data: bytes) -> List[int]:
    # name_hash u64, count u32, unknown u32, offset u64
    return [count for _name_hash, count, _unknown, _offset in struct.iter_unpack("<QIIQ", data)]


def parse_file_records(data: bytes) -> List[FileRecord]:
    """
    Decode a folder's file records: name_hash u64, size u32, offset u32.

    Bit 30 of size inverts the archive's compression default for this file.
    """
    return [
        FileRecord(
            offset=offset,
            size=size & constants.OB_SIZE_MASK,
            uses_default_compression=not (size & constants.OB_COMPRESSION_TOGGLE),
        )
        for _name_hash, size, offset in struct.iter_unpack("<QII", data)
    ]


def read_folder_records(reader: ArchiveReader, header: OBHeader) -> List[OBFolderRecord]:
    """
    Read the folder records and each folder's block of file records.

    Args:
        reader: Reader positioned at the folder records
        header: Parsed archive header

    Returns:
        Folders in on-disk order, each holding its file records in order
    """
    # Skyrim Special Edition widened the folder record
    if header.version is FormatVariant.SKYRIM_SE:
        counts = reader.parse_exact(
            constants.SSE_FOLDER_RECORD_LEN * header.folder_count,
            parse_sse_folder_counts,
            "SSE-style folder records",
        )
    else:
        counts = reader.parse_exact(
            constants.OB_FOLDER_RECORD_LEN * header.folder_count,
            parse_folder_counts,
            "Oblivion-style folder records",
        )

    has_dir_names = bool(header.archive_flags & ArchiveFlags.INCLUDE_DIR_NAMES)

    folders: List[OBFolderRecord] = []
    for count in counts:
        name = reader.read_bzstring() if has_dir_names else ""
        file_records = reader.parse_exact(
            constants.OB_FILE_RECORD_LEN * count,
            parse_file_records,
            f"file records of folder {name!r}",
        )
        folders.append(OBFolderRecord(name=name, file_records=file_records))

    return folders


def parse(reader: ArchiveReader) -> DecodedArchive:
    """
    Decode an Oblivion-style BSA positioned just after its magic.

    Args:
        reader: Reader over the archive

    Returns:
        Decoded header, records and names; record offsets are absolute
    """
    header = reader.parse_exact(constants.OB_HEADER_LEN, parse_header, "Oblivion-style BSA header")
    logger.debug(
        f"BSA header: version={header.version.name}, flags={header.archive_flags!r}, "
        f"folders={header.folder_count}, files={header.file_count}"
    )

    if header.archive_flags & ArchiveFlags.XBOX_360_ARCHIVE:
        raise UnsupportedFeatureError(f"Xbox 360 (big-endian) archives are not supported: {reader.name}")

    folders = read_folder_records(reader, header)

    if not header.archive_flags & ArchiveFlags.INCLUDE_FILE_NAMES:
        raise UnsupportedFeatureError(
            f"Parsing BSA files without the INCLUDE_FILE_NAMES archive flag is not supported: {reader.name}"
        )
    file_names = reader.read_bstring_block(header.total_file_name_length)

    pairs = list(folder_file_pairs(folders))
    if len(file_names) != len(pairs):
        raise StructuralParseError(
            f"Found {len(file_names)} file names for {len(pairs)} file records in {reader.name}"
        )

    return DecodedArchive(
        header=ArchiveHeader(
            version=header.version,
            archive_flags=header.archive_flags,
            file_flags=header.file_flags,
            file_count=header.file_count,
        ),
        records=[record for _folder_name, record in pairs],
        names=[EntryName(folder_name, file_name) for (folder_name, _record), file_name in zip(pairs, file_names)],
    )
