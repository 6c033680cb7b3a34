"""
Archive index building

Joins the records and names produced by a variant decoder into the
name -> entry mapping held by an Archive. The two lists come from separate
tables on disk and are paired strictly by position.
"""

import itertools
import logging
from typing import Dict, Iterable, Iterator, Tuple

from tes_extract.compression import Compression
from tes_extract.exceptions import StructuralParseError
from tes_extract.models import (
    ArchiveFlags, ArchiveHeader, DecodedArchive, Entry, FileEntry, FileRecord, TextureEntry,
)


logger = logging.getLogger("tes_extract.index")


def folder_file_pairs(folders: Iterable) -> Iterator[Tuple[str, FileRecord]]:
    """
    Flatten folders into (folder_name, file_record) pairs.

    Each folder name is repeated once per file it owns, folder by folder,
    which is the order file names are stored in.

    Args:
        folders: Objects with a name and a file_records list

    Returns:
        Iterator of (folder_name, file_record)
    """
    return itertools.chain.from_iterable(
        zip(itertools.repeat(folder.name), folder.file_records) for folder in folders
    )


def resolve_compression(archive_compressed: bool, uses_default_compression: bool) -> bool:
    """
    Decide whether one file is compressed.

    A record that does not use the default compression inverts the
    archive-wide flag.
    """
    if uses_default_compression:
        return archive_compressed
    return not archive_compressed


def make_entry(header: ArchiveHeader, record: FileRecord, data_offset: int = 0) -> FileEntry:
    """
    Turn a decoded file record into an extractable entry.

    Args:
        header: Header of the archive the record belongs to
        record: Record as decoded from disk
        data_offset: Base to add to the record's offset

    Returns:
        FileEntry with an absolute offset and its codec resolved
    """
    if header.version.is_ba2:
        is_compressed = record.compressed_size != 0
    else:
        is_compressed = resolve_compression(header.compressed_by_default, record.uses_default_compression)

    has_name = bool(header.archive_flags & ArchiveFlags.EMBED_FILE_NAMES) and header.version.honours_embedded_names

    return FileEntry(
        offset=data_offset + record.offset,
        size=record.size,
        compressed_size=record.compressed_size,
        has_name=has_name,
        compression=header.version.compression if is_compressed else Compression.NONE,
    )


def build_index(decoded: DecodedArchive, source: str = "<memory>") -> Dict[str, Entry]:
    """
    Pair records with names and build the entry mapping.

    Args:
        decoded: Output of a variant decoder
        source: Archive name used in error messages

    Returns:
        Dictionary mapping normalized paths to entries
    """
    header = decoded.header
    if len(decoded.records) != len(decoded.names):
        raise StructuralParseError(
            f"Found {len(decoded.names)} names for {len(decoded.records)} file records in {source}"
        )
    if len(decoded.records) != header.file_count:
        raise StructuralParseError(
            f"Header of {source} declares {header.file_count} files but {len(decoded.records)} records were read"
        )

    entries: Dict[str, Entry] = {}
    for record, name in zip(decoded.records, decoded.names):
        if isinstance(record, TextureEntry):
            entry = record
        else:
            entry = make_entry(header, record, decoded.data_offset)

        path = name.path
        if path in entries:
            logger.warning(f"Duplicate file {path!r} in {source}, keeping the later record")
        entries[path] = entry

    return entries

