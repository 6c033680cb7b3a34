"""
Archive entity: opening archives and extracting their files
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from tes_extract import constants, fallout4, morrowind, oblivion
from tes_extract.exceptions import (
    DecompressionError, EntryNotFoundError, StructuralParseError, UnsupportedFeatureError,
)
from tes_extract.index import build_index
from tes_extract.models import ArchiveHeader, Entry, TextureEntry
from tes_extract.reader import ArchiveReader
from tes_extract.utils import get_extension, normalize_path


# Leading magic bytes -> decoder for that family
DECODERS = {
    constants.BSA_MAGIC: oblivion.parse,
    constants.MORROWIND_MAGIC: morrowind.parse,
    constants.BA2_MAGIC: fallout4.parse,
}


@dataclass(frozen=True)
class ExtensionSet:
    """
    Set of file extensions to select entries by.

    Use ExtensionSet.NONE (matches nothing), ExtensionSet.ALL (matches
    everything) or ExtensionSet.of(["nif", "dds"]). Extensions compare
    case-insensitively and may be given with or without the leading dot.
    """
    extensions: FrozenSet[str] = frozenset()
    match_all: bool = False

    @classmethod
    def of(cls, extensions: Iterable[str]) -> "ExtensionSet":
        return cls(extensions=frozenset(ext.strip().lstrip(".").lower() for ext in extensions if ext.strip()))

    @property
    def is_empty(self) -> bool:
        return not self.match_all and not self.extensions

    def is_match(self, file_extension: str) -> bool:
        """Determine whether a file extension is in the set."""
        if self.match_all:
            return True
        return bool(file_extension) and file_extension.lstrip(".").lower() in self.extensions


ExtensionSet.NONE = ExtensionSet()
ExtensionSet.ALL = ExtensionSet(match_all=True)


def _texture_unsupported(entry_key: str) -> UnsupportedFeatureError:
    return UnsupportedFeatureError(f"Extraction is not supported for BA2 texture files: {entry_key}")


def extract_entry(reader: ArchiveReader, entry: Entry, entry_key: str = "") -> bytes:
    """
    Read one file's data and decode it.

    Args:
        reader: Reader over the archive the entry belongs to
        entry: Entry to extract
        entry_key: Entry key, used in error messages

    Returns:
        Raw file content
    """
    if isinstance(entry, TextureEntry):
        raise _texture_unsupported(entry_key)

    reader.seek(entry.offset)
    file_block = reader.read(entry.stored_size)

    if entry.has_name:
        # Embedded bstring: one length byte, then the name
        if not file_block:
            raise StructuralParseError(f"Missing embedded name for {entry_key} in {reader.name}")
        if file_block[0] + 1 > len(file_block):
            raise StructuralParseError(
                f"Embedded name of {entry_key} runs past its {len(file_block)}-byte block in {reader.name}"
            )
        file_block = file_block[file_block[0] + 1:]

    if not entry.is_compressed:
        return file_block

    if entry.compressed_size:
        # BA2 keeps the uncompressed size in the record instead of the data
        file_block = struct.pack("<I", entry.size) + file_block

    try:
        return entry.compression.decompress_buffer(file_block)
    except DecompressionError as e:
        raise DecompressionError(f"Failed to decompress {entry_key} in {reader.name}: {e}") from e


class Archive:
    """
    A parsed archive: its header and the metadata of every file in it.

    The entry mapping is built once and is read-only afterwards. File
    contents are never cached, and the archive holds no open file: each
    extraction uses a reader of its own, so threads may extract from the
    same Archive as long as each uses its own reader.
    """

    def __init__(self, path: Union[str, Path], header: ArchiveHeader, entries: Mapping[str, Entry]):
        """
        Initialize the archive.

        Args:
            path: Path to the archive on disk
            header: Normalized header
            entries: Mapping of normalized file paths to entries
        """
        self.path = Path(path)
        self.header = header
        self.entries: Mapping[str, Entry] = MappingProxyType(dict(entries))
        self.logger = logging.getLogger("tes_extract.archive")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Archive":
        """
        Open and parse an archive, picking the decoder from its magic bytes.

        Args:
            path: Path to a .bsa or .ba2 file

        Returns:
            Parsed Archive
        """
        with ArchiveReader.from_file(path) as reader:
            return cls.from_reader(reader, path)

    @classmethod
    def from_reader(cls, reader: ArchiveReader, path: Union[str, Path]) -> "Archive":
        """Parse an archive from an already opened reader positioned at its start."""
        magic = reader.read(constants.MAGIC_LEN)
        decoder = DECODERS.get(magic)
        if decoder is None:
            raise StructuralParseError(f"Unknown file identifier {magic!r} in {reader.name}")

        decoded = decoder(reader)
        entries = build_index(decoded, reader.name)

        archive = cls(path, decoded.header, entries)
        archive.logger.info(f"Parsed {archive.path} ({decoded.header.version.value}) with {len(entries)} files")
        return archive

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, entry_key: str) -> bool:
        return normalize_path(entry_key) in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __repr__(self) -> str:
        return f"Archive({str(self.path)!r}, {self.header.version.name}, {len(self.entries)} files)"

    def open_reader(self) -> ArchiveReader:
        """Open a new reader over the archive file."""
        return ArchiveReader.from_file(self.path)

    def get_by_extension(self, extension_set: ExtensionSet) -> List[str]:
        """
        Find the entry keys whose extension is in extension_set.

        Args:
            extension_set: Extensions to select

        Returns:
            Matching keys, in archive order
        """
        if extension_set.is_empty:
            return []
        return [name for name in self.entries if extension_set.is_match(get_extension(name))]

    def extract(self, entry_key: str, reader: Optional[ArchiveReader] = None) -> bytes:
        """
        Extract one file's content.

        Args:
            entry_key: Path of the file inside the archive
            reader: Reader to use; a new one is opened and closed if omitted

        Returns:
            Raw file content
        """
        key = normalize_path(entry_key)
        entry = self.entries.get(key)
        if entry is None:
            raise EntryNotFoundError(entry_key, str(self.path))

        if isinstance(entry, TextureEntry):
            # Fail before touching the disk
            raise _texture_unsupported(key)

        self.logger.debug(f"Extracting {key}: {entry}")
        if reader is not None:
            return extract_entry(reader, entry, key)

        with self.open_reader() as own_reader:
            return extract_entry(own_reader, entry, key)

    def extract_many_by_extension(self, extension_set: ExtensionSet) -> Iterator[Tuple[str, bytes]]:
        """
        Lazily extract every file whose extension is in extension_set.

        Keys are filtered before anything is read, and the archive is only
        opened when at least one key matches. The iterator is single-use.

        Args:
            extension_set: Extensions to select

        Yields:
            (entry key, raw file content)
        """
        file_names = self.get_by_extension(extension_set)
        if not file_names:
            return

        with self.open_reader() as reader:
            for file_name in file_names:
                yield file_name, self.extract(file_name, reader)

