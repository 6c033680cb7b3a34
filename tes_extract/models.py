"""
Data models for archive headers, file records and entries
"""

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from functools import reduce
from typing import List, NamedTuple, Optional, Tuple, Union

from tes_extract.compression import Compression
from tes_extract.utils import format_size, join_archive_path


class FormatVariant(Enum):
    """
    On-disk layout an archive was decoded from.

    Each variant fixes the codec used by its compressed files and whether
    files may carry an embedded name in front of their data.
    """
    MORROWIND = "Morrowind"
    OBLIVION = "Oblivion"
    SKYRIM = "Skyrim / Fallout 3 / Fallout New Vegas"
    SKYRIM_SE = "Skyrim Special Edition"
    FALLOUT4_GENERAL = "Fallout 4 (general)"
    FALLOUT4_TEXTURES = "Fallout 4 (textures)"

    @property
    def compression(self) -> Compression:
        """Codec used when a file of this variant is compressed."""
        return _VARIANT_COMPRESSION[self]

    @property
    def honours_embedded_names(self) -> bool:
        """
        Whether EMBED_FILE_NAMES really prefixes file data with a name.

        The UESP documentation says Oblivion archives do this as well, but
        official Oblivion archives with the flag set have no names in the
        file blocks, so Oblivion is excluded.
        """
        return self in (FormatVariant.SKYRIM, FormatVariant.SKYRIM_SE)

    @property
    def is_ba2(self) -> bool:
        return self in (FormatVariant.FALLOUT4_GENERAL, FormatVariant.FALLOUT4_TEXTURES)


_VARIANT_COMPRESSION = {
    FormatVariant.MORROWIND: Compression.NONE,
    FormatVariant.OBLIVION: Compression.ZLIB,
    FormatVariant.SKYRIM: Compression.ZLIB,
    FormatVariant.SKYRIM_SE: Compression.LZ4,
    FormatVariant.FALLOUT4_GENERAL: Compression.ZLIB,
    FormatVariant.FALLOUT4_TEXTURES: Compression.NONE,
}


class _StrictFlag(IntFlag):
    """IntFlag that can reject bit patterns outside its known members."""

    @classmethod
    def from_bits(cls, bits: int) -> Optional["_StrictFlag"]:
        """Return the flag set for bits, or None if an unknown bit is set."""
        known = reduce(lambda acc, member: acc | member.value, cls, 0)
        if bits & ~known:
            return None
        return cls(bits)


class ArchiveFlags(_StrictFlag):
    """Flags describing how an Oblivion-style archive is laid out."""
    INCLUDE_DIR_NAMES = 0x0001
    INCLUDE_FILE_NAMES = 0x0002
    # Files are compressed by default, individual files may opt out
    COMPRESSED_ARCHIVE = 0x0004
    RETAIN_DIR_NAMES = 0x0008
    RETAIN_FILE_NAMES = 0x0010
    RETAIN_FILE_NAME_OFFSETS = 0x0020
    # Numbers after the header are big-endian
    XBOX_360_ARCHIVE = 0x0040
    RETAIN_STARTUP_STRINGS = 0x0080
    # File blocks begin with a bstring holding the file's path
    EMBED_FILE_NAMES = 0x0100
    XMEM_CODEC = 0x0200
    UNKNOWN_OBLIVION_FLAG = 0x0400


class FileFlags(_StrictFlag):
    """Flags naming the kinds of files an archive contains."""
    MESHES = 0x0001
    TEXTURES = 0x0002
    MENUS = 0x0004
    SOUNDS = 0x0008
    VOICES = 0x0010
    SHADERS = 0x0020
    TREES = 0x0040
    FONTS = 0x0080
    MISC = 0x0100


@dataclass(frozen=True)
class ArchiveHeader:
    """
    Metadata for a whole archive, normalized across all variants.

    Attributes:
        version: Layout the archive was decoded from
        archive_flags: Container flags (empty for Morrowind and BA2)
        file_flags: Kinds of files in the archive (empty for Morrowind and BA2)
        file_count: Number of files declared by the header
    """
    version: FormatVariant
    archive_flags: ArchiveFlags = ArchiveFlags(0)
    file_flags: FileFlags = FileFlags(0)
    file_count: int = 0

    @property
    def compressed_by_default(self) -> bool:
        return bool(self.archive_flags & ArchiveFlags.COMPRESSED_ARCHIVE)

    def __str__(self) -> str:
        archive_flags = _flag_names(self.archive_flags)
        file_flags = _flag_names(self.file_flags)
        return (
            f"Version: {self.version.value}\n"
            f"Archive flags: {archive_flags}\n"
            f"File flags: {file_flags}\n"
            f"Files: {self.file_count}"
        )


def _flag_names(flags: IntFlag) -> str:
    names = [member.name for member in type(flags) if member in flags]
    return ", ".join(names) if names else "none"


@dataclass(frozen=True)
class FileRecord:
    """
    A file record as decoded from disk, before index building.

    Attributes:
        offset: Offset of the file data, absolute or relative to the data section
        size: Stored size (BSA) or uncompressed size (BA2)
        compressed_size: Stored size of a compressed BA2 file, 0 otherwise
        uses_default_compression: False when the record inverts the archive default
    """
    offset: int
    size: int
    compressed_size: int = 0
    uses_default_compression: bool = True


@dataclass(frozen=True)
class FileEntry:
    """
    Metadata needed to extract one file.

    Attributes:
        offset: Absolute offset of the file data in the archive
        size: Stored size (BSA) or uncompressed size (BA2)
        compressed_size: Stored size of a compressed BA2 file, 0 otherwise
        has_name: Whether the data starts with an embedded bstring name
        compression: Resolved codec, NONE when the file is stored as-is
    """
    offset: int
    size: int
    compressed_size: int = 0
    has_name: bool = False
    compression: Compression = Compression.NONE

    @property
    def is_compressed(self) -> bool:
        return self.compression is not Compression.NONE

    @property
    def stored_size(self) -> int:
        """Number of bytes occupied in the archive."""
        return self.compressed_size or self.size

    def __str__(self) -> str:
        return f"{format_size(self.stored_size)} at {self.offset:#x} ({self.compression.value})"


@dataclass(frozen=True)
class TextureHeader:
    """Header of a BA2 texture file (DX10 archives)."""
    width: int
    height: int
    mip_count: int
    dxgi_format: int
    chunk_count: int
    chunk_header_size: int = 0


@dataclass(frozen=True)
class TextureChunk:
    """One chunk of a BA2 texture, covering the mipmaps mip_start..mip_end."""
    offset: int
    compressed_size: int
    uncompressed_size: int
    mip_start: int = 0
    mip_end: int = 0


@dataclass(frozen=True)
class TextureEntry:
    """A BA2 texture file split into chunks."""
    header: TextureHeader
    chunks: Tuple[TextureChunk, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return sum(chunk.uncompressed_size for chunk in self.chunks)

    def __str__(self) -> str:
        return (
            f"{self.header.width}x{self.header.height} texture, "
            f"{self.header.mip_count} mips, {len(self.chunks)} chunks"
        )


Entry = Union[FileEntry, TextureEntry]


class EntryName(NamedTuple):
    """Name of a file as read from disk, with its folder when stored apart."""
    folder: str
    file: str

    @property
    def path(self) -> str:
        return join_archive_path(self.folder, self.file)


@dataclass
class DecodedArchive:
    """
    Output of a variant decoder.

    records and names are paired by position: names[i] names records[i].

    Attributes:
        header: Normalized archive header
        records: File records (or finished texture entries) in traversal order
        names: File names in the same order as records
        data_offset: Base added to every FileRecord offset
    """
    header: ArchiveHeader
    records: List[Union[FileRecord, TextureEntry]] = field(default_factory=list)
    names: List[EntryName] = field(default_factory=list)
    data_offset: int = 0
