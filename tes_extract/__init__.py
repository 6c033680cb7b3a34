"""
TES Extract - A Python library for reading Bethesda game archives

This library parses the archive formats of The Elder Scrolls and Fallout
games into one uniform index and extracts their files on demand.

Supports Morrowind BSA, Oblivion-style BSA (Oblivion, Fallout 3,
Fallout New Vegas, Skyrim, Skyrim Special Edition) and Fallout 4 BA2.
"""

__version__ = "0.1.0"
__author__ = "tes-extract Contributors"
__license__ = "MIT"

from tes_extract.archive import Archive, ExtensionSet
from tes_extract.compression import Compression
from tes_extract.exceptions import (
    ArchiveError,
    DecompressionError,
    EntryNotFoundError,
    ShortReadError,
    StructuralParseError,
    UnsupportedFeatureError,
)
from tes_extract.models import ArchiveHeader, FileEntry, FormatVariant, TextureEntry
from tes_extract.reader import ArchiveReader

__all__ = [
    "Archive",
    "ExtensionSet",
    "ArchiveReader",
    "ArchiveHeader",
    "FileEntry",
    "TextureEntry",
    "FormatVariant",
    "Compression",
    "ArchiveError",
    "StructuralParseError",
    "ShortReadError",
    "EntryNotFoundError",
    "UnsupportedFeatureError",
    "DecompressionError",
]
