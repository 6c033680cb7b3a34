"""
Exceptions raised while parsing archives and extracting their files
"""


class ArchiveError(Exception):
    """Base class for all archive errors."""
    pass


class StructuralParseError(ArchiveError):
    """Exception raised when a magic, version, tag, flag or sentinel does not match."""
    pass


class ShortReadError(ArchiveError):
    """Exception raised when fewer bytes are available than a field or table needs."""
    pass


class EntryNotFoundError(ArchiveError, KeyError):
    """Exception raised when a requested file is not in the archive."""

    def __init__(self, entry_key: str, archive_path: str = ""):
        self.entry_key = entry_key
        self.archive_path = archive_path
        super().__init__(entry_key)

    def __str__(self) -> str:
        if self.archive_path:
            return f"File {self.entry_key!r} not found in {self.archive_path}"
        return f"File {self.entry_key!r} not found"


class UnsupportedFeatureError(ArchiveError):
    """Exception raised for recognized on-disk layouts that are not implemented."""
    pass


class DecompressionError(ArchiveError):
    """Exception raised when a compressed file cannot be decoded."""
    pass
