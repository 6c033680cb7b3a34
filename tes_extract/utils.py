"""
Utility functions for archive names, sizes and extracted files
"""

import os
from pathlib import Path, PurePosixPath
from typing import Tuple, Union


def latin1_to_string(buffer: bytes) -> str:
    """
    Decode an ISO-8859-1 byte string.

    Every byte maps to the code point of the same value, so decoding
    never fails.

    Args:
        buffer: Raw bytes read from an archive

    Returns:
        Decoded string
    """
    return buffer.decode("latin-1")


def normalize_path(path: str) -> str:
    """
    Normalize an archive path to forward slashes.

    Bethesda archives store paths with backslashes; entry keys always use
    forward slashes so they behave the same on every platform.

    Args:
        path: Path to normalize

    Returns:
        Normalized path without leading separator
    """
    normalized = path.replace("\\", "/")
    # Collapse repeated separators left over from joining
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    return normalized.lstrip("/")


def join_archive_path(folder: str, file_name: str) -> str:
    """Join a folder name and a file name into a normalized entry key."""
    if not folder:
        return normalize_path(file_name)
    return normalize_path(f"{folder}/{file_name}")


def get_extension(path: str) -> str:
    """
    Get the lowercase extension of an entry key, without the dot.

    Returns an empty string for keys without an extension.
    """
    return PurePosixPath(normalize_path(path)).suffix.lstrip(".").lower()


def get_readable_size(size_bytes: int) -> Tuple[float, str]:
    """
    Convert bytes to human-readable size.

    Args:
        size_bytes: Size in bytes

    Returns:
        Tuple of (size value, unit string)
    """
    power = 1024
    n = 0
    labels = {0: "B", 1: "KB", 2: "MB", 3: "GB", 4: "TB"}

    size = float(size_bytes)
    while size > power and n < 4:
        size /= power
        n += 1

    return round(size, 2), labels[n]


def format_size(size_bytes: int) -> str:
    """Format bytes as human-readable string (e.g. "1.5 GB")."""
    size, unit = get_readable_size(size_bytes)
    return f"{size} {unit}"


def ensure_directory(path: Union[str, Path]) -> None:
    """Ensure directory exists, creating it if necessary."""
    Path(path).mkdir(parents=True, exist_ok=True)


def dump_to_file(output_dir: Union[str, Path], file_name: str, file_data: bytes) -> Path:
    """
    Write extracted file data below an output directory.

    The entry key is interpreted as a relative path; missing parent
    directories are created.

    Args:
        output_dir: Directory to write into
        file_name: Entry key of the extracted file
        file_data: Raw file content

    Returns:
        Path of the written file
    """
    output_root = Path(output_dir).resolve()
    file_path = output_root.joinpath(*PurePosixPath(normalize_path(file_name)).parts)

    # Entry keys come from the archive; refuse anything that climbs out of output_dir
    if os.path.commonpath([str(output_root), str(file_path.resolve())]) != str(output_root):
        raise ValueError(f"Refusing to write {file_name!r} outside of {output_root}")

    ensure_directory(file_path.parent)
    with open(file_path, "wb") as f:
        f.write(file_data)
    return file_path
