"""
Byte cursor for reading Bethesda archive files

Wraps a seekable binary stream with helpers for fixed-size records and the
string encodings used by the archive formats:

- bstring: length prefix (1 or 2 bytes), not terminated
- bzstring: 1-byte length prefix, terminated by a single NUL
- zstring: NUL terminated
- bstring block: a run of NUL-terminated names
"""

import io
import os
import struct
from pathlib import Path
from typing import BinaryIO, Callable, List, TypeVar, Union

from tes_extract.exceptions import ShortReadError, StructuralParseError
from tes_extract.utils import latin1_to_string


T = TypeVar("T")

# Layout functions decode a fixed-size byte string into a value
Layout = Callable[[bytes], T]

_PREFIX_FORMATS = {1: "<B", 2: "<H"}


class LayoutMismatch(ValueError):
    """Raised by layout functions when a tag or sentinel does not match."""
    pass


def expect_literal(actual: Union[bytes, int], expected: Union[bytes, int], field_name: str) -> None:
    """
    Fail unless a decoded field equals its required literal value.

    Args:
        actual: Value read from disk
        expected: Required value
        field_name: Field name used in the error message
    """
    if actual != expected:
        if isinstance(expected, int):
            raise LayoutMismatch(f"{field_name} is {actual:#x}, expected {expected:#x}")
        raise LayoutMismatch(f"{field_name} is {actual!r}, expected {expected!r}")


class ArchiveReader:
    """
    Sequential, seekable reader over an archive.

    Every read either returns exactly the requested bytes or raises
    ShortReadError; nothing is read speculatively.
    """

    def __init__(self, stream: BinaryIO, name: str = "<memory>"):
        """
        Initialize the reader.

        Args:
            stream: Seekable binary stream positioned where reading starts
            name: Name of the source, used in error messages
        """
        self.stream = stream
        self.name = name

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ArchiveReader":
        """Open a file for reading."""
        return cls(open(path, "rb"), name=str(path))

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "<memory>") -> "ArchiveReader":
        """Read from an in-memory buffer."""
        return cls(io.BytesIO(data), name=name)

    def close(self) -> None:
        self.stream.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # ========== Positioning ==========

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move to an absolute (SEEK_SET) or relative (SEEK_CUR) position."""
        return self.stream.seek(offset, whence)

    def tell(self) -> int:
        return self.stream.tell()

    # ========== Raw reads ==========

    def read(self, count: int) -> bytes:
        """
        Read exactly count bytes.

        Raises:
            ShortReadError: If the source ends first
        """
        start = self.stream.tell()
        data = self.stream.read(count)
        if len(data) != count:
            raise ShortReadError(
                f"Failed to read {count} bytes at offset {start} of {self.name} "
                f"(only {len(data)} available)"
            )
        return data

    def parse_exact(self, count: int, layout: Layout, what: str = "record") -> T:
        """
        Read exactly count bytes and decode them with a layout function.

        Args:
            count: Number of bytes the layout covers
            layout: Function decoding the bytes (usually built on struct)
            what: Description of the data, used in error messages

        Returns:
            Whatever the layout function returns
        """
        start = self.stream.tell()
        data = self.read(count)
        try:
            return layout(data)
        except (struct.error, LayoutMismatch) as e:
            raise StructuralParseError(
                f"Failed to parse {what} at offset {start} of {self.name}: {e}"
            ) from e

    # ========== Strings ==========

    def _read_prefixed(self, prefix_width: int) -> bytes:
        prefix_format = _PREFIX_FORMATS.get(prefix_width)
        if prefix_format is None:
            raise ValueError(f"Unsupported length prefix width: {prefix_width}")
        (length,) = struct.unpack(prefix_format, self.read(prefix_width))
        return self.read(length)

    def read_bstring(self, prefix_width: int = 1) -> str:
        """Read a string prefixed with its length. NOT zero terminated."""
        return latin1_to_string(self._read_prefixed(prefix_width))

    def read_bzstring(self) -> str:
        """Read a string prefixed with a byte length and terminated by exactly one NUL."""
        start = self.stream.tell()
        buffer = self._read_prefixed(1)
        if not buffer or buffer.find(b"\x00") != len(buffer) - 1:
            raise StructuralParseError(
                f"bzstring at offset {start} of {self.name} does not end in exactly one NUL terminator"
            )
        return latin1_to_string(buffer[:-1])

    def read_zstring(self) -> str:
        """Read bytes until a NUL is encountered."""
        start = self.stream.tell()
        buffer = bytearray()
        while True:
            byte = self.stream.read(1)
            if not byte:
                raise ShortReadError(
                    f"Unterminated zstring at offset {start} of {self.name}"
                )
            if byte == b"\x00":
                return latin1_to_string(bytes(buffer))
            buffer += byte

    def read_bstring_block(self, total_length: int) -> List[str]:
        """
        Read a block of NUL-terminated strings.

        Order is preserved; callers pair the strings with records by
        position. A final terminator does not produce an empty string.

        Args:
            total_length: Size of the whole block in bytes

        Returns:
            List of decoded strings
        """
        block = latin1_to_string(self.read(total_length))
        names = block.split("\x00")
        if names and names[-1] == "":
            names.pop()
        return names
