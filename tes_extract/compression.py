"""
Decompression codecs for archived file payloads

Compressed payloads start with a little-endian u32 giving the uncompressed
size. The size is only a hint for the output buffer; the stream itself
decides how many bytes come out.
"""

import logging
import struct
import zlib
from enum import Enum

import lz4.frame

from tes_extract import constants
from tes_extract.exceptions import DecompressionError


logger = logging.getLogger("tes_extract.compression")


class Compression(Enum):
    """Codec used for a file's payload."""
    NONE = "none"
    ZLIB = "zlib"
    LZ4 = "lz4"

    def decompress_buffer(self, buffer: bytes) -> bytes:
        """
        Decompress a payload prefixed with its uncompressed size.

        Args:
            buffer: 4-byte size hint followed by the compressed stream

        Returns:
            Decompressed bytes (the stream unchanged for NONE)
        """
        if len(buffer) < constants.SIZE_HINT_LEN:
            raise DecompressionError(
                f"Compressed {self.value} payload is {len(buffer)} bytes, "
                f"too short for the {constants.SIZE_HINT_LEN}-byte size field"
            )

        (size_hint,) = struct.unpack_from("<I", buffer)
        data = bytes(buffer[constants.SIZE_HINT_LEN:])

        if self is Compression.ZLIB:
            output = decompress_zlib(data, size_hint)
        elif self is Compression.LZ4:
            output = decompress_lz4(data)
        else:
            return data

        if len(output) != size_hint:
            logger.warning(f"Size mismatch: expected {size_hint:,}, got {len(output):,} bytes")
        return output


def decompress_zlib(data: bytes, size_hint: int = 0) -> bytes:
    """
    Decode a zlib stream.

    size_hint only sizes the initial output buffer. It comes from the archive,
    so it is capped by what the stream could possibly expand to.
    """
    bufsize = max(1, min(size_hint, len(data) * constants.ZLIB_MAX_RATIO, constants.MAX_PREALLOCATION))
    try:
        return zlib.decompress(data, constants.ZLIB_WINDOW_SIZE, bufsize)
    except zlib.error as e:
        raise DecompressionError(f"Unable to decompress ZLIB data: {e}") from e


def decompress_lz4(data: bytes) -> bytes:
    """Decode an LZ4 frame."""
    try:
        return lz4.frame.decompress(data)
    except RuntimeError as e:
        raise DecompressionError(f"Unable to decompress LZ4 data: {e}") from e
