"""
Compression utilities for hydropkg

Auto-detects and handles multiple compression formats:
- zstd (mirror default, .pkg.tar.zst)
- gzip
- xz/lzma
- bzip2
"""

import bz2
import gzip
import io
import lzma
import zlib
from typing import BinaryIO

import zstandard as zstd

from .errors import CorruptArchiveError

# Magic bytes for format detection
MAGIC_ZSTD = b'\x28\xb5\x2f\xfd'
MAGIC_GZIP = b'\x1f\x8b'
MAGIC_XZ = b'\xfd7zXZ\x00'
MAGIC_BZ2 = b'BZh'

# Exceptions a decompressor may raise on bad framing while being read
DECOMPRESSION_ERRORS = (zstd.ZstdError, lzma.LZMAError, zlib.error, EOFError, OSError)


def detect_format(data: bytes) -> str:
    """Detect compression format from magic bytes.

    Args:
        data: First 8+ bytes of the archive

    Returns:
        Format name: 'zstd', 'gzip', 'xz', 'bzip2', or 'plain'
    """
    if data[:4] == MAGIC_ZSTD:
        return 'zstd'
    elif data[:2] == MAGIC_GZIP:
        return 'gzip'
    elif data[:6] == MAGIC_XZ:
        return 'xz'
    elif data[:3] == MAGIC_BZ2:
        return 'bzip2'
    else:
        return 'plain'


def open_stream(data: bytes) -> BinaryIO:
    """Wrap archive bytes in a streaming decompressor.

    Args:
        data: Raw (possibly compressed) archive bytes

    Returns:
        File-like object yielding decompressed bytes

    Raises:
        CorruptArchiveError: If the compressed framing is invalid
    """
    if not data:
        raise CorruptArchiveError("Archive is empty")

    fmt = detect_format(data)
    raw = io.BytesIO(data)

    try:
        if fmt == 'zstd':
            dctx = zstd.ZstdDecompressor()
            return dctx.stream_reader(raw, read_across_frames=True)

        elif fmt == 'gzip':
            return gzip.GzipFile(fileobj=raw, mode='rb')

        elif fmt == 'xz':
            return lzma.LZMAFile(raw, mode='rb')

        elif fmt == 'bzip2':
            return bz2.BZ2File(raw, mode='rb')

        else:
            return raw
    except DECOMPRESSION_ERRORS as e:
        raise CorruptArchiveError(f"Invalid {fmt} stream: {e}") from e
