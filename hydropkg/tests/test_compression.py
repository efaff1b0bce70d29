"""Tests for compression detection and decoding"""

import pytest

from hydropkg.core.compression import DECOMPRESSION_ERRORS, MAGIC_ZSTD, detect_format, open_stream
from hydropkg.core.errors import CorruptArchiveError

from conftest import build_archive, build_tar


def _decode(data):
    stream = open_stream(data)
    try:
        return stream.read()
    finally:
        stream.close()


class TestDetectFormat:

    def test_zstd(self):
        assert detect_format(MAGIC_ZSTD + b'rest') == 'zstd'

    def test_gzip(self):
        assert detect_format(b'\x1f\x8b\x08\x00') == 'gzip'

    def test_xz(self):
        assert detect_format(b'\xfd7zXZ\x00\x00') == 'xz'

    def test_bzip2(self):
        assert detect_format(b'BZh91AY') == 'bzip2'

    def test_plain(self):
        assert detect_format(b'usr/bin/\x00\x00') == 'plain'


@pytest.mark.parametrize('compression', ['zstd', 'gzip', 'xz', 'bzip2', 'plain'])
def test_decompress_all_formats(compression):
    entries = [('hello', b'world')]
    assert _decode(build_archive(entries, compression)) == build_tar(entries)


def test_corrupt_zstd_frame():
    # Reserved bit set in the frame header descriptor
    corrupt = MAGIC_ZSTD + b'\x08' + b'\x00' * 20
    with pytest.raises(DECOMPRESSION_ERRORS):
        _decode(corrupt)


def test_corrupt_gzip():
    with pytest.raises(DECOMPRESSION_ERRORS):
        _decode(b'\x1f\x8b' + b'\x00' * 30)


def test_empty():
    with pytest.raises(CorruptArchiveError):
        open_stream(b'')
