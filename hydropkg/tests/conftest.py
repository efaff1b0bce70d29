"""Shared fixtures: in-memory archives and a fake mirror."""

import io
import tarfile
import urllib.error
import urllib.request

import pytest
import zstandard as zstd

from hydropkg.core.config import Config

MIRROR = "http://mirror.test/repo/"


def build_tar(entries) -> bytes:
    """Build an uncompressed tar.

    entries: list of (name, content) for files, or (name, TarInfo-kwargs dict)
    where kwargs may hold 'type', 'linkname', 'mode' and 'data'.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode='w', format=tarfile.GNU_FORMAT) as tf:
        for name, spec in entries:
            if isinstance(spec, (bytes, str)):
                spec = {'data': spec}
            info = tarfile.TarInfo(name)
            info.type = spec.get('type', tarfile.REGTYPE)
            info.mode = spec.get('mode', 0o644)
            info.linkname = spec.get('linkname', '')
            data = spec.get('data', b'')
            if isinstance(data, str):
                data = data.encode()
            if info.type == tarfile.REGTYPE:
                info.size = len(data)
                tf.addfile(info, io.BytesIO(data))
            else:
                tf.addfile(info)
    return buf.getvalue()


def build_archive(entries, compression='zstd') -> bytes:
    raw = build_tar(entries)
    if compression == 'zstd':
        return zstd.ZstdCompressor().compress(raw)
    if compression == 'gzip':
        import gzip
        return gzip.compress(raw)
    if compression == 'xz':
        import lzma
        return lzma.compress(raw)
    if compression == 'bzip2':
        import bz2
        return bz2.compress(raw)
    return raw


@pytest.fixture
def make_archive():
    return build_archive


@pytest.fixture
def config(tmp_path):
    """Config with a temporary install root and manifest."""
    return Config(
        mirror=MIRROR,
        install_root=tmp_path / "root",
        config_dir=tmp_path / "conf",
        max_workers=4,
    )


def listing(names, suffix='.pkg.tar.zst') -> bytes:
    """Apache-style directory listing."""
    rows = ['<a href="../">../</a>', '<a href="?C=N;O=D">Name</a>']
    rows += [f'<a href="{n}{suffix}">{n}{suffix}</a>' for n in names]
    rows += [f'<a href="{n}{suffix}.sig">{n}{suffix}.sig</a>' for n in names]
    return ("<html><body><pre>\n" + "\n".join(rows) + "\n</pre></body></html>").encode()


class FakeResponse:
    def __init__(self, body: bytes):
        self._buf = io.BytesIO(body)
        self.headers = {'Content-Length': str(len(body))}

    def read(self, n=-1):
        return self._buf.read(n)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeMirror:
    """Serves url -> bytes; anything else is a 404.

    A value that is an exception instance is raised instead.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, url, body):
        self.routes[url] = body

    def urlopen(self, req, timeout=None):
        url = req.full_url if hasattr(req, 'full_url') else req
        self.requests.append(url)
        if url not in self.routes:
            raise urllib.error.HTTPError(url, 404, 'Not Found', {}, None)
        body = self.routes[url]
        if isinstance(body, BaseException):
            raise body
        return FakeResponse(body)


@pytest.fixture
def mirror(monkeypatch):
    fake = FakeMirror()
    monkeypatch.setattr(urllib.request, 'urlopen', fake.urlopen)
    return fake
