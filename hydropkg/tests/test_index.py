"""Tests for mirror index scraping"""

import socket
import urllib.error

import pytest

from hydropkg.core.errors import IndexFormatError, NetworkError
from hydropkg.core.index import LinkParser, fetch_index, filter_index, parse_index

from conftest import MIRROR, listing

SUFFIX = '.pkg.tar.zst'


class TestParseIndex:
    """Tests for listing parsing."""

    def test_keeps_only_archives(self):
        html = listing(['foo-1.0', 'bar-2.0']).decode()
        assert parse_index(html, SUFFIX) == {'foo-1.0', 'bar-2.0'}

    def test_strips_suffix_and_unquotes(self):
        html = '<a href="gtk%2B-3.0.pkg.tar.zst">gtk+</a>'
        assert parse_index(html, SUFFIX) == {'gtk+-3.0'}

    def test_duplicates_collapse(self):
        html = '<a href="a.pkg.tar.zst">x</a><a href="a.pkg.tar.zst">y</a>'
        assert parse_index(html, SUFFIX) == {'a'}

    def test_bare_suffix_ignored(self):
        assert parse_index('<a href=".pkg.tar.zst">x</a>', SUFFIX) == set()

    def test_anchor_without_href(self):
        parser = LinkParser()
        parser.feed('<a name="top">top</a><A HREF="x.pkg.tar.zst">x</A>')
        assert parser.links == ['x.pkg.tar.zst']

    def test_empty_listing(self):
        assert parse_index('<html></html>', SUFFIX) == set()


class TestFilterIndex:

    def test_substring_match(self):
        index = {'foo-1.0', 'foobar-2.0', 'baz-1.0'}
        assert filter_index(index, 'foo') == {'foo-1.0', 'foobar-2.0'}

    def test_case_sensitive(self):
        assert filter_index({'Foo-1.0'}, 'foo') == set()

    def test_no_match(self):
        assert filter_index({'a', 'b'}, 'zzz') == set()


class TestFetchIndex:

    def test_fetch(self, mirror, config):
        mirror.add(MIRROR, listing(['foo-1.0', 'foobar-2.0', 'baz-1.0']))
        assert fetch_index(config) == {'foo-1.0', 'foobar-2.0', 'baz-1.0'}
        assert mirror.requests == [MIRROR]

    def test_http_error_is_network_error(self, mirror, config):
        with pytest.raises(NetworkError):
            fetch_index(config)

    def test_transport_error(self, mirror, config):
        mirror.add(MIRROR, urllib.error.URLError(ConnectionRefusedError(111, 'refused')))
        with pytest.raises(NetworkError):
            fetch_index(config)

    def test_timeout(self, mirror, config):
        mirror.add(MIRROR, socket.timeout('timed out'))
        with pytest.raises(NetworkError):
            fetch_index(config)

    def test_binary_body(self, mirror, config):
        mirror.add(MIRROR, b'\xff\xfe\x00garbage\x80')
        with pytest.raises(IndexFormatError):
            fetch_index(config)
