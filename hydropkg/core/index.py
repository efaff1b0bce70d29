"""
Mirror index scraping

The mirror root is a plain HTML directory listing. Every anchor whose
href ends in the archive suffix is an installable package.
"""

import logging
import urllib.error
from html.parser import HTMLParser
from typing import Iterable, List, Set
from urllib.parse import unquote

from .config import Config
from .download import http_get
from .errors import IndexFormatError, NetworkError

logger = logging.getLogger(__name__)


class LinkParser(HTMLParser):
    """Collects the href of every <a> element."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.links: List[str] = []

    def handle_starttag(self, tag, attrs):
        if tag != 'a':
            return
        for key, value in attrs:
            if key == 'href' and value:
                self.links.append(value)


def parse_index(html: str, suffix: str) -> Set[str]:
    """Extract package names from a directory listing.

    Args:
        html: Listing markup
        suffix: Archive suffix, e.g. '.pkg.tar.zst'

    Returns:
        Set of names with the suffix stripped

    Raises:
        IndexFormatError: If the markup cannot be parsed
    """
    parser = LinkParser()
    try:
        parser.feed(html)
        parser.close()
    except (AssertionError, ValueError) as e:
        raise IndexFormatError(f"Cannot parse mirror listing: {e}") from e

    names = set()
    for link in parser.links:
        link = unquote(link)
        if link.endswith(suffix) and len(link) > len(suffix):
            names.add(link[:-len(suffix)])
    return names


def fetch_index(config: Config) -> Set[str]:
    """Fetch and parse the mirror root listing.

    Returns:
        PackageIndex: set of available package names

    Raises:
        NetworkError: Transport failure or non-success status
        IndexFormatError: Body is not decodable markup
    """
    url = config.mirror_base
    logger.debug(f"Fetching index {url}")

    try:
        body = http_get(url, timeout=config.timeout)
    except urllib.error.HTTPError as e:
        raise NetworkError(url, f"HTTP {e.code}: {e.reason}") from e

    try:
        html = body.decode('utf-8')
    except UnicodeDecodeError as e:
        raise IndexFormatError(f"Mirror listing is not text: {e}") from e

    names = parse_index(html, config.archive_suffix)
    logger.debug(f"Index: {len(names)} packages")
    return names


def filter_index(index: Iterable[str], query: str) -> Set[str]:
    """Entries containing query as a case-sensitive substring."""
    return {name for name in index if query in name}
