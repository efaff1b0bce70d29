"""
Archive download

Fetches package archives from the mirror. The whole body is buffered in
memory; nothing is written to disk here.
"""

import http.client
import logging
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

from .config import Config, USER_AGENT
from .errors import NetworkError, PackageNotFound

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


@dataclass
class ArchiveHandle:
    """A fetched archive, owned by a single fetch->extract call."""
    name: str
    data: bytes
    url: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


def http_get(url: str, timeout: float = 30) -> bytes:
    """GET a URL and return the full body.

    Args:
        url: URL to fetch
        timeout: Connection timeout in seconds

    Returns:
        Response body

    Raises:
        urllib.error.HTTPError: On a non-success status (left to the caller)
        NetworkError: On transport failure or truncated body
    """
    req = urllib.request.Request(url)
    req.add_header('User-Agent', USER_AGENT)

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            total_size = int(response.headers.get('Content-Length') or 0)
            chunks = []
            downloaded = 0

            while True:
                chunk = response.read(CHUNK_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
                downloaded += len(chunk)

            if total_size and downloaded < total_size:
                raise NetworkError(url, f"truncated body ({downloaded}/{total_size} bytes)")

            return b''.join(chunks)

    except urllib.error.HTTPError:
        raise
    except urllib.error.URLError as e:
        raise NetworkError(url, str(e.reason)) from e
    except (socket.timeout, http.client.HTTPException, OSError) as e:
        raise NetworkError(url, str(e) or e.__class__.__name__) from e


def fetch_archive(name: str, config: Config) -> ArchiveHandle:
    """Download the archive for an exact package name.

    The response status doubles as the existence probe: a non-success
    status means the mirror has no archive under this name.

    Args:
        name: Package name, matched literally
        config: Mirror settings

    Returns:
        ArchiveHandle holding the archive bytes

    Raises:
        PackageNotFound: Mirror answered with a non-success status
        NetworkError: Transport failure
    """
    url = config.archive_url(name)
    logger.debug(f"Fetching {url}")

    try:
        data = http_get(url, timeout=config.timeout)
    except urllib.error.HTTPError as e:
        logger.debug(f"{url}: HTTP {e.code}")
        raise PackageNotFound(name, status=e.code) from e

    handle = ArchiveHandle(name=name, data=data, url=url)
    logger.info(f"Fetched {name} ({format_size(handle.size)})")
    return handle


def format_size(size: Optional[int]) -> str:
    """Format a byte count for display."""
    if not size:
        return "0 B"
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    else:
        return f"{size / 1024 / 1024:.1f} MB"
