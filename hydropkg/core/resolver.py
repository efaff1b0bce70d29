"""
Name to archive resolution

The exact name is probed first; the full index is only fetched when the
probe misses, to build a list of suggestions.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Set

from .config import Config
from .download import ArchiveHandle, fetch_archive
from .errors import IndexFormatError, NetworkError, PackageNotFound
from .index import fetch_index, filter_index

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """Outcome of resolving one package name.

    Either archive is set, or archive is None and suggestions holds the
    index entries containing the requested name (possibly empty).
    """
    name: str
    archive: Optional[ArchiveHandle] = None
    suggestions: Set[str] = field(default_factory=set)
    status: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.archive is not None


class Resolver:
    """Maps package names to fetched archives."""

    def __init__(self, config: Config,
                 fetch: Callable[[str, Config], ArchiveHandle] = fetch_archive,
                 index: Callable[[Config], Set[str]] = fetch_index):
        self.config = config
        self._fetch = fetch
        self._index = index

    def resolve(self, name: str) -> Resolution:
        """Resolve a name to an archive, or to suggestions on miss.

        Raises:
            NetworkError: Transport failure during the direct probe
        """
        try:
            archive = self._fetch(name, self.config)
        except PackageNotFound as e:
            logger.debug(f"'{name}' not on mirror, searching for suggestions")
            return Resolution(name=name, suggestions=self.suggest(name),
                              status=e.status)

        return Resolution(name=name, archive=archive)

    def suggest(self, name: str) -> Set[str]:
        """Index entries containing name; empty if the index is unusable."""
        try:
            index = self._index(self.config)
        except (IndexFormatError, NetworkError) as e:
            logger.warning(f"Cannot fetch suggestions for '{name}': {e}")
            return set()
        return filter_index(index, name)
