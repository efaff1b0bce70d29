"""
Core operations layer for hydropkg.

Composes resolution, download, extraction and the manifest into the
user-facing install / remove / search operations. Transport and UI
agnostic: the CLI renders the returned results.

Failure policy:
- Every per-package failure is returned as a PackageResult, never raised.
- A failed extraction never touches the manifest.
- In a batch, earlier successes are never rolled back.
- ManifestUnavailable is the only error raised to the caller.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Set

from .config import Config
from .download import ArchiveHandle, fetch_archive
from .errors import (
    ExtractionError, HydropkgError, ManifestUnavailable, NetworkError,
    NotInstalled, PackageNotFound, UnsafePathError,
)
from .extract import check_inside, extract, normalize_member_path, remove_paths
from .index import fetch_index, filter_index
from .manifest import Manifest
from .resolver import Resolution, Resolver

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """Outcome of one package operation."""
    name: str
    success: bool
    error: Optional[HydropkgError] = None
    suggestions: Set[str] = None
    paths: List[str] = None

    def __post_init__(self):
        if self.suggestions is None:
            self.suggestions = set()
        if self.paths is None:
            self.paths = []

    @property
    def not_found(self) -> bool:
        return isinstance(self.error, PackageNotFound)


@dataclass
class BatchResult:
    """Per-name results of a multi-package operation, in input order."""
    results: List[PackageResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def succeeded(self) -> List[PackageResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[PackageResult]:
        return [r for r in self.results if not r.success]


class PackageOperations:
    """Install, remove and search packages against one mirror and root.

    Paths and mirror come from the Config passed in; nothing is read
    from the environment here.
    """

    def __init__(self, config: Config, manifest: Manifest = None,
                 archive_fetcher: Callable[[str, Config], ArchiveHandle] = fetch_archive,
                 index_fetcher: Callable[[Config], Set[str]] = fetch_index):
        """Initialize operations.

        Args:
            config: Mirror, install root and manifest settings
            manifest: Manifest store (default: config.manifest_path)
            archive_fetcher: Downloads one archive by exact name
            index_fetcher: Fetches the mirror package index
        """
        self.config = config
        self.manifest = manifest or Manifest(config.manifest_path)
        self.resolver = Resolver(config, fetch=archive_fetcher, index=index_fetcher)
        self._index_fetcher = index_fetcher
        # Serializes writes to the install root and the manifest
        self._lock = threading.Lock()
        self.retry_delay = 1.0

    # =========================================================================
    # Install
    # =========================================================================

    def _resolve(self, name: str) -> Resolution:
        """Resolve with retry on transient network errors."""
        attempts = max(self.config.retries, 0) + 1
        for attempt in range(attempts):
            try:
                return self.resolver.resolve(name)
            except NetworkError as e:
                if attempt < attempts - 1:
                    delay = self.retry_delay * (attempt + 1)
                    logger.warning(f"{name}: {e}, retrying in {delay:.0f}s")
                    time.sleep(delay)
                    continue
                raise

    def install(self, name: str) -> PackageResult:
        """Fetch, extract and record a single package.

        Returns:
            PackageResult; on a miss, error is PackageNotFound and
            suggestions holds the index entries containing name

        Raises:
            ManifestUnavailable: Manifest cannot be written
        """
        if self.manifest.is_installed(name):
            logger.debug(f"{name} already installed, reinstalling")

        try:
            resolution = self._resolve(name)
        except NetworkError as e:
            logger.debug(f"{name}: {e}")
            return PackageResult(name=name, success=False, error=e)

        if not resolution.found:
            return PackageResult(
                name=name,
                success=False,
                error=PackageNotFound(name, status=resolution.status),
                suggestions=resolution.suggestions,
            )

        archive = resolution.archive
        try:
            with self._lock:
                result = extract(archive.data, self.config.install_root,
                                 staging=self.config.staging)
                # The manifest line is written last: it marks the install durable
                self.manifest.record_files(name, result.paths)
                self.manifest.record_installed(name)
        except ManifestUnavailable:
            raise
        except HydropkgError as e:
            logger.debug(f"{name}: extraction failed: {e}")
            return PackageResult(name=name, success=False, error=e)
        except OSError as e:
            error = ExtractionError(f"Cannot record '{name}': {e}")
            return PackageResult(name=name, success=False, error=error)

        logger.info(f"Installed {name} ({result.count} entries)")
        return PackageResult(name=name, success=True, paths=result.paths)

    def install_many(self, names: List[str]) -> BatchResult:
        """Install several packages independently.

        Downloads run on a bounded worker pool; extraction and manifest
        writes are serialized. Every name is attempted.
        """
        self.manifest.ensure_dir()
        if not names:
            return BatchResult()

        workers = max(1, min(self.config.max_workers, len(names)))
        if workers == 1:
            return BatchResult(results=[self.install(name) for name in names])

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.install, name) for name in names]
            return BatchResult(results=[f.result() for f in futures])

    # =========================================================================
    # Remove
    # =========================================================================

    def _delete_artifacts(self, name: str) -> int:
        """Delete what was installed for name; missing paths are fine."""
        root = Path(self.config.install_root)
        files = self.manifest.get_files(name)
        if files is not None:
            return remove_paths(root, files)

        # No file list: only the conventionally named artifact
        rel = normalize_member_path(name)
        if rel is None:
            return 0
        artifact = check_inside(root, rel, name)
        if artifact.is_symlink() or artifact.is_file():
            artifact.unlink()
            return 1
        if artifact.exists():
            logger.warning(f"{artifact} is not a file, left in place")
        return 0

    def remove(self, name: str) -> PackageResult:
        """Remove a single package.

        Strict on the manifest (NotInstalled if absent, no filesystem
        action), lenient on the filesystem (missing files are not errors).

        Raises:
            ManifestUnavailable: Manifest cannot be read or written
        """
        if name not in self.manifest.list_installed():
            return PackageResult(name=name, success=False, error=NotInstalled(name))

        try:
            with self._lock:
                removed = self._delete_artifacts(name)
                self.manifest.record_removed(name)
                self.manifest.forget_files(name)
        except ManifestUnavailable:
            raise
        except (UnsafePathError, NotInstalled) as e:
            return PackageResult(name=name, success=False, error=e)
        except OSError as e:
            error = ExtractionError(f"Cannot remove files of '{name}': {e}")
            return PackageResult(name=name, success=False, error=error)

        logger.info(f"Removed {name} ({removed} paths deleted)")
        return PackageResult(name=name, success=True)

    def remove_many(self, names: List[str]) -> BatchResult:
        """Remove several packages; every name is attempted."""
        self.manifest.ensure_dir()
        return BatchResult(results=[self.remove(name) for name in names])

    # =========================================================================
    # Queries
    # =========================================================================

    def search(self, query: str) -> Set[str]:
        """Index entries containing query (case-sensitive substring).

        Raises:
            NetworkError: Mirror unreachable
            IndexFormatError: Listing cannot be parsed
        """
        return filter_index(self._index_fetcher(self.config), query)

    def list_installed(self) -> Set[str]:
        return self.manifest.list_installed()
