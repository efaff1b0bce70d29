"""
Installed package manifest

Plain text file, one package name per line, no header. The file is the
only source of truth: every call reads it again, nothing is cached.

Each install also leaves a file list next to the manifest
(<dir>/files/<name>.list) so that remove can delete exactly what was
written.
"""

import logging
import os
import tempfile
import urllib.parse
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from .config import FILES_DIR
from .errors import ManifestUnavailable, NotInstalled

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, lines: Iterable[str]):
    """Write lines to a temp file, fsync it and move it over path."""
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, 'w') as f:
            for line in lines:
                f.write(f"{line}\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class Manifest:
    """Record of installed package names."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.files_dir = self.path.parent / FILES_DIR

    def ensure_dir(self):
        """Create the manifest directory on first use.

        Raises:
            ManifestUnavailable: Directory cannot be created or written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ManifestUnavailable(self.path.parent, str(e)) from e
        if not os.access(self.path.parent, os.W_OK | os.X_OK):
            raise ManifestUnavailable(self.path.parent, "directory is not writable")

    def _read_lines(self) -> List[str]:
        try:
            with open(self.path) as f:
                return [line.rstrip('\r\n') for line in f if line.strip()]
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ManifestUnavailable(self.path, str(e)) from e

    def list_installed(self) -> Set[str]:
        """Installed package names; duplicate lines collapse."""
        return set(self._read_lines())

    def is_installed(self, name: str) -> bool:
        return name in self.list_installed()

    def record_installed(self, name: str):
        """Append a name to the manifest.

        No membership check: installing twice leaves a duplicate line,
        which list_installed() collapses.
        """
        self.ensure_dir()
        with open(self.path, 'a') as f:
            f.write(f"{name}\n")
            f.flush()
            os.fsync(f.fileno())
        logger.debug(f"Manifest: recorded {name}")

    def record_removed(self, name: str):
        """Rewrite the manifest without name.

        Raises:
            NotInstalled: name is not in the manifest
        """
        names = self.list_installed()
        if name not in names:
            raise NotInstalled(name)

        self.ensure_dir()
        names.discard(name)
        _atomic_write(self.path, sorted(names))
        logger.debug(f"Manifest: removed {name}")

    # =========================================================================
    # File lists
    # =========================================================================

    def _files_path(self, name: str) -> Path:
        # Percent-encoded: no separators, and distinct names never collide
        safe = urllib.parse.quote(name, safe='')
        return self.files_dir / f"{safe}.list"

    def record_files(self, name: str, paths: Iterable[str]):
        """Store the paths (relative to the install root) written for name."""
        self.ensure_dir()
        try:
            self.files_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise ManifestUnavailable(self.files_dir, str(e)) from e
        _atomic_write(self._files_path(name), paths)

    def get_files(self, name: str) -> Optional[List[str]]:
        """Recorded paths for name, or None if no list was kept."""
        path = self._files_path(name)
        if not path.exists():
            return None
        with open(path) as f:
            return [line.rstrip('\n') for line in f if line.strip()]

    def forget_files(self, name: str):
        self._files_path(name).unlink(missing_ok=True)
