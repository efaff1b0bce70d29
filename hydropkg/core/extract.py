"""
Archive extraction

Streams an archive through its decompressor and tar reader and writes
the entries under an install root. Every entry path, and every link
target, is checked to stay inside the root before anything is written.

Two modes:
    staged (default)  entries go to <root>/.hydropkg-XXXX/ first and are
                      moved into place only once the whole archive has
                      been read; a failure leaves the root untouched.
    direct            entries are written straight into the root; a
                      failure leaves already written entries in place.
"""

import logging
import os
import posixpath
import shutil
import tarfile
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Set, Union

from .compression import DECOMPRESSION_ERRORS, open_stream
from .errors import CorruptArchiveError, ExtractionError, UnsafePathError

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".hydropkg-"
CHUNK_SIZE = 65536

# Anything raised while pulling bytes out of the archive
READ_ERRORS = (tarfile.TarError,) + DECOMPRESSION_ERRORS


@dataclass
class ExtractResult:
    """Result of an extraction.

    paths lists every file, link and newly created directory, relative
    to the root, in archive order.
    """
    root: Path
    paths: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.paths)


def normalize_member_path(name: str) -> Optional[str]:
    """Canonicalize an archive entry path relative to the root.

    Returns:
        Normalized POSIX relative path, or None for the root itself

    Raises:
        UnsafePathError: Absolute path or '..' escaping the root
    """
    if not name:
        raise UnsafePathError(name, "empty path")
    if name.startswith('/') or name.startswith('\\'):
        raise UnsafePathError(name, "absolute path")
    if '\x00' in name:
        raise UnsafePathError(name, "NUL byte in path")

    norm = posixpath.normpath(name)
    if norm == '.':
        return None
    if norm == '..' or norm.startswith('../'):
        raise UnsafePathError(name, "path traversal")
    return norm


def _is_inside(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def check_inside(root: Path, rel: str, name: str = None) -> Path:
    """Resolve root/rel and make sure it does not leave root.

    Catches escapes through symlinks already present on disk.
    """
    target = root / rel
    resolved = target.parent.resolve() / target.name
    if not _is_inside(resolved, root.resolve()):
        raise UnsafePathError(name or rel)
    return target


def check_link_target(rel: str, linkname: str, name: str, hardlink: bool = False) -> str:
    """Validate a link target; returns it normalized relative to the root."""
    if not linkname:
        raise UnsafePathError(name, "empty link target")
    if linkname.startswith('/'):
        raise UnsafePathError(name, f"absolute link target '{linkname}'")

    if hardlink:
        # Hard link targets are archive member paths
        joined = linkname
    else:
        joined = posixpath.join(posixpath.dirname(rel), linkname)

    norm = posixpath.normpath(joined)
    if norm == '..' or norm.startswith('../'):
        raise UnsafePathError(name, f"link target '{linkname}' escapes install root")
    return norm


def _set_mode(path: Path, mode: int):
    """Apply permission bits where the platform supports them."""
    if os.name != 'posix':
        return
    os.chmod(path, mode & 0o777)


def _remove_existing(target: Path):
    """Make room for a new entry; never follow a symlink."""
    if target.is_symlink() or target.is_file():
        target.unlink()


def _copy_content(src: BinaryIO, target: Path, name: str):
    with open(target, 'wb') as dst:
        while True:
            try:
                chunk = src.read(CHUNK_SIZE)
            except READ_ERRORS as e:
                raise CorruptArchiveError(f"Cannot read '{name}': {e}") from e
            if not chunk:
                break
            dst.write(chunk)


class _Writer:
    """Writes validated tar members under a destination directory.

    root is the final install root when dest is a staging directory;
    link targets must stay inside both.
    """

    def __init__(self, dest: Path, result: ExtractResult, root: Path = None):
        self.dest = dest
        self.result = result
        self.bases = [dest] if root is None or root == dest else [dest, root]
        self.created_dirs: Dict[str, int] = {}
        self.links: Set[str] = set()
        self._seen: Set[str] = set()

    def _record(self, rel: str):
        # A later entry for the same path replaces the earlier one
        if rel in self._seen:
            self.result.paths.remove(rel)
        self._seen.add(rel)
        self.result.paths.append(rel)

    def _check_not_below_link(self, rel: str, name: str):
        """Entries may not be written through a symlink from the same archive."""
        parts = rel.split('/')
        for i in range(1, len(parts)):
            if '/'.join(parts[:i]) in self.links:
                raise UnsafePathError(name, "entry below a symbolic link")

    def _check_link_resolves(self, rel: str, linkname: str, name: str):
        """Follow a symlink target on disk, through links written so far."""
        for base in self.bases:
            target = (base / rel).parent / linkname
            try:
                resolved = target.resolve()
            except (OSError, RuntimeError) as e:
                raise UnsafePathError(name, f"link target '{linkname}' cannot be resolved: {e}") from e
            if not _is_inside(resolved, base.resolve()):
                raise UnsafePathError(name, f"link target '{linkname}' escapes install root")

    def add(self, tf: tarfile.TarFile, member: tarfile.TarInfo):
        rel = normalize_member_path(member.name)
        if rel is None:
            return

        if not (member.isdir() or member.isfile() or member.issym() or member.islnk()):
            logger.warning(f"Skipping special entry '{member.name}'")
            self.result.skipped.append(rel)
            return

        self._check_not_below_link(rel, member.name)
        target = check_inside(self.dest, rel, member.name)
        self._make_parents(rel)

        if member.isdir():
            if not target.is_dir():
                _remove_existing(target)
                target.mkdir()
                self.created_dirs[rel] = member.mode
                self.links.discard(rel)
                self._record(rel)
            return

        if member.issym():
            check_link_target(rel, member.linkname, member.name)
            self._check_link_resolves(rel, member.linkname, member.name)
            _remove_existing(target)
            os.symlink(member.linkname, target)
            self.links.add(rel)
            self._record(rel)
            return

        self.links.discard(rel)
        if member.islnk():
            source_rel = check_link_target(rel, member.linkname, member.name, hardlink=True)
            source = check_inside(self.dest, source_rel, member.name)
            if not source.is_file():
                raise CorruptArchiveError(
                    f"Hard link '{member.name}' points to missing entry '{member.linkname}'")
            _remove_existing(target)
            try:
                os.link(source, target)
            except OSError:
                shutil.copy2(source, target)

        else:
            _remove_existing(target)
            src = tf.extractfile(member)
            _copy_content(src, target, member.name)
            _set_mode(target, member.mode)

        self._record(rel)

    def _make_parents(self, rel: str):
        """Create missing parent directories, recording the ones we made."""
        parts = rel.split('/')[:-1]
        for i in range(1, len(parts) + 1):
            sub = '/'.join(parts[:i])
            path = self.dest / sub
            if path.is_dir():
                continue
            check_inside(self.dest, sub)
            path.mkdir(exist_ok=True)
            self.created_dirs[sub] = 0o755
            self._record(sub)

    def finish(self):
        """Apply directory modes last so read-only dirs can still be filled."""
        for rel in sorted(self.created_dirs, key=len, reverse=True):
            _set_mode(self.dest / rel, self.created_dirs[rel])


def _unpack(data: bytes, dest: Path, result: ExtractResult, root: Path = None) -> _Writer:
    """Read every member of the archive and write it under dest."""
    stream = open_stream(data)
    writer = _Writer(dest, result, root)

    try:
        try:
            tf = tarfile.open(fileobj=stream, mode='r|')
        except READ_ERRORS as e:
            raise CorruptArchiveError(f"Not a valid archive: {e}") from e

        with tf:
            while True:
                try:
                    member = tf.next()
                except READ_ERRORS as e:
                    raise CorruptArchiveError(f"Malformed entry header: {e}") from e
                if member is None:
                    break
                writer.add(tf, member)
    finally:
        stream.close()

    return writer


def _commit(staging: Path, root: Path, result: ExtractResult, modes: Dict[str, int]):
    """Move staged entries into the install root, in archive order.

    Directories that already exist in the root are not recorded as
    belonging to the package.
    """
    committed = []
    created = []
    for rel in result.paths:
        src = staging / rel
        dst = check_inside(root, rel)

        if src.is_dir() and not src.is_symlink():
            if not dst.is_dir():
                _remove_existing(dst)
                dst.mkdir(parents=True, exist_ok=True)
                created.append(rel)
                committed.append(rel)
            continue

        dst.parent.mkdir(parents=True, exist_ok=True)
        if dst.is_dir() and not dst.is_symlink():
            raise ExtractionError(f"Cannot replace directory {dst} with a file")
        os.replace(src, dst)
        committed.append(rel)

    for rel in sorted(created, key=len, reverse=True):
        _set_mode(root / rel, modes.get(rel, 0o755))

    result.paths = committed


def extract(data: Union[bytes, bytearray], destination_root: Union[str, Path],
            staging: bool = True) -> ExtractResult:
    """Extract an archive under destination_root.

    Args:
        data: Raw archive bytes (compression auto-detected)
        destination_root: Install root; created if absent
        staging: Extract to a staging directory and move into place only
                 on full success

    Returns:
        ExtractResult listing what was written

    Raises:
        CorruptArchiveError: Bad compression framing or entry header
        UnsafePathError: An entry or link target escapes the root
        ExtractionError: The filesystem refused a write
    """
    root = Path(destination_root)
    result = ExtractResult(root=root)

    try:
        root.mkdir(parents=True, exist_ok=True)

        if not staging:
            writer = _unpack(bytes(data), root, result)
            writer.finish()
            return result

        stage_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=root))
        try:
            writer = _unpack(bytes(data), stage_dir, result, root)
            _commit(stage_dir, root, result, writer.created_dirs)
        finally:
            shutil.rmtree(stage_dir, ignore_errors=True)

    except OSError as e:
        raise ExtractionError(f"Cannot write to {root}: {e}") from e

    logger.debug(f"Extracted {result.count} entries into {root}")
    return result


def remove_paths(root: Union[str, Path], paths: List[str]) -> int:
    """Delete previously extracted paths; missing ones are ignored.

    Files and links go first, then directories deepest first, and only
    when they are empty.

    Returns:
        Number of paths removed
    """
    root = Path(root)
    removed = 0
    dirs = []

    for rel in paths:
        try:
            rel = normalize_member_path(rel)
        except UnsafePathError:
            logger.warning(f"Ignoring unsafe recorded path '{rel}'")
            continue
        if rel is None:
            continue
        try:
            target = check_inside(root, rel)
        except UnsafePathError:
            logger.warning(f"Recorded path '{rel}' now resolves outside {root}, skipped")
            continue
        if target.is_symlink() or target.is_file():
            target.unlink()
            removed += 1
        elif target.is_dir():
            dirs.append(target)

    for target in sorted(dirs, key=lambda p: len(p.parts), reverse=True):
        try:
            target.rmdir()
            removed += 1
        except OSError:
            logger.debug(f"Keeping non-empty directory {target}")

    return removed
