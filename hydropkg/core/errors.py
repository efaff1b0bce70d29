"""
Error taxonomy for hydropkg.

Every pipeline stage raises one of these; PackageOperations is the
boundary that turns them into per-package results.
"""

from typing import Optional


class HydropkgError(Exception):
    """Base class for all hydropkg errors."""


class NetworkError(HydropkgError):
    """Transport failure (refused, DNS, timeout, TLS, truncated body)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Network error for {url}: {reason}")


class PackageNotFound(HydropkgError):
    """The mirror answered the archive probe with a non-success status."""

    def __init__(self, name: str, status: Optional[int] = None):
        self.name = name
        self.status = status
        detail = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"Package '{name}' not found on mirror{detail}")


class IndexFormatError(HydropkgError):
    """The mirror listing could not be parsed as markup."""


class CorruptArchiveError(HydropkgError):
    """Invalid compression framing or malformed archive entry header."""


class UnsafePathError(HydropkgError):
    """An archive entry would be written outside the install root."""

    def __init__(self, path: str, reason: str = "escapes install root"):
        self.path = path
        self.reason = reason
        super().__init__(f"Unsafe archive entry '{path}': {reason}")


class ExtractionError(HydropkgError):
    """The install root could not be written (permissions, disk full...)."""


class NotInstalled(HydropkgError):
    """Remove target is absent from the manifest."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package '{name}' is not installed")


class ManifestUnavailable(HydropkgError):
    """The manifest directory cannot be created or accessed.

    This is the only error that aborts a whole invocation.
    """

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot access manifest at {path}: {reason}")
