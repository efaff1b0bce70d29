"""
Central configuration for hydropkg paths and mirror settings.

Defaults can be overridden by an optional config file and then by
explicit keyword overrides (used by the CLI flags).

Structure:
    <config_dir>/installed.txt          - Manifest (one package per line)
    <config_dir>/files/<name>.list      - Files written by each install
    <config_dir>/hydropkg.conf          - Optional settings

hydropkg.conf format (optional, one setting per line):
    mirror=https://example.org/repo/
    install_root=/opt/hydro/bin
    # Comments start with #
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_MIRROR = "https://mirror.rackspace.com/archlinux/core/os/x86_64/"
ARCHIVE_SUFFIX = ".pkg.tar.zst"
DEFAULT_INSTALL_ROOT = Path("/bin")
DEFAULT_CONFIG_DIR = Path.home() / ".hydropkg"

CONFIG_FILE = "hydropkg.conf"
MANIFEST_FILE = "installed.txt"
FILES_DIR = "files"

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_WORKERS = 4

USER_AGENT = "hydropkg/1.0"

_TRUE_VALUES = ('1', 'yes', 'true', 'on')


@dataclass
class Config:
    """Resolved settings for one invocation."""
    mirror: str = DEFAULT_MIRROR
    archive_suffix: str = ARCHIVE_SUFFIX
    install_root: Path = DEFAULT_INSTALL_ROOT
    config_dir: Path = DEFAULT_CONFIG_DIR
    timeout: float = DEFAULT_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    retries: int = 0
    staging: bool = True
    manifest_path: Optional[Path] = field(default=None)

    def __post_init__(self):
        self.install_root = Path(self.install_root)
        self.config_dir = Path(self.config_dir)
        if self.manifest_path is None:
            self.manifest_path = self.config_dir / MANIFEST_FILE
        else:
            self.manifest_path = Path(self.manifest_path)

    @property
    def mirror_base(self) -> str:
        """Mirror URL with exactly one trailing slash."""
        return self.mirror.rstrip('/') + '/'

    def archive_url(self, name: str) -> str:
        """Full URL of the archive for a package name."""
        return f"{self.mirror_base}{name}{self.archive_suffix}"


def read_config_file(path: Path) -> dict:
    """Read a key=value config file.

    Returns:
        Dict of raw string values (empty if the file does not exist)
    """
    config = {}
    if not path.exists():
        return config

    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, value = line.split('=', 1)
                    config[key.strip()] = value.strip()
                else:
                    logger.warning(f"{path}: ignoring malformed line '{line}'")
    except (OSError, IOError) as e:
        logger.warning(f"Cannot read {path}: {e}")
        return {}

    return config


def _coerce(key: str, value: str):
    """Convert a raw config file value to the Config field type."""
    if key in ('install_root', 'config_dir', 'manifest_path'):
        return Path(value).expanduser()
    if key == 'timeout':
        return float(value)
    if key in ('max_workers', 'retries'):
        return int(value)
    if key == 'staging':
        return value.lower() in _TRUE_VALUES
    return value


_KNOWN_KEYS = ('mirror', 'archive_suffix', 'install_root', 'manifest_path',
               'timeout', 'max_workers', 'retries', 'staging')


def load_config(config_dir: Union[str, Path, None] = None, **overrides) -> Config:
    """Build the Config for this invocation.

    Args:
        config_dir: Directory holding the manifest and hydropkg.conf
                    (default: ~/.hydropkg)
        **overrides: Explicit values; None values are ignored

    Returns:
        Config with defaults < config file < overrides
    """
    base = Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR
    values = {'config_dir': base}

    for key, raw in read_config_file(base / CONFIG_FILE).items():
        if key not in _KNOWN_KEYS:
            logger.warning(f"Unknown config key '{key}' ignored")
            continue
        try:
            values[key] = _coerce(key, raw)
        except ValueError:
            logger.warning(f"Invalid value for '{key}': {raw}")

    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    config = Config(**values)
    logger.debug(f"Config: mirror={config.mirror} root={config.install_root} "
                 f"manifest={config.manifest_path}")
    return config
