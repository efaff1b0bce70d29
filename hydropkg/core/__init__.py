"""Core modules for hydropkg"""

from .compression import open_stream
from .config import Config, load_config
from .manifest import Manifest
from .operations import PackageOperations

__all__ = ['open_stream', 'Config', 'load_config', 'Manifest', 'PackageOperations']
