"""
Core modules for debarchive

Copyright (c) 2025 Deepgram
Author: Michael Steele <michael.steele@deepgram.com>

Licensed under the MIT License. See LICENSE file for details.
"""


class Colors:
    """ANSI color codes for terminal output"""
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    MAGENTA = '\033[95m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    RESET = '\033[0m'

    @staticmethod
    def error(msg):
        return f"{Colors.RED}{msg}{Colors.RESET}"

    @staticmethod
    def success(msg):
        return f"{Colors.GREEN}{msg}{Colors.RESET}"

    @staticmethod
    def warning(msg):
        return f"{Colors.YELLOW}{msg}{Colors.RESET}"

    @staticmethod
    def info(msg):
        return f"{Colors.BLUE}{msg}{Colors.RESET}"

    @staticmethod
    def bold(msg):
        return f"{Colors.BOLD}{msg}{Colors.RESET}"


from .errors import (  # noqa: E402
    ArchiveError,
    DependencyParseError,
    DurationError,
    PackageDecodeError,
    SigningError,
)
from .config import ArchiveConfig, load_config  # noqa: E402
from .blobstore import (  # noqa: E402
    BlobObject,
    BlobStore,
    LocalBlobStore,
    S3BlobStore,
    create_blob_store,
)
from .packages import Package, PackagesReader, load_packages, load_packages_file  # noqa: E402
from .release import Release  # noqa: E402
from .signing import SigningKey  # noqa: E402
from .archive import Archive, ArchiveState, Component, IndexWriter, Suite, create_archive  # noqa: E402
from .pool import Pool  # noqa: E402

__all__ = [
    'Colors',
    'ArchiveError',
    'DependencyParseError',
    'DurationError',
    'PackageDecodeError',
    'SigningError',
    'ArchiveConfig',
    'load_config',
    'BlobObject',
    'BlobStore',
    'LocalBlobStore',
    'S3BlobStore',
    'create_blob_store',
    'Package',
    'PackagesReader',
    'load_packages',
    'load_packages_file',
    'Release',
    'SigningKey',
    'Archive',
    'ArchiveState',
    'Component',
    'IndexWriter',
    'Suite',
    'create_archive',
    'Pool',
]
