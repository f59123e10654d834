"""Package management for dawnbuild.

This module handles the external inputs of a build: pinned git checkouts
and prebuilt library downloads, plus the workspace cache layout.
"""

from .cache import Cache
from .downloader import ChecksumError, DownloadError, ExtractionError, PackageDownloader
from .git_sync import (
    DependencyPin,
    DependencySynchronizer,
    GitClient,
    GitCommandError,
    GitProbe,
    SyncAction,
    SyncError,
    SyncResult,
    ToolUnavailableError,
)
from .prebuilt import PrebuiltError, PrebuiltLibrary

__all__ = [
    "Cache",
    "PackageDownloader",
    "DownloadError",
    "ChecksumError",
    "ExtractionError",
    "DependencyPin",
    "DependencySynchronizer",
    "GitClient",
    "GitCommandError",
    "GitProbe",
    "SyncAction",
    "SyncError",
    "SyncResult",
    "ToolUnavailableError",
    "PrebuiltError",
    "PrebuiltLibrary",
]
