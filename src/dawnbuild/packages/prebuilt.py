"""Prebuilt Dawn libraries.

When ``from_source`` is off, dawnbuild skips the git checkouts and the
compile step and instead downloads a release build of ``libdawn.a`` for the
target. Release files are named::

    {release_url}/release-{version}/libdawn_{arch}-{os}-{abi}_release-fast.a.gz

where ``version`` is the short form of the pinned Dawn revision, so a
prebuilt library always matches the sources the from-source path would use.
"""

import logging
from pathlib import Path
from typing import Optional

from ..config.platform_target import PlatformDescriptor
from .cache import Cache
from .downloader import PackageDownloader

logger = logging.getLogger(__name__)

DEFAULT_RELEASE_URL = "https://github.com/hexops/mach-gpu-dawn/releases/download"

# Targets release builds are published for
SUPPORTED_TARGETS = (
    "x86_64-linux-gnu",
    "aarch64-linux-gnu",
    "x86_64-macos-none",
    "aarch64-macos-none",
    "x86_64-windows-gnu",
)


class PrebuiltError(Exception):
    """Raised when no prebuilt library exists for a target."""

    pass


def release_triple(descriptor: PlatformDescriptor) -> str:
    """Triple spelling used in release file names (``none`` when no ABI)."""
    return f"{descriptor.arch}-{descriptor.os_tag}-{descriptor.abi or 'none'}"


class PrebuiltLibrary:
    """Locates and downloads prebuilt libdawn archives."""

    LIB_NAME = "libdawn"
    MODE = "release-fast"

    def __init__(
        self,
        cache: Cache,
        revision: str,
        downloader: Optional[PackageDownloader] = None,
        release_url: str = DEFAULT_RELEASE_URL,
    ):
        """
        Args:
            cache: Workspace cache layout
            revision: Pinned Dawn revision the release was built from
            downloader: Downloader to use (created on demand)
            release_url: Base URL of the release downloads
        """
        self.cache = cache
        self.revision = revision
        self.downloader = downloader
        self.release_url = release_url.rstrip("/")

    @property
    def version(self) -> str:
        return self.revision[:7]

    def library_url(self, descriptor: PlatformDescriptor) -> str:
        """
        URL of the compressed library for a target.

        Raises:
            PrebuiltError: If no release build exists for the target
        """
        triple = release_triple(descriptor)
        if triple not in SUPPORTED_TARGETS:
            raise PrebuiltError(
                f"No prebuilt Dawn library for {triple}. "
                + f"Supported targets: {', '.join(SUPPORTED_TARGETS)}. "
                + "Build from source instead (from_source = true)."
            )
        filename = f"{self.LIB_NAME}_{triple}_{self.MODE}.a.gz"
        return f"{self.release_url}/release-{self.version}/{filename}"

    def ensure_library(
        self,
        descriptor: PlatformDescriptor,
        checksum: Optional[str] = None,
        show_progress: bool = True,
    ) -> Path:
        """
        Download and unpack the library for a target unless already cached.

        Args:
            descriptor: Target platform
            checksum: Optional SHA256 of the compressed download
            show_progress: Whether to show a progress bar

        Returns:
            Path to the unpacked ``libdawn.a``

        Raises:
            PrebuiltError: If the target has no release build
            DownloadError: If the download fails
            ChecksumError: If the checksum does not match
        """
        url = self.library_url(descriptor)
        cache_dir = self.cache.get_prebuilt_path(url, self.version)
        lib_path = cache_dir / "lib" / f"{self.LIB_NAME}.a"
        if lib_path.exists():
            logger.info(f"Using cached prebuilt library {lib_path}")
            return lib_path

        if self.downloader is None:
            self.downloader = PackageDownloader()

        unpacked = self.downloader.download_and_extract(
            url, cache_dir, cache_dir / "unpack", checksum=checksum, show_progress=show_progress
        )
        lib_path.parent.mkdir(parents=True, exist_ok=True)
        Path(unpacked).replace(lib_path)
        return lib_path
