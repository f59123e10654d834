"""Workspace and cache layout for dawnbuild.

This module provides the directory structure shared by the dependency
synchronizer, the scanner and the build steps.

Layout:
    <root>/
    ├── libs/
    │   ├── dawn/                     # pinned git checkout
    │   └── DirectXShaderCompiler/    # pinned git checkout (D3D12 only)
    └── .dawnbuild/
        ├── cache/
        │   └── prebuilt/
        │       └── {url_hash}/       # SHA256 hash of the release URL
        │           └── {version}/    # Pinned revision
        ├── build/
        │   └── {triple}/             # Objects and libdawn.a per target
        └── lib/                      # Installed libraries

The cache root can be moved with the DAWNBUILD_CACHE_DIR environment
variable; the libs/ checkouts always live under the workspace root since
source paths in the component tables are relative to it. The MinGW shims
ship inside the dawnbuild package, not the workspace.
"""

import hashlib
import os
from pathlib import Path
from typing import Optional


class Cache:
    """Manages the dawnbuild workspace directory structure."""

    def __init__(self, root_dir: Optional[Path] = None):
        """Initialize cache manager.

        Args:
            root_dir: Workspace root. If None, uses current directory.
        """
        if root_dir is None:
            root_dir = Path.cwd()

        self.root_dir = Path(root_dir).resolve()

        cache_env = os.environ.get("DAWNBUILD_CACHE_DIR")
        if cache_env:
            self.cache_root = Path(cache_env).resolve()
        else:
            self.cache_root = self.root_dir / ".dawnbuild" / "cache"

        self.build_root = self.root_dir / ".dawnbuild" / "build"

    @staticmethod
    def hash_url(url: str) -> str:
        """Generate a SHA256 hash of a URL for cache directory naming.

        Args:
            url: The base URL to hash

        Returns:
            First 16 characters of SHA256 hash (sufficient for uniqueness)
        """
        return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]

    @property
    def prebuilt_dir(self) -> Path:
        """Directory for downloaded prebuilt libraries."""
        return self.cache_root / "prebuilt"

    @property
    def install_dir(self) -> Path:
        """Directory receiving installed libraries."""
        return self.root_dir / ".dawnbuild" / "lib"

    def get_build_dir(self, triple: str) -> Path:
        """Get build directory for a target.

        Args:
            triple: Target triple (e.g., 'x86_64-linux-gnu')

        Returns:
            Path to the target's build directory
        """
        return self.build_root / triple

    def get_object_dir(self, triple: str, component: str) -> Path:
        """Get directory for one component's object files."""
        return self.get_build_dir(triple) / "obj" / component

    def get_prebuilt_path(self, url: str, version: str) -> Path:
        """Get cache directory for a prebuilt library download.

        Args:
            url: Release URL the library comes from
            version: Pinned revision

        Returns:
            Path like .dawnbuild/cache/prebuilt/{url_hash}/{version}
        """
        return self.prebuilt_dir / self.hash_url(url) / version

    def ensure_build_directories(self, triple: str) -> None:
        """Create the build directory for a target."""
        self.get_build_dir(triple).mkdir(parents=True, exist_ok=True)
