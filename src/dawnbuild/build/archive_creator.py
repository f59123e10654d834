"""Archive Creator.

This module handles creating the static library archive (libdawn.a) from
compiled object files using the archiver tool (ar).

Design:
    - Wraps ar command execution
    - Replaces any previous archive so stale members never survive a rebuild
    - Passes members through a response file (Dawn has thousands of objects)
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Raised when archive creation operations fail."""

    pass


class ArchiveCreator:
    """Creates static library archives from object files."""

    def __init__(self, ar: str = "ar", timeout: float = 300):
        """Initialize archive creator.

        Args:
            ar: Archiver name or path
            timeout: Archiver timeout in seconds
        """
        self.ar = ar
        self.timeout = timeout

    def create_archive(self, archive_path: Path, object_files: List[Path]) -> Path:
        """Create static library archive from object files.

        Args:
            archive_path: Path for output .a file
            object_files: List of object file paths to archive

        Returns:
            Path to generated archive file

        Raises:
            ArchiveError: If archive creation fails
        """
        if not object_files:
            raise ArchiveError("No object files provided for archive")

        if shutil.which(self.ar) is None and not Path(self.ar).exists():
            raise ArchiveError(
                f"Archiver not found: {self.ar}. Ensure toolchain is installed or set AR."
            )

        archive_path.parent.mkdir(parents=True, exist_ok=True)
        if archive_path.exists():
            archive_path.unlink()

        members_file = archive_path.with_suffix(".members.rsp")
        with open(members_file, "w", encoding="utf-8") as f:
            f.write("\n".join(str(obj).replace("\\", "/") for obj in object_files))

        # 'rcs' flags: r=insert/replace, c=create, s=index (ranlib)
        cmd = [self.ar, "rcs", str(archive_path), f"@{members_file}"]

        logger.info(
            f"Creating {archive_path.name} archive from {len(object_files)} object files..."
        )

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ArchiveError(f"Archive creation timeout for {archive_path.name}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to create archive {archive_path.name}: {e}") from e

        if result.returncode != 0:
            error_msg = f"Archive creation failed for {archive_path.name}\n"
            error_msg += f"stderr: {result.stderr}\n"
            error_msg += f"stdout: {result.stdout}"
            raise ArchiveError(error_msg)

        if not archive_path.exists():
            raise ArchiveError(f"Archive was not created: {archive_path}")

        size = archive_path.stat().st_size
        logger.info(f"Created {archive_path.name}: {size:,} bytes ({size / 1024 / 1024:.2f} MB)")
        return archive_path
