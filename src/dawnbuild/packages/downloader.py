"""Package downloader with progress tracking and checksum verification.

This module handles downloading prebuilt libraries from URLs, unpacking
them, and verifying integrity with checksums.

Supported formats: .gz (single file), .tar.gz, .tar.bz2, .tar.xz, .zip
"""

import gzip
import hashlib
import logging
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Raised when download fails."""

    pass


class ChecksumError(Exception):
    """Raised when checksum verification fails."""

    pass


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    pass


class PackageDownloader:
    """Downloads and extracts packages with progress tracking."""

    def __init__(self, chunk_size: int = 8192, timeout: float = 30):
        """Initialize downloader.

        Args:
            chunk_size: Size of chunks for downloading and hashing
            timeout: Connect/read timeout in seconds
        """
        self.chunk_size = chunk_size
        self.timeout = timeout

    def download(
        self,
        url: str,
        dest_path: Path,
        checksum: Optional[str] = None,
        show_progress: bool = True,
    ) -> Path:
        """Download a file from a URL.

        Args:
            url: URL to download from
            dest_path: Destination file path
            checksum: Optional SHA256 checksum for verification
            show_progress: Whether to show progress bar

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If download fails
            ChecksumError: If checksum verification fails
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        # Use temporary file during download
        temp_file = dest_path.with_suffix(dest_path.suffix + ".tmp")

        logger.info(f"Downloading {url}")
        try:
            response = requests.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))

            progress_bar = None
            if show_progress and total_size > 0:
                filename = Path(urlparse(url).path).name
                progress_bar = tqdm(
                    total=total_size,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {filename}",
                )

            sha256 = hashlib.sha256() if checksum else None

            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
                        if progress_bar:
                            progress_bar.update(len(chunk))
                        if sha256:
                            sha256.update(chunk)

            if progress_bar:
                progress_bar.close()

            if checksum and sha256:
                actual_checksum = sha256.hexdigest()
                if actual_checksum.lower() != checksum.lower():
                    temp_file.unlink()
                    raise ChecksumError(
                        f"Checksum mismatch for {url}\n"
                        + f"Expected: {checksum}\n"
                        + f"Got: {actual_checksum}"
                    )

            if dest_path.exists():
                dest_path.unlink()
            temp_file.rename(dest_path)

            return dest_path

        except requests.RequestException as e:
            if temp_file.exists():
                temp_file.unlink()
            raise DownloadError(f"Failed to download {url}: {e}") from e

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def extract_archive(self, archive_path: Path, dest_dir: Path) -> Path:
        """Extract an archive file.

        A plain ``.gz`` file is decompressed to a single file named after the
        archive without its ``.gz`` suffix.

        Args:
            archive_path: Path to the archive file
            dest_dir: Destination directory for extraction

        Returns:
            Path to the extracted directory, or to the file for plain .gz

        Raises:
            ExtractionError: If extraction fails
        """
        archive_path = Path(archive_path)
        dest_dir = Path(dest_dir)

        if not archive_path.exists():
            raise ExtractionError(f"Archive not found: {archive_path}")

        dest_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Extracting {archive_path.name}...")

        name = archive_path.name
        try:
            if name.endswith(".zip"):
                self._extract_zip(archive_path, dest_dir)
                return dest_dir
            if name.endswith((".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")):
                self._extract_tar(archive_path, dest_dir)
                return dest_dir
            if name.endswith(".gz"):
                return self._decompress_gzip(archive_path, dest_dir / name[: -len(".gz")])
        except (OSError, EOFError, tarfile.TarError, zipfile.BadZipFile) as e:
            raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

        raise ExtractionError(f"Unsupported archive format: {archive_path.name}")

    def _extract_tar(self, archive_path: Path, dest_dir: Path) -> None:
        with tarfile.open(archive_path, "r:*") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(dest_dir, filter="data")
            else:
                tar.extractall(dest_dir)

    def _extract_zip(self, archive_path: Path, dest_dir: Path) -> None:
        with zipfile.ZipFile(archive_path, "r") as zip_file:
            zip_file.extractall(dest_dir)

    def _decompress_gzip(self, archive_path: Path, dest_file: Path) -> Path:
        temp_file = dest_file.with_suffix(dest_file.suffix + ".tmp")
        with gzip.open(archive_path, "rb") as src, open(temp_file, "wb") as dst:
            shutil.copyfileobj(src, dst, self.chunk_size)
        temp_file.replace(dest_file)
        return dest_file

    def download_and_extract(
        self,
        url: str,
        cache_dir: Path,
        extract_dir: Path,
        checksum: Optional[str] = None,
        show_progress: bool = True,
    ) -> Path:
        """Download and extract a package in one operation.

        Args:
            url: URL to download from
            cache_dir: Directory to cache the downloaded archive
            extract_dir: Directory to extract to
            checksum: Optional SHA256 checksum
            show_progress: Whether to show progress

        Returns:
            Path returned by ``extract_archive``
        """
        filename = Path(urlparse(url).path).name
        archive_path = cache_dir / filename

        if not archive_path.exists():
            self.download(url, archive_path, checksum, show_progress)
        else:
            logger.info(f"Using cached {filename}")
            if checksum:
                self.verify_checksum(archive_path, checksum)

        return self.extract_archive(archive_path, extract_dir)

    def verify_checksum(self, file_path: Path, expected: str) -> bool:
        """Verify SHA256 checksum of a file.

        Args:
            file_path: Path to file to verify
            expected: Expected SHA256 checksum (hex string)

        Returns:
            True if checksum matches

        Raises:
            ChecksumError: If checksum doesn't match
        """
        sha256 = hashlib.sha256()

        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                sha256.update(chunk)

        actual = sha256.hexdigest()
        if actual.lower() != expected.lower():
            raise ChecksumError(
                f"Checksum mismatch for {file_path}\n"
                + f"Expected: {expected}\n"
                + f"Got: {actual}"
            )

        return True
