"""
Source file discovery for build components.

This module handles:
- Scanning declared directories (one level deep) for source files
- Filtering by extension group, exact-name and substring exclusions
- Splitting a component's sources into C++-family and C groups
- Canonicalizing explicitly listed source files

Scanning is deliberately flat: a directory's subdirectories are never
visited, so every directory a component compiles from is declared in its
table entry.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Set, Tuple, Union

CPP_EXTENSIONS: Tuple[str, ...] = (".cpp", ".cc")
C_EXTENSIONS: Tuple[str, ...] = (".c",)
OBJCPP_EXTENSIONS: Tuple[str, ...] = (".mm",)
OBJC_EXTENSIONS: Tuple[str, ...] = (".m",)

PathLike = Union[str, Path]


class ScanError(Exception):
    """Raised when a declared source directory or file is missing or unreadable."""

    pass


@dataclass(frozen=True)
class SourceSetSpec:
    """Rules selecting the sources of one scan."""

    directories: Tuple[str, ...]
    extensions: Tuple[str, ...]
    excluding: Tuple[str, ...] = ()           # exact file names
    excluding_contains: Tuple[str, ...] = ()  # substrings of file names


@dataclass
class LangSources:
    """Sources of one component split by language family."""

    cpp_sources: List[Path]  # .cpp/.cc (or .mm when objc)
    c_sources: List[Path]    # .c (or .m when objc)
    objc: bool = False

    def all_sources(self) -> List[Path]:
        """Get all source files combined."""
        return self.cpp_sources + self.c_sources


class SourceScanner:
    """
    Scans declared directories for source files.

    Directories are given relative to the workspace root (absolute paths are
    used as-is). Results are canonical absolute paths, in declaration order
    of the directories and sorted by name within a directory, with each path
    appearing at most once.

    Example usage:
        scanner = SourceScanner(Path("/work"))
        sources = scanner.scan(SourceSetSpec(
            directories=("libs/dawn/src/dawn/common/",),
            extensions=CPP_EXTENSIONS,
            excluding_contains=("test", "mock"),
        ))
    """

    def __init__(self, root_dir: Path):
        """
        Initialize source scanner.

        Args:
            root_dir: Workspace root that relative directories are joined to
        """
        self.root_dir = Path(root_dir)

    def scan(self, spec: SourceSetSpec) -> List[Path]:
        """
        Scan every directory of a spec.

        Args:
            spec: Directories, accepted extensions and exclusions

        Returns:
            Ordered, duplicate-free list of canonical source paths

        Raises:
            ScanError: If a declared directory is missing or unreadable
        """
        sources: List[Path] = []
        seen: Set[Path] = set()
        for directory in spec.directories:
            for path in self._scan_directory(directory, spec):
                if path not in seen:
                    seen.add(path)
                    sources.append(path)
        return sources

    def scan_lang(
        self,
        directories: Sequence[str],
        excluding: Sequence[str] = (),
        excluding_contains: Sequence[str] = (),
        objc: bool = False,
    ) -> LangSources:
        """
        Scan directories twice: once for the C++-family group, once for C.

        In Objective-C mode the groups are ``.mm`` and ``.m`` instead.

        Args:
            directories: Directories to scan
            excluding: Exact file names to skip
            excluding_contains: Substrings that exclude a file name
            objc: Scan Objective-C(++) sources instead of C/C++

        Returns:
            LangSources with both groups

        Raises:
            ScanError: If a declared directory is missing or unreadable
        """
        cpp_extensions = OBJCPP_EXTENSIONS if objc else CPP_EXTENSIONS
        c_extensions = OBJC_EXTENSIONS if objc else C_EXTENSIONS
        common = dict(
            directories=tuple(directories),
            excluding=tuple(excluding),
            excluding_contains=tuple(excluding_contains),
        )
        return LangSources(
            cpp_sources=self.scan(SourceSetSpec(extensions=cpp_extensions, **common)),
            c_sources=self.scan(SourceSetSpec(extensions=c_extensions, **common)),
            objc=objc,
        )

    def resolve_files(self, rel_paths: Iterable[PathLike]) -> List[Path]:
        """
        Canonicalize an explicit list of source files.

        Args:
            rel_paths: Workspace-relative (or absolute) file paths

        Returns:
            Canonical absolute paths in the given order, duplicates dropped

        Raises:
            ScanError: If a listed file does not exist
        """
        files: List[Path] = []
        for rel_path in rel_paths:
            path = self._absolute(rel_path)
            if not path.is_file():
                raise ScanError(f"Source file not found: {path}.{self._missing_hint(path)}")
            resolved = path.resolve()
            if resolved not in files:
                files.append(resolved)
        return files

    def _scan_directory(self, directory: PathLike, spec: SourceSetSpec) -> List[Path]:
        abs_dir = self._absolute(directory)
        try:
            with os.scandir(abs_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except FileNotFoundError as e:
            raise ScanError(
                f"Source directory not found: {abs_dir}.{self._missing_hint(abs_dir)}"
            ) from e
        except (NotADirectoryError, PermissionError) as e:
            raise ScanError(f"Cannot read source directory {abs_dir}: {e}") from e
        except OSError as e:
            raise ScanError(f"Failed to scan {abs_dir}: {e}") from e

        sources = []
        for entry in entries:
            if not entry.is_file(follow_symlinks=False):
                continue
            if not self._accepts(entry.name, spec):
                continue
            sources.append(Path(entry.path).resolve())
        return sources

    @staticmethod
    def _accepts(name: str, spec: SourceSetSpec) -> bool:
        if Path(name).suffix not in spec.extensions:
            return False
        if name in spec.excluding:
            return False
        for contains in spec.excluding_contains:
            if contains in name:
                return False
        return True

    def _missing_hint(self, path: Path) -> str:
        # Only workspace paths come from dependency checkouts
        if path.is_relative_to(self.root_dir):
            return " Is the dependency checkout complete?"
        return ""

    def _absolute(self, path: PathLike) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.root_dir / candidate
