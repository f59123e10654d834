"""Compilation Executor.

This module handles running the external C/C++ compiler on the sources of
a build plan.

Design:
    - One subprocess per translation unit, exit status decides success
    - Flags are passed through a response file per compile group (include
      lists exceed Windows command line limits)
    - Object names include a hash of the source path, since several Dawn
      directories contain files with the same name
    - C and Objective-C go to the C compiler, C++ and Objective-C++ to the
      C++ compiler
"""

import hashlib
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.platform_target import APPLE_OS_TAGS, PlatformDescriptor
from .flag_builder import Dialect
from .graph import CompileGroup

logger = logging.getLogger(__name__)


class CompilationError(Exception):
    """Raised when compilation operations fail."""

    pass


@dataclass(frozen=True)
class CompileTask:
    """One translation unit ready to compile."""

    source: Path
    output: Path
    dialect: Dialect
    response_file: Path


def clang_target(descriptor: PlatformDescriptor) -> str:
    """``-target`` spelling of a descriptor (Apple targets need the vendor)."""
    if descriptor.os_tag in APPLE_OS_TAGS:
        return f"{descriptor.arch}-apple-{descriptor.os_tag}"
    return descriptor.triple


def _quote_rsp(flag: str) -> str:
    flag = flag.replace("\\", "/")
    if any(ch.isspace() for ch in flag) or '"' in flag:
        return '"' + flag.replace('"', '\\"') + '"'
    return flag


class CompilationExecutor:
    """Compiles sources with clang-compatible compilers.

    Example usage:
        executor = CompilationExecutor(build_dir, target="x86_64-linux-gnu")
        tasks = executor.prepare_group(group, build_dir / "obj" / "tint", "tint-0")
        objects = [executor.compile_task(task) for task in tasks]
    """

    # ReleaseFast, stripped
    RELEASE_FLAGS = ("-O3", "-DNDEBUG", "-g0")

    def __init__(
        self,
        build_dir: Path,
        cc: str = "clang",
        cxx: str = "clang++",
        target: Optional[str] = None,
        timeout: float = 600,
    ):
        """Initialize compilation executor.

        Args:
            build_dir: Build directory for response files
            cc: C compiler name or path
            cxx: C++ compiler name or path
            target: Target triple passed as ``-target`` (None for the host)
            timeout: Per-file compile timeout in seconds
        """
        self.build_dir = Path(build_dir)
        self.cc = cc
        self.cxx = cxx
        self.target = target
        self.timeout = timeout

    def compiler_for(self, dialect: Dialect) -> str:
        return self.cxx if dialect.is_cpp_family else self.cc

    def check_toolchain(self, dialects: Sequence[Dialect]) -> None:
        """Verify the compilers needed for ``dialects`` can be found.

        Raises:
            CompilationError: If a compiler is missing
        """
        for compiler in sorted({self.compiler_for(d) for d in dialects}):
            if Path(compiler).is_absolute():
                found = Path(compiler).exists()
            else:
                found = shutil.which(compiler) is not None
            if not found:
                raise CompilationError(
                    f"Compiler not found: {compiler}. Ensure toolchain is installed "
                    + "or set CC/CXX."
                )

    def object_path(self, source_path: Path, object_dir: Path) -> Path:
        """Object file path for a source (unique per source path)."""
        digest = hashlib.sha1(str(source_path).encode("utf-8")).hexdigest()[:8]
        return object_dir / f"{source_path.stem}-{digest}.o"

    def compile_source(
        self,
        source_path: Path,
        output_path: Path,
        dialect: Dialect,
        response_file: Path,
    ) -> Path:
        """Compile a single source file.

        Args:
            source_path: Path to source file
            output_path: Path for output object file
            dialect: Source language
            response_file: Response file holding the group's flags

        Returns:
            Path to generated object file

        Raises:
            CompilationError: If compilation fails
        """
        if not source_path.exists():
            raise CompilationError(f"Source file not found: {source_path}")

        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = [self.compiler_for(dialect)]
        if self.target:
            cmd.extend(["-target", self.target])
        cmd.extend(["-x", dialect.value])
        cmd.extend(self.RELEASE_FLAGS)
        cmd.append(f"@{response_file}")
        cmd.extend(["-c", str(source_path)])
        cmd.extend(["-o", str(output_path)])

        logger.debug(f"Compiling {source_path.name}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CompilationError(f"Compilation timeout for {source_path.name}") from e
        except OSError as e:
            raise CompilationError(f"Failed to compile {source_path.name}: {e}") from e

        if result.returncode != 0:
            error_msg = f"Compilation failed for {source_path}\n"
            error_msg += f"stderr: {result.stderr}\n"
            error_msg += f"stdout: {result.stdout}"
            raise CompilationError(error_msg)

        if result.stderr:
            logger.debug(result.stderr.rstrip())

        return output_path

    def prepare_group(
        self,
        group: CompileGroup,
        object_dir: Path,
        name: str,
    ) -> List[CompileTask]:
        """Write a group's response file and list one task per source.

        Tasks of different groups can be compiled in any interleaving.

        Args:
            group: Sources, dialect and flags
            object_dir: Output directory for object files
            name: Response file name (unique within the build)

        Returns:
            Compile tasks in source order
        """
        response_file = self.write_response_file(name, group.flags)
        return [
            CompileTask(
                source=source,
                output=self.object_path(source, object_dir),
                dialect=group.dialect,
                response_file=response_file,
            )
            for source in group.sources
        ]

    def compile_task(self, task: CompileTask) -> Path:
        return self.compile_source(task.source, task.output, task.dialect, task.response_file)

    def write_response_file(self, name: str, flags: Sequence[str]) -> Path:
        """Write flags to a response file, one per line.

        Args:
            name: File name without extension
            flags: Compiler flags

        Returns:
            Path to generated response file
        """
        response_file = self.build_dir / "rsp" / f"{name}.rsp"
        response_file.parent.mkdir(parents=True, exist_ok=True)

        with open(response_file, "w", encoding="utf-8") as f:
            f.write("\n".join(_quote_rsp(flag) for flag in flags))

        return response_file
