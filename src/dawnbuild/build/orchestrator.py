"""
Build orchestration for dawnbuild.

This module coordinates the entire build of libdawn for one target:
- Target classification and option resolution
- Pinned dependency checkouts (all complete before any scanning)
- Component graph assembly (source scanning + flag composition)
- Compilation (clang/clang++) and archiving (ar)
- Prebuilt library download when building from source is turned off
"""

import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..config.ini_parser import DawnBuildConfigError
from ..config.options import BuildOptions, resolve
from ..config.platform_target import PlatformDescriptor, PlatformError, classify
from ..packages.cache import Cache
from ..packages.downloader import (
    ChecksumError,
    DownloadError,
    ExtractionError,
    PackageDownloader,
)
from ..packages.git_sync import (
    DependencyPin,
    DependencySynchronizer,
    GitClient,
    GitProbe,
    SyncError,
    SyncResult,
    ToolUnavailableError,
)
from ..packages.prebuilt import PrebuiltError, PrebuiltLibrary
from ..pools import run_ordered
from .archive_creator import ArchiveCreator, ArchiveError
from .compilation_executor import (
    CompilationError,
    CompilationExecutor,
    CompileTask,
    clang_target,
)
from .components import DAWN_COMPONENTS, DAWN_REVISION, dependency_pins
from .flag_builder import CompositionError
from .graph import BuildComponent, BuildPlan, ComponentGraph, LinkRequirements
from .source_scanner import ScanError, SourceScanner

logger = logging.getLogger(__name__)

LIBRARY_NAME = "libdawn.a"


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    library_path: Optional[Path]
    link_requirements: Optional[LinkRequirements]
    build_time: float
    message: str
    plan: Optional[BuildPlan] = None


@dataclass
class Toolchain:
    """Compiler and archiver executables."""

    cc: str = "clang"
    cxx: str = "clang++"
    ar: str = "ar"

    @classmethod
    def from_environment(
        cls,
        cc: Optional[str] = None,
        cxx: Optional[str] = None,
        ar: Optional[str] = None,
    ) -> "Toolchain":
        """Explicit values first, then CC/CXX/AR, then the clang defaults."""
        defaults = cls()
        return cls(
            cc=cc or os.environ.get("CC") or defaults.cc,
            cxx=cxx or os.environ.get("CXX") or defaults.cxx,
            ar=ar or os.environ.get("AR") or defaults.ar,
        )


class BuildOrchestratorError(Exception):
    """Exception raised for build orchestration errors."""

    pass


# Errors a build reports as a failed BuildResult
BUILD_ERRORS = (
    BuildOrchestratorError,
    PlatformError,
    DawnBuildConfigError,
    ToolUnavailableError,
    SyncError,
    ScanError,
    CompositionError,
    CompilationError,
    ArchiveError,
    PrebuiltError,
    DownloadError,
    ChecksumError,
    ExtractionError,
)


class BuildOrchestrator:
    """
    Orchestrates the complete libdawn build.

    Phases:
    1. Parse the target and resolve options
    2. Sync required git dependencies (hard barrier)
    3. Assemble the component graph
    4. Compile every compile group
    5. Archive objects into libdawn.a
    6. Install the library when install_libs is on

    Example usage:
        orchestrator = BuildOrchestrator(Cache(Path(".")))
        result = orchestrator.build("x86_64-linux-gnu", BuildOptions(vulkan=True))
        if result.success:
            print(f"Library: {result.library_path}")
            print(" ".join(result.link_requirements.linker_flags()))
    """

    def __init__(
        self,
        cache: Optional[Cache] = None,
        git_client: Optional[GitClient] = None,
        downloader: Optional[PackageDownloader] = None,
        components: Sequence[BuildComponent] = DAWN_COMPONENTS,
        verbose: bool = False,
    ):
        """
        Initialize build orchestrator.

        Args:
            cache: Workspace layout (defaults to the current directory)
            git_client: git wrapper used for dependency sync
            downloader: Downloader used for prebuilt libraries
            components: Component table
            verbose: Enable verbose output
        """
        self.cache = cache if cache is not None else Cache()
        self.git_client = git_client if git_client is not None else GitClient()
        self.downloader = downloader
        self.components = components
        self.verbose = verbose

    def resolve_options(
        self, target: str, options: Optional[BuildOptions] = None
    ) -> Tuple[PlatformDescriptor, BuildOptions]:
        """
        Parse a target triple and resolve options against it.

        Raises:
            PlatformError: If the target triple is invalid
        """
        descriptor = PlatformDescriptor.parse(target)
        facts = classify(descriptor)
        resolved = resolve(options if options is not None else BuildOptions(), facts)
        logger.debug(f"Resolved options for {descriptor.triple}: {resolved}")
        return descriptor, resolved

    def required_pins(self, options: BuildOptions) -> List[DependencyPin]:
        """Dependency pins needed by resolved options."""
        return [pin for pin in dependency_pins(self.cache.root_dir) if pin.is_required(options)]

    def sync(
        self,
        target: str = "native",
        options: Optional[BuildOptions] = None,
        jobs: Optional[int] = None,
    ) -> List[SyncResult]:
        """
        Bring every required dependency to its pinned revision.

        A single git probe is shared by all pins of this call.

        Raises:
            ToolUnavailableError: If git is missing
            SyncError: If a dependency cannot be synced
        """
        _, resolved = self.resolve_options(target, options)
        return self._sync_dependencies(resolved, jobs)

    def plan(
        self,
        target: str = "native",
        options: Optional[BuildOptions] = None,
        jobs: Optional[int] = None,
    ) -> BuildPlan:
        """
        Resolve, sync and assemble without compiling.

        Raises:
            ToolUnavailableError, SyncError, ScanError, CompositionError
        """
        _, resolved = self.resolve_options(target, options)
        self._sync_dependencies(resolved, jobs)
        return self._graph(jobs).assemble(resolved)

    def build(
        self,
        target: str = "native",
        options: Optional[BuildOptions] = None,
        jobs: Optional[int] = None,
        toolchain: Optional[Toolchain] = None,
        clean: bool = False,
    ) -> BuildResult:
        """
        Execute complete build process.

        Args:
            target: Target triple, or "native" for the host
            options: Caller options (unset fields get platform defaults)
            jobs: Parallel jobs for sync, scan and compile (defaults to CPU count)
            toolchain: Compilers and archiver (defaults from CC/CXX/AR)
            clean: Remove the target's build directory first

        Returns:
            BuildResult with build status and output paths
        """
        start_time = time.time()
        try:
            logger.info("[1/6] Resolving options...")
            descriptor, resolved = self.resolve_options(target, options)
            logger.info(
                f"      Target: {descriptor.triple}, backends: "
                + (", ".join(b.value for b in resolved.enabled_backends()) or "none")
            )

            if not resolved.from_source:
                return self._build_prebuilt(descriptor, resolved, start_time)

            build_dir = self.cache.get_build_dir(descriptor.triple)
            if clean and build_dir.exists():
                logger.info(f"      Cleaning {build_dir}")
                shutil.rmtree(build_dir)
            self.cache.ensure_build_directories(descriptor.triple)

            logger.info("[2/6] Syncing dependencies...")
            self._sync_dependencies(resolved, jobs)

            logger.info("[3/6] Scanning sources...")
            plan = self._graph(jobs).assemble(resolved)
            logger.info(
                f"      {plan.source_count} sources in {len(plan.components)} components"
            )

            logger.info("[4/6] Compiling sources...")
            tools = toolchain if toolchain is not None else Toolchain.from_environment()
            objects = self._compile_plan(plan, descriptor, build_dir, tools, jobs)

            logger.info("[5/6] Archiving...")
            library_path = ArchiveCreator(ar=tools.ar).create_archive(
                build_dir / LIBRARY_NAME, objects
            )

            if resolved.install_libs:
                logger.info("[6/6] Installing...")
                library_path = self._install(library_path)

            return BuildResult(
                success=True,
                library_path=library_path,
                link_requirements=plan.link_requirements,
                build_time=time.time() - start_time,
                message="Build successful",
                plan=plan,
            )

        except BUILD_ERRORS as e:
            return BuildResult(
                success=False,
                library_path=None,
                link_requirements=None,
                build_time=time.time() - start_time,
                message=str(e),
            )
        except Exception as e:
            logger.debug("Unexpected build failure", exc_info=True)
            return BuildResult(
                success=False,
                library_path=None,
                link_requirements=None,
                build_time=time.time() - start_time,
                message=f"Unexpected error: {e}",
            )

    def _graph(self, jobs: Optional[int]) -> ComponentGraph:
        return ComponentGraph(SourceScanner(self.cache.root_dir), self.components, max_workers=jobs)

    def _sync_dependencies(
        self, resolved: BuildOptions, jobs: Optional[int]
    ) -> List[SyncResult]:
        pins = self.required_pins(resolved)
        synchronizer = DependencySynchronizer(GitProbe(self.git_client), self.git_client)
        results = synchronizer.sync_all(pins, max_workers=jobs)
        for result in results:
            logger.info(f"      {result.pin.name}: {result.action.value}")
        return results

    def _build_prebuilt(
        self,
        descriptor: PlatformDescriptor,
        resolved: BuildOptions,
        start_time: float,
    ) -> BuildResult:
        logger.info("[2/6] Fetching prebuilt library...")
        prebuilt = PrebuiltLibrary(self.cache, DAWN_REVISION, downloader=self.downloader)
        library_path = prebuilt.ensure_library(descriptor, show_progress=self.verbose)
        link_requirements = self._graph(1).link_requirements(resolved)

        if resolved.install_libs:
            library_path = self._install(library_path)

        return BuildResult(
            success=True,
            library_path=library_path,
            link_requirements=link_requirements,
            build_time=time.time() - start_time,
            message="Using prebuilt library",
        )

    def _compile_plan(
        self,
        plan: BuildPlan,
        descriptor: PlatformDescriptor,
        build_dir: Path,
        tools: Toolchain,
        jobs: Optional[int],
    ) -> List[Path]:
        executor = CompilationExecutor(
            build_dir, cc=tools.cc, cxx=tools.cxx, target=clang_target(descriptor)
        )
        dialects = {
            group.dialect
            for component in plan.components
            for group in component.compile_groups
        }
        executor.check_toolchain(sorted(dialects, key=lambda d: d.value))

        tasks: List[CompileTask] = []
        for component in plan.components:
            object_dir = self.cache.get_object_dir(descriptor.triple, component.name)
            for index, group in enumerate(component.compile_groups):
                tasks.extend(
                    executor.prepare_group(group, object_dir, f"{component.name}-{index}")
                )

        if not tasks:
            raise BuildOrchestratorError("No sources to compile; is the Dawn checkout empty?")

        objects = run_ordered(
            executor.compile_task,
            tasks,
            jobs,
            thread_name_prefix="compile",
        )
        logger.info(f"      Compiled {len(objects)} objects")
        return objects

    def _install(self, library_path: Path) -> Path:
        install_dir = self.cache.install_dir
        install_dir.mkdir(parents=True, exist_ok=True)
        installed = install_dir / LIBRARY_NAME
        shutil.copy2(library_path, installed)
        logger.info(f"      Installed {installed}")
        return installed
