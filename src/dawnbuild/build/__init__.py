"""
Build system components for dawnbuild.

This module provides the build system implementation including:
- Source file discovery
- Flag composition
- The Dawn component graph
- Compilation (clang/clang++) and archiving (ar)
- Build orchestration
"""

from .archive_creator import ArchiveCreator, ArchiveError
from .compilation_executor import CompilationError, CompilationExecutor
from .components import DAWN_COMPONENTS, dependency_pins
from .flag_builder import CompositionError, Dialect, FlagComposer, include_flag
from .graph import (
    BuildComponent,
    BuildPlan,
    CompileGroup,
    ComponentGraph,
    LinkRequirements,
    MaterializedComponent,
)
from .orchestrator import BuildOrchestrator, BuildOrchestratorError, BuildResult, Toolchain
from .source_scanner import ScanError, SourceScanner, SourceSetSpec

__all__ = [
    "ArchiveCreator",
    "ArchiveError",
    "CompilationError",
    "CompilationExecutor",
    "DAWN_COMPONENTS",
    "dependency_pins",
    "CompositionError",
    "Dialect",
    "FlagComposer",
    "include_flag",
    "BuildComponent",
    "BuildPlan",
    "CompileGroup",
    "ComponentGraph",
    "LinkRequirements",
    "MaterializedComponent",
    "BuildOrchestrator",
    "BuildOrchestratorError",
    "BuildResult",
    "Toolchain",
    "ScanError",
    "SourceScanner",
    "SourceSetSpec",
]
