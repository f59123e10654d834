"""Component Build Graph.

The Dawn library is assembled from a fixed, ordered table of components.
Each table entry pairs a predicate over the resolved build options with a
producer that scans the component's sources and composes its flags:

    dawn_common -> dawn_platform -> abseil_cpp -> dawn_native
        -> dawn_native_{d3d12,metal,vulkan} -> dawn_utils
        -> spirv_tools -> tint -> dxcompiler

Predicates and producers read only the resolved BuildOptions, never the raw
platform, so every conditional source or flag can be explained from the
options alone. Producers are independent of each other and may run on a
thread pool; the assembled plan always lists components in table order.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..config.options import BuildOptions
from ..pools import run_ordered
from .flag_builder import CompositionError, Dialect, FlagComposer, include_flag
from .source_scanner import SourceScanner

logger = logging.getLogger(__name__)

# Linked into every Dawn build
BASE_SYSTEM_LIBRARIES = ("c++",)

# MinGW shims shipped with the package
SHIM_DIR = Path(__file__).parent.parent / "shims"

# Include directories a consumer of libdawn needs
CONSUMER_INCLUDE_DIRS = (
    "libs/dawn/out/Debug/gen/include",
    "libs/dawn/include",
    str(SHIM_DIR),
)

_DIALECT_BY_SUFFIX = {
    ".c": Dialect.C,
    ".m": Dialect.OBJC,
    ".mm": Dialect.OBJCXX,
}


def dialect_for(path: Path) -> Dialect:
    """Dialect an explicitly listed source is compiled as (C++ unless told otherwise)."""
    return _DIALECT_BY_SUFFIX.get(path.suffix, Dialect.CXX)


def _append_unique(target: List[str], items: Iterable[str]) -> None:
    for item in items:
        if item not in target:
            target.append(item)


@dataclass
class CompileGroup:
    """Sources compiled with one flag set."""

    dialect: Dialect
    sources: List[Path]
    flags: List[str]


@dataclass
class MaterializedComponent:
    """A component whose predicate held, with its sources and link needs."""

    name: str
    compile_groups: List[CompileGroup] = field(default_factory=list)
    system_libraries: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)

    @property
    def source_count(self) -> int:
        return sum(len(group.sources) for group in self.compile_groups)

    def all_sources(self) -> List[Path]:
        return [source for group in self.compile_groups for source in group.sources]


@dataclass
class LinkRequirements:
    """System libraries and frameworks the final artifact must be linked with."""

    system_libraries: List[str] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)

    def add(self, component: MaterializedComponent) -> None:
        _append_unique(self.system_libraries, component.system_libraries)
        _append_unique(self.frameworks, component.frameworks)

    def linker_flags(self) -> List[str]:
        """``-l``/``-framework`` flags for a downstream link step."""
        flags = [f"-l{lib}" for lib in self.system_libraries]
        for framework in self.frameworks:
            flags.extend(["-framework", framework])
        return flags


@dataclass
class BuildPlan:
    """Everything needed to compile and link libdawn for one target."""

    options: BuildOptions
    components: List[MaterializedComponent]
    link_requirements: LinkRequirements
    consumer_include_dirs: List[Path] = field(default_factory=list)

    @property
    def component_names(self) -> List[str]:
        return [component.name for component in self.components]

    @property
    def source_count(self) -> int:
        return sum(component.source_count for component in self.components)


class ComponentBuilder:
    """Accumulates one component's compile groups and link requirements.

    Producers receive a builder, describe their sources in the same terms
    the Dawn build files use (scanned directories plus explicit files), and
    the builder does the scanning and flag composition.
    """

    def __init__(
        self,
        name: str,
        options: BuildOptions,
        scanner: SourceScanner,
        composer: FlagComposer,
        collect_sources: bool = True,
    ):
        self.name = name
        self.options = options
        self.scanner = scanner
        self.composer = composer
        # False records only link requirements, without touching the filesystem
        self.collect_sources = collect_sources
        self._component = MaterializedComponent(name=name)

    @property
    def root_dir(self) -> Path:
        return self.scanner.root_dir

    def include(self, rel_path: str) -> str:
        """``-I`` flag for a workspace-relative directory."""
        return include_flag(self.root_dir, rel_path)

    def add_scanned(
        self,
        flags: Sequence[str],
        directories: Sequence[str],
        excluding: Sequence[str] = (),
        excluding_contains: Sequence[str] = (),
        objc: bool = False,
    ) -> None:
        """Scan directories into a C++-family group and a C-family group."""
        if not self.collect_sources:
            return
        sources = self.scanner.scan_lang(
            directories,
            excluding=excluding,
            excluding_contains=excluding_contains,
            objc=objc,
        )
        cpp_dialect = Dialect.OBJCXX if objc else Dialect.CXX
        c_dialect = Dialect.OBJC if objc else Dialect.C
        self._add_group(cpp_dialect, sources.cpp_sources, flags)
        self._add_group(c_dialect, sources.c_sources, flags)

    def add_files(self, flags: Sequence[str], rel_paths: Sequence[str]) -> None:
        """Add explicitly listed files, grouped by dialect in listing order."""
        if not self.collect_sources:
            return
        by_dialect = {}
        for path in self.scanner.resolve_files(rel_paths):
            by_dialect.setdefault(dialect_for(path), []).append(path)
        for dialect, paths in by_dialect.items():
            self._add_group(dialect, paths, flags)

    def link_system_library(self, name: str) -> None:
        _append_unique(self._component.system_libraries, [name])

    def link_framework(self, name: str) -> None:
        _append_unique(self._component.frameworks, [name])

    def build(self) -> MaterializedComponent:
        return self._component

    def _add_group(self, dialect: Dialect, sources: List[Path], flags: Sequence[str]) -> None:
        if not sources:
            return
        composed = self.composer.compose(flags, self.options, dialect)
        self._component.compile_groups.append(
            CompileGroup(dialect=dialect, sources=list(sources), flags=composed)
        )


ComponentPredicate = Callable[[BuildOptions], bool]
ComponentProducer = Callable[[ComponentBuilder], None]


def always(options: BuildOptions) -> bool:
    return True


@dataclass(frozen=True)
class BuildComponent:
    """One entry of the component table."""

    name: str
    producer: ComponentProducer
    predicate: ComponentPredicate = always

    def is_enabled(self, options: BuildOptions) -> bool:
        return self.predicate(options)


class ComponentGraph:
    """
    Evaluates the component table against resolved options.

    Example usage:
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        plan = graph.assemble(resolved_options)
    """

    def __init__(
        self,
        scanner: SourceScanner,
        components: Sequence[BuildComponent],
        composer: Optional[FlagComposer] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize component graph.

        Args:
            scanner: Source scanner rooted at the workspace
            components: Component table in dependency order
            composer: Flag composer (a default one is created if omitted)
            max_workers: Scan concurrency; 1 scans serially, None uses the CPU count
        """
        self.scanner = scanner
        self.components = list(components)
        self.composer = composer if composer is not None else FlagComposer()
        self.max_workers = max_workers

    def enabled_components(self, options: BuildOptions) -> List[BuildComponent]:
        """Table entries whose predicate holds, in table order."""
        return [c for c in self.components if c.is_enabled(options)]

    def assemble(self, options: BuildOptions) -> BuildPlan:
        """
        Materialize every enabled component.

        Args:
            options: Resolved build options

        Returns:
            BuildPlan with components in table order

        Raises:
            CompositionError: If the options are not resolved
            ScanError: For the first component whose sources could not be scanned
        """
        self._check_resolved(options)

        enabled = self.enabled_components(options)
        logger.debug(f"Enabled components: {', '.join(c.name for c in enabled)}")
        materialized = self._materialize_all(enabled, options)

        link_requirements = self._collect_link_requirements(materialized)
        for component in materialized:
            logger.debug(
                f"{component.name}: {component.source_count} sources "
                + f"in {len(component.compile_groups)} groups"
            )

        return BuildPlan(
            options=options,
            components=materialized,
            link_requirements=link_requirements,
            consumer_include_dirs=[self.scanner.root_dir / d for d in CONSUMER_INCLUDE_DIRS],
        )

    def link_requirements(self, options: BuildOptions) -> LinkRequirements:
        """
        Link requirements of the enabled components, without scanning sources.

        Used when a prebuilt library replaces the from-source build.

        Raises:
            CompositionError: If the options are not resolved
        """
        self._check_resolved(options)
        return self._collect_link_requirements(
            [
                self.materialize(component, options, collect_sources=False)
                for component in self.enabled_components(options)
            ]
        )

    def materialize(
        self,
        component: BuildComponent,
        options: BuildOptions,
        collect_sources: bool = True,
    ) -> MaterializedComponent:
        """Run one component's producer."""
        builder = ComponentBuilder(
            component.name, options, self.scanner, self.composer, collect_sources
        )
        component.producer(builder)
        return builder.build()

    @staticmethod
    def _check_resolved(options: BuildOptions) -> None:
        if not options.is_resolved:
            raise CompositionError(
                "Build graph needs resolved options; call resolve() first"
            )

    @staticmethod
    def _collect_link_requirements(
        components: List[MaterializedComponent],
    ) -> LinkRequirements:
        link_requirements = LinkRequirements(system_libraries=list(BASE_SYSTEM_LIBRARIES))
        for component in components:
            link_requirements.add(component)
        return link_requirements

    def _materialize_all(
        self, components: List[BuildComponent], options: BuildOptions
    ) -> List[MaterializedComponent]:
        return run_ordered(
            lambda component: self.materialize(component, options),
            components,
            self.max_workers,
            thread_name_prefix="scan",
        )
