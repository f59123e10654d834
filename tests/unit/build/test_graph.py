"""
Unit tests for the component build graph and the Dawn component table.
"""

import threading
from pathlib import Path

import pytest

from dawnbuild.build.components import (
    DAWN_COMPONENTS,
    dawn_utils,
    dependency_pins,
    tint_printer_source,
)
from dawnbuild.build.flag_builder import CompositionError, Dialect
from dawnbuild.build.graph import (
    SHIM_DIR,
    BuildComponent,
    ComponentGraph,
    LinkRequirements,
    MaterializedComponent,
    dialect_for,
)
from dawnbuild.build.source_scanner import ScanError, SourceScanner
from dawnbuild.config.options import BuildOptions, LinuxWindowManager, resolve
from dawnbuild.config.platform_target import PlatformDescriptor, classify


def resolved_for(triple, **overrides):
    facts = classify(PlatformDescriptor.parse(triple))
    return resolve(BuildOptions(**overrides), facts)


def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


@pytest.fixture
def root(tmp_path):
    return tmp_path.resolve()


def core(b):
    b.link_system_library("m")
    b.add_scanned([b.include("include")], ["src/core"])


def backend(b):
    b.link_framework("Metal")
    b.link_system_library("m")
    b.add_files(["-DBACKEND"], ["src/backend/Backend.mm", "src/backend/extra.c"])


def broken(b):
    b.add_scanned([], ["src/missing"])


TABLE = (
    BuildComponent("core", core),
    BuildComponent("backend", backend, lambda o: bool(o.metal)),
)


class TestComponentGraph:
    """Test assembling plans from a small component table."""

    @pytest.fixture
    def tree(self, root):
        touch(root / "src" / "core" / "a.cpp")
        touch(root / "src" / "core" / "b.c")
        touch(root / "src" / "core" / "a_test.txt")
        touch(root / "src" / "backend" / "Backend.mm")
        touch(root / "src" / "backend" / "extra.c")
        return root

    def test_assemble(self, tree):
        """Test compile groups, flags and link requirements of a plan."""
        options = resolved_for("aarch64-macos")
        plan = ComponentGraph(SourceScanner(tree), TABLE, max_workers=1).assemble(options)

        assert plan.component_names == ["core", "backend"]
        assert plan.source_count == 4

        core_component = plan.components[0]
        assert [g.dialect for g in core_component.compile_groups] == [Dialect.CXX, Dialect.C]
        assert core_component.compile_groups[0].sources == [tree / "src" / "core" / "a.cpp"]
        assert core_component.compile_groups[0].flags == [
            f"-I{tree / 'include'}",
            "-DDAWN_ENABLE_BACKEND_METAL",
            "-std=c++17",
        ]
        assert core_component.compile_groups[1].flags == [
            f"-I{tree / 'include'}",
            "-DDAWN_ENABLE_BACKEND_METAL",
        ]

        backend_component = plan.components[1]
        assert [g.dialect for g in backend_component.compile_groups] == [Dialect.OBJCXX, Dialect.C]

        assert plan.link_requirements.system_libraries == ["c++", "m"]
        assert plan.link_requirements.frameworks == ["Metal"]
        assert plan.consumer_include_dirs[1] == tree / "libs" / "dawn" / "include"

    def test_predicate_excludes_component(self, tree):
        """Test that a false predicate drops the component and its link needs."""
        options = resolved_for("x86_64-linux-gnu")
        plan = ComponentGraph(SourceScanner(tree), TABLE, max_workers=1).assemble(options)

        assert plan.component_names == ["core"]
        assert plan.link_requirements.frameworks == []

    def test_parallel_scan_keeps_table_order(self, tree):
        """Test that concurrent materialization still yields table order."""
        gate = threading.Event()

        def slow(b):
            gate.wait(timeout=5)
            core(b)

        def fast(b):
            backend(b)
            gate.set()

        table = (BuildComponent("slow", slow), BuildComponent("fast", fast))
        plan = ComponentGraph(SourceScanner(tree), table, max_workers=2).assemble(
            resolved_for("aarch64-macos")
        )
        assert plan.component_names == ["slow", "fast"]

    def test_scan_error_propagates(self, tree):
        """Test that a missing directory fails the whole assembly."""
        table = TABLE + (BuildComponent("broken", broken),)
        graph = ComponentGraph(SourceScanner(tree), table, max_workers=2)
        with pytest.raises(ScanError):
            graph.assemble(resolved_for("aarch64-macos"))

    def test_unresolved_options(self, tree):
        """Test that assembling from unresolved options is refused."""
        graph = ComponentGraph(SourceScanner(tree), TABLE)
        with pytest.raises(CompositionError):
            graph.assemble(BuildOptions())
        with pytest.raises(CompositionError):
            graph.link_requirements(BuildOptions(metal=True))

    def test_link_requirements_without_sources(self, root):
        """Test link requirements on an empty workspace."""
        graph = ComponentGraph(SourceScanner(root), TABLE + (BuildComponent("broken", broken),))
        requirements = graph.link_requirements(resolved_for("aarch64-macos"))
        assert requirements.system_libraries == ["c++", "m"]
        assert requirements.frameworks == ["Metal"]


class TestLinkRequirements:
    def test_deduplicates_in_order(self):
        requirements = LinkRequirements(system_libraries=["c++"])
        requirements.add(MaterializedComponent("a", system_libraries=["bcrypt", "c++"]))
        requirements.add(MaterializedComponent("b", system_libraries=["dxgi", "bcrypt"], frameworks=["Metal"]))
        assert requirements.system_libraries == ["c++", "bcrypt", "dxgi"]
        assert requirements.linker_flags() == ["-lc++", "-lbcrypt", "-ldxgi", "-framework", "Metal"]


def test_dialect_for(tmp_path):
    assert dialect_for(tmp_path / "x.c") is Dialect.C
    assert dialect_for(tmp_path / "x.m") is Dialect.OBJC
    assert dialect_for(tmp_path / "x.mm") is Dialect.OBJCXX
    assert dialect_for(tmp_path / "x.cc") is Dialect.CXX


class TestDawnComponents:
    """Test the Dawn component table against platform defaults."""

    def test_table_order(self):
        assert [c.name for c in DAWN_COMPONENTS] == [
            "dawn_common",
            "dawn_platform",
            "abseil_cpp",
            "dawn_native",
            "dawn_native_d3d12",
            "dawn_native_metal",
            "dawn_native_vulkan",
            "dawn_utils",
            "spirv_tools",
            "tint",
            "dxcompiler",
        ]

    def test_windows_components(self, root):
        """Test that Windows builds D3D12 and the shader compiler only."""
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        names = [c.name for c in graph.enabled_components(resolved_for("x86_64-windows-gnu"))]
        assert "dawn_native_d3d12" in names
        assert "dxcompiler" in names
        assert "dawn_native_metal" not in names
        assert "dawn_native_vulkan" not in names

    def test_linux_components(self, root):
        """Test that Linux builds Vulkan and skips D3D12 and the shader compiler."""
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        names = [c.name for c in graph.enabled_components(resolved_for("x86_64-linux-gnu"))]
        assert "dawn_native_vulkan" in names
        assert "dawn_native_d3d12" not in names
        assert "dxcompiler" not in names

    def test_windows_link_requirements(self, root):
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        requirements = graph.link_requirements(resolved_for("x86_64-windows-gnu"))
        assert requirements.system_libraries == ["c++", "bcrypt", "dxgi", "dxguid", "ole32"]
        assert requirements.frameworks == []

    def test_linux_link_requirements(self, root):
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        requirements = graph.link_requirements(resolved_for("x86_64-linux-gnu"))
        assert requirements.system_libraries == ["c++", "X11"]

    def test_wayland_does_not_link_x11(self, root):
        options = resolved_for("x86_64-linux-gnu", linux_window_manager=LinuxWindowManager.WAYLAND)
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        assert "X11" not in graph.link_requirements(options).system_libraries

    def test_macos_link_requirements(self, root):
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        requirements = graph.link_requirements(resolved_for("aarch64-macos"))
        assert requirements.system_libraries == ["c++"]
        assert requirements.frameworks == [
            "Foundation",
            "CoreFoundation",
            "Metal",
            "CoreGraphics",
            "IOKit",
            "IOSurface",
            "QuartzCore",
        ]

    def test_dawn_utils_bindings(self, root):
        """Test that backend bindings follow the enabled backends."""
        utils = root / "libs" / "dawn" / "src" / "dawn" / "utils"
        for name in ("BackendBinding.cpp", "D3D12Binding.cpp", "MetalBinding.mm", "VulkanBinding.cpp"):
            touch(utils / name)
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        component = next(c for c in DAWN_COMPONENTS if c.name == "dawn_utils")
        assert component.producer is dawn_utils

        linux = graph.materialize(component, resolved_for("x86_64-linux-gnu"))
        assert [p.name for p in linux.all_sources()] == ["BackendBinding.cpp", "VulkanBinding.cpp"]

        macos = graph.materialize(component, resolved_for("aarch64-macos"))
        assert [g.dialect for g in macos.compile_groups] == [Dialect.CXX, Dialect.OBJCXX]
        assert [p.name for p in macos.all_sources()] == ["BackendBinding.cpp", "MetalBinding.mm"]

    def test_dawn_utils_missing_file(self, root):
        """Test that a missing explicit file surfaces as ScanError."""
        graph = ComponentGraph(SourceScanner(root), DAWN_COMPONENTS)
        component = next(c for c in DAWN_COMPONENTS if c.name == "dawn_utils")
        with pytest.raises(ScanError):
            graph.materialize(component, resolved_for("x86_64-linux-gnu"))

    def test_tint_printer_source(self):
        assert tint_printer_source(resolved_for("x86_64-windows-gnu")).endswith("printer_windows.cc")
        assert tint_printer_source(resolved_for("x86_64-linux-gnu")).endswith("printer_linux.cc")
        assert tint_printer_source(resolved_for("aarch64-linux-android")).endswith("printer_linux.cc")
        assert tint_printer_source(resolved_for("aarch64-macos")).endswith("printer_other.cc")

    def test_dependency_pins(self, root):
        """Test that the shader compiler checkout is only needed for D3D12."""
        dawn, dxc = dependency_pins(root)
        assert dawn.local_path == root / "libs" / "dawn"
        assert len(dawn.revision) == 40
        assert dawn.is_required(resolved_for("x86_64-linux-gnu"))
        assert dxc.is_required(resolved_for("x86_64-windows-gnu"))
        assert not dxc.is_required(resolved_for("x86_64-linux-gnu"))


CHECKOUT_PREFIXES = ("libs/dawn/", "libs/DirectXShaderCompiler/")
SCANNED_NAMES = ("Scanned.cpp", "scanned.c", "Scanned.mm", "scanned.m")


class RecordingScanner(SourceScanner):
    """Records every directory and file the table asks for, finding nothing."""

    def __init__(self, root_dir):
        super().__init__(root_dir)
        self.directories = set()
        self.files = set()

    def scan(self, spec):
        self.directories.update(spec.directories)
        return []

    def resolve_files(self, rel_paths):
        self.files.update(str(p) for p in rel_paths)
        return []


def dawn_tree(root, triples):
    """Create the parts of the Dawn checkouts the table reads for ``triples``.

    Only paths inside the synced checkouts are created; anything else the
    table names has to exist already.
    """
    recorder = RecordingScanner(root)
    graph = ComponentGraph(recorder, DAWN_COMPONENTS, max_workers=1)
    for triple in triples:
        graph.assemble(resolved_for(triple))

    for directory in recorder.directories:
        if Path(directory).is_absolute():
            continue
        assert directory.startswith(CHECKOUT_PREFIXES), directory
        for name in SCANNED_NAMES:
            touch(root / directory / name)
    for file in recorder.files:
        if Path(file).is_absolute():
            continue
        assert file.startswith(CHECKOUT_PREFIXES), file
        touch(root / file)
    return root


def backend_macros(flags):
    return [flag for flag in flags if flag.startswith("-DDAWN_ENABLE_BACKEND_")]


class TestDawnTreeAssembly:
    """Assemble the real component table against a synced-checkout tree."""

    @pytest.fixture
    def tree(self, root):
        return dawn_tree(root, ["x86_64-windows-gnu", "x86_64-linux-gnu", "aarch64-macos"])

    def assemble(self, tree, triple):
        return ComponentGraph(SourceScanner(tree), DAWN_COMPONENTS, max_workers=2).assemble(
            resolved_for(triple)
        )

    def test_windows(self, tree):
        plan = self.assemble(tree, "x86_64-windows-gnu")

        assert plan.component_names == [
            "dawn_common",
            "dawn_platform",
            "abseil_cpp",
            "dawn_native",
            "dawn_native_d3d12",
            "dawn_utils",
            "spirv_tools",
            "tint",
            "dxcompiler",
        ]
        for component in plan.components:
            for group in component.compile_groups:
                assert group.dialect in (Dialect.CXX, Dialect.C)
                assert backend_macros(group.flags) == ["-DDAWN_ENABLE_BACKEND_D3D12"]
                assert "-DDAWN_USE_X11" not in group.flags

    def test_windows_shims_come_from_package(self, tree):
        """Test that the MinGW shims resolve without any workspace copy."""
        plan = self.assemble(tree, "x86_64-windows-gnu")
        components = {c.name: c for c in plan.components}

        assert (SHIM_DIR / "mingw_helpers.cpp").is_file()
        assert (SHIM_DIR / "zig_mingw_pthread" / "pthread.h").is_file()
        assert (SHIM_DIR / "mingw_helpers.cpp").resolve() in components["dawn_native_d3d12"].all_sources()
        abseil_flags = components["abseil_cpp"].compile_groups[0].flags
        assert f"-I{SHIM_DIR / 'zig_mingw_pthread'}" in abseil_flags
        assert "-DABSL_FORCE_THREAD_IDENTITY_MODE=2" in abseil_flags
        assert not (tree / "src").exists()

    def test_linux(self, tree):
        plan = self.assemble(tree, "x86_64-linux-gnu")

        assert plan.component_names == [
            "dawn_common",
            "dawn_platform",
            "abseil_cpp",
            "dawn_native",
            "dawn_native_vulkan",
            "dawn_utils",
            "spirv_tools",
            "tint",
        ]
        for component in plan.components:
            for group in component.compile_groups:
                assert group.dialect in (Dialect.CXX, Dialect.C)
                assert backend_macros(group.flags) == ["-DDAWN_ENABLE_BACKEND_VULKAN"]
                assert group.flags[-1] == "-DDAWN_USE_X11"
                assert ("-std=c++17" in group.flags) is (group.dialect is Dialect.CXX)
        native = next(c for c in plan.components if c.name == "dawn_native")
        assert "XlibXcbFunctions.cpp" in [p.name for p in native.all_sources()]

    def test_macos(self, tree):
        plan = self.assemble(tree, "aarch64-macos")
        components = {c.name: c for c in plan.components}

        assert plan.component_names == [
            "dawn_common",
            "dawn_platform",
            "abseil_cpp",
            "dawn_native",
            "dawn_native_metal",
            "dawn_utils",
            "spirv_tools",
            "tint",
        ]
        metal = components["dawn_native_metal"]
        assert [g.dialect for g in metal.compile_groups] == [Dialect.OBJCXX, Dialect.OBJC]
        assert [p.name for p in metal.compile_groups[0].sources] == ["Scanned.mm", "Scanned.mm"]
        common = components["dawn_common"]
        assert common.compile_groups[-1].dialect is Dialect.OBJCXX
        assert common.compile_groups[-1].sources[-1].name == "SystemUtils_mac.mm"
        for component in plan.components:
            for group in component.compile_groups:
                assert backend_macros(group.flags) == ["-DDAWN_ENABLE_BACKEND_METAL"]
                assert "-DDAWN_USE_X11" not in group.flags

    def test_sources_come_from_checkout(self, tree):
        """Test that scanned sources are canonical paths inside the Dawn checkout."""
        plan = self.assemble(tree, "x86_64-linux-gnu")
        scanned_dirs = {p.parent for p in plan.components[0].all_sources()}
        assert tree / "libs" / "dawn" / "src" / "dawn" / "common" in scanned_dirs
