"""Dawn component tables.

Source directories, exclusions, explicit files and flags for every part of
libdawn, derived from the upstream BUILD.gn / CMake files. Paths are relative
to the workspace root; the Dawn checkout lives in ``libs/dawn`` and the
DirectXShaderCompiler checkout in ``libs/DirectXShaderCompiler``. The MinGW
shims are not part of either checkout and come from ``SHIM_DIR``.
"""

from pathlib import Path
from typing import List

from ..config.options import BuildOptions
from ..packages.git_sync import DependencyPin
from .graph import SHIM_DIR, BuildComponent, ComponentBuilder

# branch: generated-2022-11-04
DAWN_REMOTE = "https://github.com/michal-z/dawn"
DAWN_REVISION = "762e368b218678e19b6c1030075ec82e370806cc"
DAWN_PATH = "libs/dawn"

DXC_REMOTE = "https://github.com/michal-z/DirectXShaderCompiler"
DXC_REVISION = "516b26406ff515d28b42c3e61b497058e81622ba"
DXC_PATH = "libs/DirectXShaderCompiler"

GLFW_INCLUDE_DIR = "libs/glfw/include"

TINT_BUILD_FLAGS = (
    "-DTINT_BUILD_SPV_READER=1",
    "-DTINT_BUILD_SPV_WRITER=1",
    "-DTINT_BUILD_WGSL_READER=1",
    "-DTINT_BUILD_WGSL_WRITER=1",
    "-DTINT_BUILD_MSL_WRITER=1",
    "-DTINT_BUILD_HLSL_WRITER=1",
    "-DTINT_BUILD_GLSL_WRITER=0",
)

DAWN_D3D12_FLAGS = (
    "-DDAWN_NO_WINDOWS_UI",
    "-D__EMULATE_UUID=1",
    "-Wno-nonportable-include-path",
    "-Wno-extern-c-compat",
    "-Wno-invalid-noreturn",
    "-Wno-pragma-pack",
    "-Wno-microsoft-template-shadow",
    "-Wno-unused-command-line-argument",
    "-Wno-microsoft-exception-spec",
    "-Wno-implicit-exception-spec-mismatch",
    "-Wno-unknown-attributes",
    "-Wno-c++20-extensions",
    "-D_CRT_SECURE_NO_WARNINGS",
    "-DWIN32_LEAN_AND_MEAN",
    "-DD3D10_ARBITRARY_HEADER_ORDERING",
    "-DNOMINMAX",
)

DEFAULT_EXCLUDES = ("test", "benchmark", "mock")


def dependency_pins(root_dir: Path) -> List[DependencyPin]:
    """Git checkouts the from-source build needs, rooted at ``root_dir``."""
    root_dir = Path(root_dir)
    return [
        DependencyPin(
            name="dawn",
            remote=DAWN_REMOTE,
            revision=DAWN_REVISION,
            local_path=root_dir / DAWN_PATH,
        ),
        DependencyPin(
            name="DirectXShaderCompiler",
            remote=DXC_REMOTE,
            revision=DXC_REVISION,
            local_path=root_dir / DXC_PATH,
            required_when=lambda options: bool(options.d3d12),
        ),
    ]


def _dawn(*paths: str) -> List[str]:
    return [f"{DAWN_PATH}/{path}" for path in paths]


# Derived from src/dawn/common/BUILD.gn
def dawn_common(b: ComponentBuilder) -> None:
    flags = [
        b.include("libs/dawn/src"),
        b.include("libs/dawn/out/Debug/gen/include"),
        b.include("libs/dawn/out/Debug/gen/src"),
    ]
    b.add_scanned(
        flags,
        directories=[
            "libs/dawn/src/dawn/common/",
            "libs/dawn/out/Debug/gen/src/dawn/common/",
        ],
        excluding_contains=DEFAULT_EXCLUDES + ("WindowsUtils.cpp",),
    )

    target_os = b.options.target_os
    if target_os == "macos":
        b.link_framework("Foundation")
        b.add_files(flags, _dawn("src/dawn/common/SystemUtils_mac.mm"))
    elif target_os == "windows":
        b.add_files(flags, _dawn("src/dawn/common/WindowsUtils.cpp"))


# Derived from src/dawn/platform/BUILD.gn
def dawn_platform(b: ComponentBuilder) -> None:
    flags = [
        b.include("libs/dawn/src"),
        b.include("libs/dawn/include"),
        b.include("libs/dawn/out/Debug/gen/include"),
    ]
    b.add_files(
        flags,
        _dawn(
            "src/dawn/platform/DawnPlatform.cpp",
            "src/dawn/platform/WorkerThread.cpp",
            "src/dawn/platform/tracing/EventTracer.cpp",
        ),
    )


# Derived from `find third_party/abseil-cpp/absl | grep '\.cc'` minus tests,
# benchmarks and generators. Only the directories Dawn actually needs.
def abseil_cpp(b: ComponentBuilder) -> None:
    target_os = b.options.target_os
    if target_os == "macos":
        b.link_framework("CoreFoundation")
    if target_os == "windows":
        b.link_system_library("bcrypt")

    flags = [
        b.include("libs/dawn"),
        b.include("libs/dawn/third_party/abseil-cpp"),
    ]
    if target_os == "windows":
        flags += [
            "-DABSL_FORCE_THREAD_IDENTITY_MODE=2",
            "-DWIN32_LEAN_AND_MEAN",
            "-DD3D10_ARBITRARY_HEADER_ORDERING",
            "-D_CRT_SECURE_NO_WARNINGS",
            "-DNOMINMAX",
            b.include(str(SHIM_DIR / "zig_mingw_pthread")),
        ]

    absl = "libs/dawn/third_party/abseil-cpp/absl"
    b.add_scanned(
        flags,
        directories=[
            f"{absl}/strings/",
            f"{absl}/strings/internal/",
            f"{absl}/strings/internal/str_format/",
            f"{absl}/numeric/",
            f"{absl}/base/internal/",
            f"{absl}/base/",
        ],
        excluding_contains=(
            "_test",
            "_testing",
            "benchmark",
            "print_hash_of.cc",
            "gaussian_distribution_gentables.cc",
        ),
    )


def native_flags(b: ComponentBuilder) -> List[str]:
    """Flags shared by dawn_native and its backend components."""
    flags = [
        b.include("libs/dawn"),
        b.include("libs/dawn/src"),
        b.include("libs/dawn/include"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-tools/src/include"),
        b.include("libs/dawn/third_party/abseil-cpp"),
        b.include("libs/dawn/third_party/khronos"),
        *TINT_BUILD_FLAGS,
        b.include("libs/dawn/include/tint"),
        b.include("libs/dawn/third_party/vulkan-deps/vulkan-tools/src/"),
        b.include("libs/dawn/out/Debug/gen/include"),
        b.include("libs/dawn/out/Debug/gen/src"),
    ]
    if b.options.d3d12:
        flags += DAWN_D3D12_FLAGS
    return flags


# Derived from src/dawn/native/BUILD.gn
def dawn_native(b: ComponentBuilder) -> None:
    flags = native_flags(b)
    b.add_scanned(
        flags,
        directories=[
            "libs/dawn/out/Debug/gen/src/dawn/",
            "libs/dawn/src/dawn/native/",
            "libs/dawn/src/dawn/native/utils/",
            "libs/dawn/src/dawn/native/stream/",
        ],
        excluding_contains=DEFAULT_EXCLUDES + ("SpirvValidation.cpp", "XlibXcbFunctions.cpp"),
    )
    # dawn_native_gen
    b.add_scanned(
        flags,
        directories=["libs/dawn/out/Debug/gen/src/dawn/native/"],
        excluding_contains=DEFAULT_EXCLUDES + ("webgpu_dawn_native_proc.cpp",),
    )

    if b.options.uses_x11:
        b.link_system_library("X11")
        b.add_files(flags, _dawn("src/dawn/native/XlibXcbFunctions.cpp"))


def dawn_native_d3d12(b: ComponentBuilder) -> None:
    flags = native_flags(b)
    b.link_system_library("dxgi")
    b.link_system_library("dxguid")
    b.add_files(flags, [str(SHIM_DIR / "mingw_helpers.cpp")])
    b.add_scanned(
        flags,
        directories=["libs/dawn/src/dawn/native/d3d12/"],
        excluding_contains=DEFAULT_EXCLUDES,
    )
    b.add_files(flags, _dawn("src/dawn/native/d3d12/D3D12Backend.cpp"))


def dawn_native_metal(b: ComponentBuilder) -> None:
    for framework in ("Metal", "CoreGraphics", "Foundation", "IOKit", "IOSurface", "QuartzCore"):
        b.link_framework(framework)
    b.add_scanned(
        native_flags(b),
        directories=[
            "libs/dawn/src/dawn/native/metal/",
            "libs/dawn/src/dawn/native/",
        ],
        excluding_contains=DEFAULT_EXCLUDES,
        objc=True,
    )


def dawn_native_vulkan(b: ComponentBuilder) -> None:
    flags = native_flags(b)
    b.add_files(flags, _dawn("src/dawn/native/SpirvValidation.cpp"))
    b.add_scanned(
        flags,
        directories=["libs/dawn/src/dawn/native/vulkan/"],
        excluding_contains=DEFAULT_EXCLUDES,
    )

    if b.options.is_linux_desktop_like:
        external = (
            "src/dawn/native/vulkan/external_memory/MemoryService.cpp",
            "src/dawn/native/vulkan/external_memory/MemoryServiceOpaqueFD.cpp",
            "src/dawn/native/vulkan/external_semaphore/SemaphoreServiceFD.cpp",
        )
    elif b.options.target_os == "fuchsia":
        external = (
            "src/dawn/native/vulkan/external_memory/MemoryServiceZirconHandle.cpp",
            "src/dawn/native/vulkan/external_semaphore/SemaphoreServiceZirconHandle.cpp",
        )
    else:
        external = (
            "src/dawn/native/vulkan/external_memory/MemoryServiceNull.cpp",
            "src/dawn/native/vulkan/external_semaphore/SemaphoreServiceNull.cpp",
        )
    b.add_files(flags, _dawn(*external, "src/dawn/native/vulkan/VulkanBackend.cpp"))


# Derived from src/dawn/utils/BUILD.gn
def dawn_utils(b: ComponentBuilder) -> None:
    flags = [
        b.include(GLFW_INCLUDE_DIR),
        b.include("libs/dawn/src"),
        b.include("libs/dawn/include"),
        b.include("libs/dawn/out/Debug/gen/include"),
    ]
    files = ["src/dawn/utils/BackendBinding.cpp"]
    if b.options.d3d12:
        files.append("src/dawn/utils/D3D12Binding.cpp")
        flags += DAWN_D3D12_FLAGS
    if b.options.metal:
        files.append("src/dawn/utils/MetalBinding.mm")
    if b.options.vulkan:
        files.append("src/dawn/utils/VulkanBinding.cpp")
    b.add_files(flags, _dawn(*files))


# Derived from third_party/vulkan-deps/spirv-tools/src/BUILD.gn
def spirv_tools(b: ComponentBuilder) -> None:
    flags = [
        b.include("libs/dawn"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-tools/src"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-tools/src/include"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-headers/src/include"),
        b.include("libs/dawn/out/Debug/gen/third_party/vulkan-deps/spirv-tools/src"),
        b.include("libs/dawn/out/Debug/gen/third_party/vulkan-deps/spirv-tools/src/include"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-headers/src/include/spirv/unified1"),
    ]
    source = "libs/dawn/third_party/vulkan-deps/spirv-tools/src/source"
    excludes = ("test", "benchmark")
    # spvtools, spvtools_val, spvtools_opt, spvtools_link
    b.add_scanned(flags, [f"{source}/", f"{source}/util/"], excluding_contains=excludes)
    b.add_scanned(flags, [f"{source}/val/"], excluding_contains=excludes)
    b.add_scanned(flags, [f"{source}/opt/"], excluding_contains=excludes)
    b.add_scanned(flags, [f"{source}/link/"], excluding_contains=excludes)


def tint_printer_source(options: BuildOptions) -> str:
    """Platform-specific diagnostic printer for Tint."""
    if options.target_os == "windows":
        return "src/tint/diagnostic/printer_windows.cc"
    if options.target_os in ("linux", "android"):
        return "src/tint/diagnostic/printer_linux.cc"
    return "src/tint/diagnostic/printer_other.cc"


# Derived from src/tint/BUILD.gn
def tint(b: ComponentBuilder) -> None:
    flags = [
        *TINT_BUILD_FLAGS,
        b.include("libs/dawn/"),
        b.include("libs/dawn/include/tint"),
        b.include("libs/dawn/third_party/vulkan-deps"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-tools/src"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-tools/src/include"),
        b.include("libs/dawn/third_party/vulkan-deps/spirv-headers/src/include"),
        b.include("libs/dawn/out/Debug/gen/third_party/vulkan-deps/spirv-tools/src"),
        b.include("libs/dawn/out/Debug/gen/third_party/vulkan-deps/spirv-tools/src/include"),
        b.include("libs/dawn/include"),
    ]

    # libtint_core_all_src
    b.add_scanned(
        flags,
        directories=[
            "libs/dawn/src/tint",
            "libs/dawn/src/tint/diagnostic/",
            "libs/dawn/src/tint/inspector/",
            "libs/dawn/src/tint/resolver/",
            "libs/dawn/src/tint/utils/",
            "libs/dawn/src/tint/text/",
            "libs/dawn/src/tint/transform/",
            "libs/dawn/src/tint/transform/utils",
            "libs/dawn/src/tint/reader/",
            "libs/dawn/src/tint/writer/",
            "libs/dawn/src/tint/ast/",
        ],
        excluding_contains=(
            "test",
            "bench",
            "printer_windows",
            "printer_linux",
            "printer_other",
            "glsl.cc",
        ),
    )
    b.add_files(flags, _dawn(tint_printer_source(b.options)))

    # libtint_sem_src, libtint_spv_reader_src
    b.add_scanned(flags, ["libs/dawn/src/tint/sem/"], excluding_contains=("test", "benchmark"))
    b.add_scanned(
        flags, ["libs/dawn/src/tint/reader/spirv/"], excluding_contains=("test", "benchmark")
    )
    # spv/wgsl/msl/hlsl writers and the wgsl reader
    for rel_dir in (
        "libs/dawn/src/tint/writer/spirv/",
        "libs/dawn/src/tint/reader/wgsl/",
        "libs/dawn/src/tint/writer/wgsl/",
        "libs/dawn/src/tint/writer/msl/",
        "libs/dawn/src/tint/writer/hlsl/",
    ):
        b.add_scanned(flags, [rel_dir], excluding_contains=("test", "bench"))


# Derived from libs/DirectXShaderCompiler/CMakeLists.txt
def dxcompiler(b: ComponentBuilder) -> None:
    b.link_system_library("ole32")
    b.link_system_library("dxguid")
    b.link_system_library("c++")

    flags = [
        b.include("libs/"),
        b.include("libs/DirectXShaderCompiler/include/llvm/llvm_assert"),
        b.include("libs/DirectXShaderCompiler/include"),
        b.include("libs/DirectXShaderCompiler/build/include"),
        b.include("libs/DirectXShaderCompiler/build/lib/HLSL"),
        b.include("libs/DirectXShaderCompiler/build/lib/DxilPIXPasses"),
        "-DUNREFERENCED_PARAMETER(x)=",
        "-Wno-inconsistent-missing-override",
        "-Wno-missing-exception-spec",
        "-Wno-switch",
        "-Wno-deprecated-declarations",
        # regex2.h and regcomp.c redefine OUT
        "-Wno-macro-redefined",
        "-DMSFT_SUPPORTS_CHILD_PROCESSES=1",
        "-DHAVE_LIBPSAPI=1",
        "-DHAVE_LIBSHELL32=1",
        "-DLLVM_ON_WIN32=1",
    ]
    b.add_scanned(flags, [f"{DXC_PATH}/lib/DxcSupport"])
    b.add_files(flags, [f"{DXC_PATH}/lib/Support/ThreadLocal.cpp"])


DAWN_COMPONENTS = (
    BuildComponent("dawn_common", dawn_common),
    BuildComponent("dawn_platform", dawn_platform),
    BuildComponent("abseil_cpp", abseil_cpp),
    BuildComponent("dawn_native", dawn_native),
    BuildComponent("dawn_native_d3d12", dawn_native_d3d12, lambda o: bool(o.d3d12)),
    BuildComponent("dawn_native_metal", dawn_native_metal, lambda o: bool(o.metal)),
    BuildComponent("dawn_native_vulkan", dawn_native_vulkan, lambda o: bool(o.vulkan)),
    BuildComponent("dawn_utils", dawn_utils),
    BuildComponent("spirv_tools", spirv_tools),
    BuildComponent("tint", tint),
    BuildComponent("dxcompiler", dxcompiler, lambda o: bool(o.d3d12)),
)
