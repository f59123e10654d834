"""Compilation Flag Composer.

This module turns a component's static flag list plus the resolved build
options into the final compiler flag sequence for one language dialect.

Design:
    - Base flags come first, in the order the component declares them
    - One ``-DDAWN_ENABLE_BACKEND_*`` macro per enabled backend, in the fixed
      backend order (D3D12, Metal, Vulkan)
    - Dialect flags last: ``-std=c++17`` for C++ and Objective-C++, and
      ``-DDAWN_USE_X11`` when the window manager is X11
    - A macro defined twice keeps its first position and its last value
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..config.options import Backend, BuildOptions


class CompositionError(Exception):
    """Raised when flags are requested for options that are not resolved."""

    pass


class Dialect(Enum):
    """Source language of a compile group."""

    C = "c"
    CXX = "c++"
    OBJC = "objective-c"
    OBJCXX = "objective-c++"

    @property
    def is_cpp_family(self) -> bool:
        return self in (Dialect.CXX, Dialect.OBJCXX)


CXX_STANDARD_FLAG = "-std=c++17"
X11_FLAG = "-DDAWN_USE_X11"

BACKEND_MACROS = {
    Backend.D3D12: "-DDAWN_ENABLE_BACKEND_D3D12",
    Backend.METAL: "-DDAWN_ENABLE_BACKEND_METAL",
    Backend.VULKAN: "-DDAWN_ENABLE_BACKEND_VULKAN",
}


def include_flag(root_dir: Union[str, Path], rel_path: str) -> str:
    """``-I`` flag for a path under the workspace root."""
    return f"-I{Path(root_dir) / rel_path}"


def macro_name(flag: str) -> Optional[str]:
    """Name of the macro a ``-D`` flag defines, or None for other flags.

    Example:
        >>> macro_name('-DABSL_FORCE_THREAD_IDENTITY_MODE=2')
        'ABSL_FORCE_THREAD_IDENTITY_MODE'
    """
    if not flag.startswith("-D") or len(flag) == 2:
        return None
    return flag[2:].split("=", 1)[0]


def collapse_macros(flags: Sequence[str]) -> List[str]:
    """Drop repeated ``-D`` definitions of the same macro.

    The surviving flag sits where the macro was first defined and carries the
    last definition. Non-macro flags are kept as they are, repeats included.
    """
    result: List[str] = []
    positions: Dict[str, int] = {}
    for flag in flags:
        name = macro_name(flag)
        if name is None:
            result.append(flag)
        elif name in positions:
            result[positions[name]] = flag
        else:
            positions[name] = len(result)
            result.append(flag)
    return result


class FlagComposer:
    """Composes per-dialect compiler flags from base flags and options.

    ``compose`` is a pure function of its arguments; the class exists so the
    graph can hold one composer and tests can substitute it.
    """

    def compose(
        self, base: Sequence[str], options: BuildOptions, dialect: Dialect
    ) -> List[str]:
        """Build the final flag sequence.

        Args:
            base: Component flags in declaration order
            options: Resolved build options
            dialect: Language of the sources the flags are for

        Returns:
            Flag list

        Raises:
            CompositionError: If a backend is still unset in ``options``
        """
        if not options.is_resolved:
            raise CompositionError(
                "Cannot compose flags from unresolved options: "
                + f"d3d12={options.d3d12}, metal={options.metal}, vulkan={options.vulkan}"
            )

        flags = list(base)
        for backend in options.enabled_backends():
            flags.append(BACKEND_MACROS[backend])
        if dialect.is_cpp_family:
            flags.append(CXX_STANDARD_FLAG)
        if options.uses_x11:
            flags.append(X11_FLAG)
        return collapse_macros(flags)
