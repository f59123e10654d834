"""
Build options and platform-default resolution.

Every option a caller can set is optional. ``resolve()`` fills the unset ones
from the target's capability facts:

    linux_window_manager  X11 on desktop Unix-like targets, otherwise unset
    d3d12                 on for Windows
    metal                 on for Apple targets
    vulkan                on for desktop Unix-like targets

Explicitly set values are never overwritten.
"""

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .platform_target import CapabilityFacts, is_linux_desktop_like


class LinuxWindowManager(Enum):
    """Windowing system used on desktop Unix-like targets."""

    X11 = "x11"
    WAYLAND = "wayland"

    @classmethod
    def parse(cls, value: str) -> "LinuxWindowManager":
        """Parse a window manager name (case-insensitive)."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(
                f"Unknown window manager '{value}'. Expected one of: {choices}"
            ) from None


class Backend(Enum):
    """Graphics backends, in canonical order."""

    D3D12 = "d3d12"
    METAL = "metal"
    VULKAN = "vulkan"


@dataclass(frozen=True)
class BuildOptions:
    """Options for building the Dawn library.

    ``None`` means "unset, pick the platform default".
    """

    # Defaults to X11 on Linux-like desktops
    linux_window_manager: Optional[LinuxWindowManager] = None

    # Defaults to true on Windows
    d3d12: Optional[bool] = None

    # Defaults to true on Apple targets
    metal: Optional[bool] = None

    # Defaults to true on Linux-like desktops
    vulkan: Optional[bool] = None

    # Target OS tag; filled in from the platform on resolution
    target_os: Optional[str] = None

    # Compile from source (True) or download a prebuilt library (False)
    from_source: bool = True

    # Copy the produced library into the install directory
    install_libs: bool = True

    def backend_enabled(self, backend: Backend) -> bool:
        """Whether a backend is enabled; unset counts as disabled."""
        return bool(getattr(self, backend.value))

    def enabled_backends(self) -> Tuple[Backend, ...]:
        """Enabled backends in canonical order."""
        return tuple(b for b in Backend if self.backend_enabled(b))

    @property
    def is_resolved(self) -> bool:
        """True once every backend flag and the target OS are set."""
        if self.target_os is None:
            return False
        return all(getattr(self, b.value) is not None for b in Backend)

    @property
    def uses_x11(self) -> bool:
        return self.linux_window_manager is LinuxWindowManager.X11

    @property
    def is_linux_desktop_like(self) -> bool:
        if self.target_os is None:
            return False
        return is_linux_desktop_like(self.target_os)

    def with_overrides(self, **overrides: Any) -> "BuildOptions":
        """Return a copy with the given fields replaced.

        ``None`` values are ignored so callers can pass through optional
        command-line arguments unchanged.

        Raises:
            ValueError: If an override names an unknown option
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown build options: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def resolve(options: BuildOptions, facts: CapabilityFacts) -> BuildOptions:
    """Fill every unset option with its platform default.

    Resolution is monotonic and idempotent: fields set by the caller are kept,
    and resolving an already-resolved BuildOptions returns it unchanged.

    Args:
        options: Partially specified options
        facts: Capability facts of the target platform

    Returns:
        Resolved BuildOptions
    """
    changes: Dict[str, Any] = {}

    if options.linux_window_manager is None and facts.is_desktop_windowed_unix:
        changes["linux_window_manager"] = LinuxWindowManager.X11
    if options.d3d12 is None:
        changes["d3d12"] = facts.is_windows
    if options.metal is None:
        changes["metal"] = facts.is_apple_family
    if options.vulkan is None:
        changes["vulkan"] = facts.is_desktop_windowed_unix
    if options.target_os is None:
        changes["target_os"] = facts.os_tag

    if not changes:
        return options
    return replace(options, **changes)
