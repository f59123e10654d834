"""Target platform description and classification.

This module turns a target triple (e.g. ``x86_64-linux-gnu``) into a
``PlatformDescriptor`` and classifies it into the capability facts the rest of
the build uses to pick defaults.

Supported OS tags:
    - Windows: windows
    - Apple: macos, ios, tvos, watchos
    - Unix-like desktops: linux, freebsd, netbsd, openbsd, dragonfly
    - Other: fuchsia, emscripten, wasi, freestanding

Any other OS tag (e.g. ``haiku``) is accepted and lands in the residual
desktop Unix-like bucket.
"""

import logging
import platform
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class PlatformError(Exception):
    """Raised when a target triple cannot be parsed or the host is unsupported."""

    pass


APPLE_OS_TAGS = frozenset({"macos", "ios", "tvos", "watchos"})
UNIX_DESKTOP_OS_TAGS = frozenset({"linux", "freebsd", "netbsd", "openbsd", "dragonfly"})
NON_DESKTOP_OS_TAGS = frozenset({"fuchsia", "emscripten", "wasi", "freestanding"})
KNOWN_OS_TAGS = APPLE_OS_TAGS | UNIX_DESKTOP_OS_TAGS | NON_DESKTOP_OS_TAGS | {"windows"}

# Vendor components skipped when a triple names no known OS
KNOWN_VENDORS = frozenset({"unknown", "pc", "apple", "w64", "nvidia", "ibm", "suse", "redhat"})
_OS_TAG_PATTERN = re.compile(r"^[a-z][a-z0-9_.]*$")

# Android is a linux ABI in triples but classifies as its own OS family
ANDROID_OS_TAG = "android"

# Aliases accepted in triples
_OS_ALIASES = {
    "darwin": "macos",
    "macosx": "macos",
    "win32": "windows",
    "mingw32": "windows",
    "none": "freestanding",
}

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "x86",
    "i686": "x86",
}


@dataclass(frozen=True)
class PlatformDescriptor:
    """Target platform for one build invocation."""

    os_tag: str
    arch: str
    abi: Optional[str] = None

    @property
    def triple(self) -> str:
        """Canonical ``arch-os[-abi]`` spelling of this target."""
        parts = [self.arch, self.os_tag]
        if self.abi:
            parts.append(self.abi)
        return "-".join(parts)

    @property
    def is_android(self) -> bool:
        return self.abi is not None and self.abi.startswith("android")

    @staticmethod
    def parse(triple: str) -> "PlatformDescriptor":
        """Parse a target triple.

        Accepts ``arch-os``, ``arch-os-abi`` and ``arch-vendor-os-abi``
        spellings, plus ``native`` for the host.

        Args:
            triple: Target triple (e.g. "aarch64-linux-android")

        Returns:
            PlatformDescriptor for the triple

        Raises:
            PlatformError: If the triple is malformed

        Example:
            >>> PlatformDescriptor.parse("x86_64-windows-gnu").os_tag
            'windows'
        """
        triple = triple.strip().lower()
        if not triple:
            raise PlatformError("Empty target triple")
        if triple == "native":
            return detect_host()

        parts = triple.split("-")
        if len(parts) < 2:
            raise PlatformError(f"Malformed target triple: {triple}")

        arch = _ARCH_ALIASES.get(parts[0], parts[0])
        if not arch:
            raise PlatformError(f"Malformed target triple: {triple}")

        # Find the first component that names an OS; anything before it is a vendor
        os_index = None
        for index, part in enumerate(parts[1:], start=1):
            if _normalize_os(part) in KNOWN_OS_TAGS:
                os_index = index
                break
        if os_index is None:
            for index, part in enumerate(parts[1:], start=1):
                if part not in KNOWN_VENDORS:
                    os_index = index
                    break
            if os_index is None or not _OS_TAG_PATTERN.match(parts[os_index]):
                raise PlatformError(f"No operating system in target triple: {triple}")
            logger.warning(
                f"Unknown operating system '{parts[os_index]}' in {triple}, "
                + "treating it as a desktop Unix-like target"
            )

        os_tag = _normalize_os(parts[os_index])
        abi = "-".join(parts[os_index + 1:]) or None
        return PlatformDescriptor(os_tag=os_tag, arch=arch, abi=abi)


@dataclass(frozen=True)
class CapabilityFacts:
    """Boolean predicates derived from a PlatformDescriptor."""

    os_tag: str
    is_desktop_windowed_unix: bool
    is_apple_family: bool
    is_windows: bool
    is_embedded_or_mobile: bool


def _normalize_os(tag: str) -> str:
    # Versioned tags such as macos13 or ios16.1
    for apple in ("macosx", "macos", "ios", "tvos", "watchos", "darwin"):
        if tag.startswith(apple):
            return _OS_ALIASES.get(apple, apple)
    return _OS_ALIASES.get(tag, tag)


def is_linux_desktop_like(os_tag: str, abi: Optional[str] = None) -> bool:
    """Whether a target is a desktop Unix-like system running a windowing stack.

    This is the residual bucket: anything that is not Apple, not Windows,
    not fuchsia/web/bare-metal and not Android.
    """
    if os_tag in APPLE_OS_TAGS or os_tag == "windows":
        return False
    if os_tag in NON_DESKTOP_OS_TAGS or os_tag == ANDROID_OS_TAG:
        return False
    if abi is not None and abi.startswith("android"):
        return False
    return True


def classify(descriptor: PlatformDescriptor) -> CapabilityFacts:
    """Derive capability facts from a platform descriptor.

    Pure and total: every descriptor classifies, no I/O is performed.

    Args:
        descriptor: Target platform

    Returns:
        CapabilityFacts for the target
    """
    tag = ANDROID_OS_TAG if descriptor.is_android else descriptor.os_tag
    is_mobile = tag == ANDROID_OS_TAG or tag in {"ios", "tvos", "watchos"}
    return CapabilityFacts(
        os_tag=tag,
        is_desktop_windowed_unix=is_linux_desktop_like(tag, descriptor.abi),
        is_apple_family=tag in APPLE_OS_TAGS,
        is_windows=tag == "windows",
        is_embedded_or_mobile=is_mobile or tag in NON_DESKTOP_OS_TAGS,
    )


def detect_host() -> PlatformDescriptor:
    """Detect the platform this process runs on.

    Returns:
        PlatformDescriptor for the host

    Raises:
        PlatformError: If the host operating system is not recognised
    """
    system = platform.system().lower()
    machine = platform.machine().lower()

    if system == "windows":
        os_tag, abi = "windows", "gnu"
    elif system == "linux":
        os_tag, abi = "linux", "gnu"
    elif system == "darwin":
        os_tag, abi = "macos", None
    elif system in UNIX_DESKTOP_OS_TAGS:
        os_tag, abi = system, None
    else:
        raise PlatformError(f"Unsupported host platform: {system} {machine}")

    arch = _ARCH_ALIASES.get(machine, machine) or "x86_64"
    return PlatformDescriptor(os_tag=os_tag, arch=arch, abi=abi)
