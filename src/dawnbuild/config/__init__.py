"""Configuration: target platforms, build options and dawnbuild.ini parsing."""

from .ini_parser import CONFIG_FILENAME, DawnBuildConfig, DawnBuildConfigError
from .options import Backend, BuildOptions, LinuxWindowManager, resolve
from .platform_target import (
    CapabilityFacts,
    PlatformDescriptor,
    PlatformError,
    classify,
    detect_host,
)

__all__ = [
    "CONFIG_FILENAME",
    "DawnBuildConfig",
    "DawnBuildConfigError",
    "Backend",
    "BuildOptions",
    "LinuxWindowManager",
    "resolve",
    "CapabilityFacts",
    "PlatformDescriptor",
    "PlatformError",
    "classify",
    "detect_host",
]
