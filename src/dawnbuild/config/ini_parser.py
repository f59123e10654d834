"""
dawnbuild.ini configuration parser.

This module parses dawnbuild.ini files and turns environment sections into
the partially specified BuildOptions handed to the option resolver.
"""

import configparser
from pathlib import Path
from typing import Dict, List, Optional

from .options import BuildOptions, LinuxWindowManager

CONFIG_FILENAME = "dawnbuild.ini"


class DawnBuildConfigError(Exception):
    """Exception raised for dawnbuild.ini configuration errors."""

    pass


class DawnBuildConfig:
    """
    Parser for dawnbuild.ini configuration files.

    Each ``[env:NAME]`` section describes one build. Keys left out stay unset
    and are filled from platform defaults at resolution time. A bare
    ``[env]`` section provides values shared by every environment.

    Example dawnbuild.ini:
        [dawnbuild]
        default_envs = linux

        [env]
        from_source = true

        [env:linux]
        target = x86_64-linux-gnu
        linux_window_manager = x11

        [env:windows]
        target = x86_64-windows-gnu
        vulkan = false

    Usage:
        config = DawnBuildConfig(Path("dawnbuild.ini"))
        options = config.get_build_options("linux")
        target = config.get_target("linux")
    """

    BOOLEAN_OPTIONS = ("d3d12", "metal", "vulkan", "from_source", "install_libs")
    KNOWN_KEYS = {
        "target",
        "linux_window_manager",
        "jobs",
        "cc",
        "cxx",
        "ar",
        *BOOLEAN_OPTIONS,
    }

    def __init__(self, ini_path: Path):
        """
        Initialize the parser with a dawnbuild.ini file.

        Args:
            ini_path: Path to the dawnbuild.ini file

        Raises:
            DawnBuildConfigError: If the file doesn't exist or cannot be parsed
        """
        self.ini_path = ini_path

        if not ini_path.exists():
            raise DawnBuildConfigError(f"Configuration file not found: {ini_path}")

        self.config = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )

        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise DawnBuildConfigError(f"Failed to parse {ini_path}: {e}") from e

    def get_environments(self) -> List[str]:
        """
        Get list of all environment names defined in the config.

        Returns:
            List of environment names (e.g., ['linux', 'windows'])
        """
        envs = []
        for section in self.config.sections():
            if section.startswith("env:"):
                env_name = section.split(":", 1)[1]
                envs.append(env_name)
        return envs

    def get_env_config(self, env_name: str) -> Dict[str, str]:
        """
        Get raw key/value configuration for an environment.

        Values from the base ``[env]`` section are inherited and overridden
        by the environment's own section.

        Args:
            env_name: Name of the environment (e.g., 'linux')

        Returns:
            Dictionary of configuration key-value pairs

        Raises:
            DawnBuildConfigError: If the environment is not found or has unknown keys
        """
        section = f"env:{env_name}"

        if section not in self.config:
            available = ", ".join(self.get_environments())
            raise DawnBuildConfigError(
                f"Environment '{env_name}' not found. "
                + f"Available environments: {available or 'none'}"
            )

        env_config = {}
        for key in self.config[section]:
            value = self.config[section][key]
            env_config[key] = (value or "").strip()

        if "env" in self.config:
            base_config = {k: (v or "").strip() for k, v in self.config["env"].items()}
            env_config = {**base_config, **env_config}

        unknown = set(env_config) - self.KNOWN_KEYS
        if unknown:
            raise DawnBuildConfigError(
                f"Environment '{env_name}' has unknown keys: "
                + f"{', '.join(sorted(unknown))}"
            )

        return env_config

    def get_build_options(self, env_name: str) -> BuildOptions:
        """
        Build the partially specified options for an environment.

        Args:
            env_name: Name of the environment

        Returns:
            BuildOptions with only the configured fields set

        Raises:
            DawnBuildConfigError: If a value cannot be interpreted
        """
        env_config = self.get_env_config(env_name)
        overrides: Dict[str, object] = {}

        for key in self.BOOLEAN_OPTIONS:
            raw = env_config.get(key, "")
            if raw:
                overrides[key] = self._parse_bool(env_name, key, raw)

        wm = env_config.get("linux_window_manager", "")
        if wm:
            try:
                overrides["linux_window_manager"] = LinuxWindowManager.parse(wm)
            except ValueError as e:
                raise DawnBuildConfigError(f"Environment '{env_name}': {e}") from e

        return BuildOptions().with_overrides(**overrides)

    def get_target(self, env_name: str) -> Optional[str]:
        """Target triple for an environment, or None to build for the host."""
        return self.get_env_config(env_name).get("target") or None

    def get_jobs(self, env_name: str) -> Optional[int]:
        """
        Parallel job count for an environment.

        Raises:
            DawnBuildConfigError: If jobs is not a positive integer
        """
        raw = self.get_env_config(env_name).get("jobs", "")
        if not raw:
            return None
        try:
            jobs = int(raw)
        except ValueError:
            jobs = 0
        if jobs < 1:
            raise DawnBuildConfigError(
                f"Environment '{env_name}': jobs must be a positive integer, got '{raw}'"
            )
        return jobs

    def get_tools(self, env_name: str) -> Dict[str, str]:
        """Configured compiler/archiver overrides (keys: cc, cxx, ar)."""
        env_config = self.get_env_config(env_name)
        return {k: env_config[k] for k in ("cc", "cxx", "ar") if env_config.get(k)}

    def has_environment(self, env_name: str) -> bool:
        """
        Check if an environment exists in the configuration.

        Args:
            env_name: Name of the environment to check

        Returns:
            True if environment exists, False otherwise
        """
        return f"env:{env_name}" in self.config

    def get_default_environment(self) -> Optional[str]:
        """
        Get the default environment from dawnbuild.ini.

        Returns:
            Default environment name, or first available environment, or None

        Example:
            If [dawnbuild] section has default_envs = linux, returns 'linux'
            Otherwise returns the first environment found
        """
        if "dawnbuild" in self.config:
            default_envs = (self.config["dawnbuild"].get("default_envs") or "").strip()
            if default_envs:
                return default_envs.split(",")[0].strip()

        envs = self.get_environments()
        return envs[0] if envs else None

    @staticmethod
    def _parse_bool(env_name: str, key: str, raw: str) -> bool:
        value = raw.strip().lower()
        if value in ("1", "true", "yes", "on"):
            return True
        if value in ("0", "false", "no", "off"):
            return False
        raise DawnBuildConfigError(
            f"Environment '{env_name}': {key} must be a boolean, got '{raw}'"
        )
