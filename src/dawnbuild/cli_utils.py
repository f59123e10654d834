"""CLI utility functions for dawnbuild.

This module provides common utilities used across CLI commands including:
- Logging setup
- Environment detection from dawnbuild.ini
- Error handling and formatting
- Project path validation
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from dawnbuild.config import CONFIG_FILENAME, DawnBuildConfig

VERBOSE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT = "%(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger for command-line use.

    Args:
        verbose: Log at DEBUG with timestamps and logger names
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT))
    logger.addHandler(console_handler)

    # Per-request noise from the download stack
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class EnvironmentDetector:
    """Handles environment detection from dawnbuild.ini."""

    @staticmethod
    def load_config(project_dir: Path) -> Optional[DawnBuildConfig]:
        """Load dawnbuild.ini from a project directory if there is one.

        Args:
            project_dir: Project directory

        Returns:
            Parsed configuration, or None when the project has no dawnbuild.ini
        """
        ini_path = project_dir / CONFIG_FILENAME
        if not ini_path.exists():
            return None
        return DawnBuildConfig(ini_path)

    @staticmethod
    def detect_environment(
        config: Optional[DawnBuildConfig], env_name: Optional[str] = None
    ) -> Optional[str]:
        """Detect or validate the environment name.

        Args:
            config: Parsed dawnbuild.ini, or None
            env_name: Optional explicit environment name

        Returns:
            Environment name to use, or None when building without a config

        Raises:
            FileNotFoundError: If an environment was requested but there is no dawnbuild.ini
            ValueError: If the requested environment does not exist
        """
        if config is None:
            if env_name:
                raise FileNotFoundError(
                    f"{CONFIG_FILENAME} not found; cannot select environment '{env_name}'"
                )
            return None

        if env_name:
            if not config.has_environment(env_name):
                available = ", ".join(config.get_environments()) or "none"
                raise ValueError(
                    f"Environment '{env_name}' not found in {CONFIG_FILENAME}. "
                    + f"Available environments: {available}"
                )
            return env_name

        return config.get_default_environment()


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Sync failed", "Build failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> None:
        """Handle FileNotFoundError with standard formatting.

        Args:
            error: The FileNotFoundError to handle
        """
        ErrorFormatter.print_error("Error: File not found", str(error))
        sys.exit(1)

    @staticmethod
    def handle_permission_error(error: PermissionError) -> None:
        ErrorFormatter.print_error("Error: Permission denied", str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates project paths and directories."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Validate that project directory exists and is a directory.

        Args:
            project_dir: Path to validate

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not project_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
        if not project_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
