"""
Command-line interface for dawnbuild.

This module provides the `dawnbuild` CLI tool for building the Dawn library.
"""

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dawnbuild import __version__
from dawnbuild.build import BuildOrchestrator
from dawnbuild.build.orchestrator import BUILD_ERRORS, Toolchain
from dawnbuild.cli_utils import (
    EnvironmentDetector,
    ErrorFormatter,
    PathValidator,
    setup_logging,
)
from dawnbuild.config import BuildOptions, LinuxWindowManager
from dawnbuild.packages import Cache


@dataclass
class CommandArgs:
    """Arguments shared by every command."""

    project_dir: Path
    environment: Optional[str] = None
    target: Optional[str] = None
    window_manager: Optional[str] = None
    d3d12: Optional[bool] = None
    metal: Optional[bool] = None
    vulkan: Optional[bool] = None
    from_source: Optional[bool] = None
    install_libs: Optional[bool] = None
    jobs: Optional[int] = None
    clean: bool = False
    verbose: bool = False


@dataclass
class BuildSettings:
    """dawnbuild.ini values merged with command-line overrides."""

    target: str
    options: BuildOptions
    jobs: Optional[int] = None
    toolchain: Toolchain = field(default_factory=Toolchain)
    env_name: Optional[str] = None


def load_settings(args: CommandArgs) -> BuildSettings:
    """Merge dawnbuild.ini (if present) with command-line arguments.

    Command-line values win over the file; anything left unset is resolved
    from the target platform later.
    """
    config = EnvironmentDetector.load_config(args.project_dir)
    env_name = EnvironmentDetector.detect_environment(config, args.environment)

    options = BuildOptions()
    target = None
    jobs = None
    tools = {}
    if config is not None and env_name is not None:
        options = config.get_build_options(env_name)
        target = config.get_target(env_name)
        jobs = config.get_jobs(env_name)
        tools = config.get_tools(env_name)

    window_manager = None
    if args.window_manager:
        window_manager = LinuxWindowManager.parse(args.window_manager)

    options = options.with_overrides(
        linux_window_manager=window_manager,
        d3d12=args.d3d12,
        metal=args.metal,
        vulkan=args.vulkan,
        from_source=args.from_source,
        install_libs=args.install_libs,
    )
    return BuildSettings(
        target=args.target or target or "native",
        options=options,
        jobs=args.jobs or jobs,
        toolchain=Toolchain.from_environment(**tools),
        env_name=env_name,
    )


def _print_header(args: CommandArgs, settings: BuildSettings) -> None:
    print(f"dawnbuild v{__version__}")
    print()
    if args.verbose:
        print(f"Project: {args.project_dir}")
        if settings.env_name:
            print(f"Environment: {settings.env_name}")
    print(f"Target: {settings.target}")


def build_command(args: CommandArgs) -> None:
    """Build libdawn.

    Examples:
        dawnbuild build                          # Build for the host
        dawnbuild build -e windows               # Build the 'windows' environment
        dawnbuild build --target aarch64-macos   # Cross-compile
        dawnbuild build --no-vulkan --clean      # Override options, clean build
    """
    try:
        settings = load_settings(args)
        _print_header(args, settings)

        orchestrator = BuildOrchestrator(Cache(args.project_dir), verbose=args.verbose)
        result = orchestrator.build(
            target=settings.target,
            options=settings.options,
            jobs=settings.jobs,
            toolchain=settings.toolchain,
            clean=args.clean,
        )

        if result.success:
            ErrorFormatter.print_success(result.message)
            print()
            print(f"Library: {result.library_path}")
            if result.link_requirements is not None:
                print(f"Link flags: {' '.join(result.link_requirements.linker_flags())}")
            if result.plan is not None:
                print("Include directories:")
                for include_dir in result.plan.consumer_include_dirs:
                    print(f"  {include_dir}")
            print()
            print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            sys.exit(1)

    except BUILD_ERRORS as e:
        ErrorFormatter.print_error("Build failed!", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def plan_command(args: CommandArgs) -> None:
    """Resolve options, sync dependencies and list what would be compiled.

    Examples:
        dawnbuild plan
        dawnbuild plan --target x86_64-windows-gnu
    """
    try:
        settings = load_settings(args)
        _print_header(args, settings)

        orchestrator = BuildOrchestrator(Cache(args.project_dir), verbose=args.verbose)
        plan = orchestrator.plan(settings.target, settings.options, settings.jobs)

        print()
        print("Components:")
        for component in plan.components:
            print(f"  {component.name:<20} {component.source_count:>5} sources")
        print(f"  {'total':<20} {plan.source_count:>5} sources")
        print()
        print(f"System libraries: {', '.join(plan.link_requirements.system_libraries) or 'none'}")
        print(f"Frameworks: {', '.join(plan.link_requirements.frameworks) or 'none'}")
        sys.exit(0)

    except BUILD_ERRORS as e:
        ErrorFormatter.print_error("Planning failed!", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def sync_command(args: CommandArgs) -> None:
    """Check out every required dependency at its pinned revision.

    Examples:
        dawnbuild sync
        dawnbuild sync --d3d12     # Also fetch DirectXShaderCompiler
    """
    try:
        settings = load_settings(args)
        _print_header(args, settings)

        orchestrator = BuildOrchestrator(Cache(args.project_dir), verbose=args.verbose)
        results = orchestrator.sync(settings.target, settings.options, settings.jobs)

        for result in results:
            line = f"  {result.pin.name}: {result.action.value} @ {result.pin.revision[:12]}"
            if result.fetch_failed:
                line += " (fetch failed)"
            print(line)
        ErrorFormatter.print_success("Dependencies up to date")
        sys.exit(0)

    except BUILD_ERRORS as e:
        ErrorFormatter.print_error("Sync failed!", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def options_command(args: CommandArgs) -> None:
    """Print the resolved build options for a target.

    Examples:
        dawnbuild options
        dawnbuild options --target aarch64-linux-android
    """
    try:
        settings = load_settings(args)
        orchestrator = BuildOrchestrator(Cache(args.project_dir), verbose=args.verbose)
        descriptor, resolved = orchestrator.resolve_options(settings.target, settings.options)

        wm = resolved.linux_window_manager.value if resolved.linux_window_manager else "unset"
        print(f"target:               {descriptor.triple}")
        print(f"target_os:            {resolved.target_os}")
        print(f"linux_window_manager: {wm}")
        print(f"d3d12:                {str(resolved.d3d12).lower()}")
        print(f"metal:                {str(resolved.metal).lower()}")
        print(f"vulkan:               {str(resolved.vulkan).lower()}")
        print(f"from_source:          {str(resolved.from_source).lower()}")
        print(f"install_libs:         {str(resolved.install_libs).lower()}")
        sys.exit(0)

    except BUILD_ERRORS as e:
        ErrorFormatter.print_error("Invalid configuration", str(e))
        sys.exit(1)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Workspace directory (default: current directory)",
    )
    parser.add_argument(
        "-e",
        "--environment",
        default=None,
        help="Environment from dawnbuild.ini (default: default_envs or the first one)",
    )
    parser.add_argument(
        "-t",
        "--target",
        default=None,
        help="Target triple, e.g. x86_64-linux-gnu (default: native)",
    )
    parser.add_argument(
        "--window-manager",
        choices=[wm.value for wm in LinuxWindowManager],
        default=None,
        help="Linux window manager (default: x11 on desktop Linux-like targets)",
    )
    for backend, default_help in (
        ("d3d12", "on for Windows"),
        ("metal", "on for Apple targets"),
        ("vulkan", "on for desktop Linux-like targets"),
    ):
        parser.add_argument(
            f"--{backend}",
            action=argparse.BooleanOptionalAction,
            default=None,
            help=f"Enable the {backend} backend (default: {default_help})",
        )
    parser.add_argument(
        "--from-source",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Build from source, or download a prebuilt library (default: from source)",
    )
    parser.add_argument(
        "--install-libs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Copy the library into .dawnbuild/lib (default: on)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel jobs (default: number of CPUs)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dawnbuild",
        description="dawnbuild - Build the Dawn WebGPU library from pinned sources",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"dawnbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser("build", help="Build libdawn")
    _add_common_arguments(build_parser)
    build_parser.add_argument(
        "-c",
        "--clean",
        action="store_true",
        help="Clean build artifacts before building",
    )

    plan_parser = subparsers.add_parser(
        "plan", help="Sync dependencies and list components without compiling"
    )
    _add_common_arguments(plan_parser)

    sync_parser = subparsers.add_parser(
        "sync", help="Check out dependencies at their pinned revisions"
    )
    _add_common_arguments(sync_parser)

    options_parser = subparsers.add_parser("options", help="Print resolved build options")
    _add_common_arguments(options_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """dawnbuild - Build the Dawn WebGPU library from pinned sources."""
    parser = create_parser()
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    PathValidator.validate_project_dir(parsed_args.project_dir)
    setup_logging(parsed_args.verbose)

    args = CommandArgs(
        project_dir=parsed_args.project_dir.resolve(),
        environment=parsed_args.environment,
        target=parsed_args.target,
        window_manager=parsed_args.window_manager,
        d3d12=parsed_args.d3d12,
        metal=parsed_args.metal,
        vulkan=parsed_args.vulkan,
        from_source=parsed_args.from_source,
        install_libs=parsed_args.install_libs,
        jobs=parsed_args.jobs,
        clean=getattr(parsed_args, "clean", False),
        verbose=parsed_args.verbose,
    )

    commands = {
        "build": build_command,
        "plan": plan_command,
        "sync": sync_command,
        "options": options_command,
    }
    commands[parsed_args.command](args)


if __name__ == "__main__":
    main()
