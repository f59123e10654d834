"""Pinned git dependency synchronization.

This module guarantees that each external source dependency is checked out
at an exact revision before any source scanning starts.

Design:
    - ``GitClient`` wraps the four git operations used (plus rev-parse), one
      subprocess per operation, exit status decides success
    - ``GitProbe`` runs ``git --version`` once per build invocation and is
      passed explicitly to the synchronizer
    - ``DependencySynchronizer.sync`` converges a working copy to its pin:
        missing        -> clone, hard reset
        at pin         -> nothing (no network)
        elsewhere      -> fetch (failure is only a warning), hard reset
    - ``DependencySynchronizer.sync_all`` runs independent pins on a thread
      pool and returns only when every pin has converged
"""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config.options import BuildOptions
from ..pools import run_ordered

logger = logging.getLogger(__name__)


class ToolUnavailableError(Exception):
    """Raised when the git executable is missing or not working."""

    pass


class SyncError(Exception):
    """Raised when a dependency cannot be brought to its pinned revision."""

    pass


class GitCommandError(Exception):
    """Raised when a single git invocation fails."""

    def __init__(self, argv: Sequence[str], returncode: Optional[int], stderr: str):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        if returncode is None:
            message = f"'{' '.join(self.argv)}' could not be started: {detail}"
        else:
            message = f"'{' '.join(self.argv)}' exited with {returncode}: {detail}"
        super().__init__(message)


@dataclass(frozen=True)
class DependencyPin:
    """An external git repository bound to one exact revision."""

    name: str
    remote: str
    revision: str
    local_path: Path
    # Pins without a predicate are always required
    required_when: Optional[Callable[[BuildOptions], bool]] = field(
        default=None, compare=False, repr=False
    )

    def is_required(self, options: BuildOptions) -> bool:
        """Whether this dependency is needed for the given resolved options."""
        if self.required_when is None:
            return True
        return self.required_when(options)


class SyncAction(Enum):
    """What ``sync`` had to do to reach the pin."""

    CLONED = "cloned"
    UP_TO_DATE = "up_to_date"
    RESET = "reset"


@dataclass
class SyncResult:
    """Outcome of synchronizing one pin."""

    pin: DependencyPin
    action: SyncAction
    previous_revision: Optional[str] = None
    fetch_failed: bool = False


class GitClient:
    """
    Thin wrapper around the git command line.

    Every method is one subprocess invocation. Failures (non-zero exit or an
    executable that cannot be started) raise GitCommandError carrying the
    captured stderr.
    """

    def __init__(self, executable: str = "git", timeout: Optional[float] = None):
        """
        Initialize git client.

        Args:
            executable: git executable name or path
            timeout: Optional per-command timeout in seconds
        """
        self.executable = executable
        self.timeout = timeout

    def run(self, args: Sequence[str], cwd: Optional[Path] = None) -> str:
        """
        Run one git command and return its stdout.

        Args:
            args: Arguments after the executable
            cwd: Working directory

        Returns:
            Captured stdout

        Raises:
            GitCommandError: If git cannot be started or exits non-zero
        """
        argv = [self.executable, *args]
        logger.debug(f"Running {' '.join(argv)} (cwd={cwd})")
        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(argv, None, f"timed out after {e.timeout}s") from e
        except OSError as e:
            raise GitCommandError(argv, None, str(e)) from e

        if result.returncode != 0:
            raise GitCommandError(argv, result.returncode, result.stderr or result.stdout or "")
        return result.stdout

    def version(self) -> str:
        """Query the git version string."""
        return self.run(["--version"]).strip()

    def clone(self, remote: str, dest: Path, cwd: Optional[Path] = None) -> None:
        """Clone ``remote`` into ``dest`` with long path support enabled."""
        self.run(["clone", "-c", "core.longpaths=true", remote, str(dest)], cwd=cwd)

    def fetch(self, repo_dir: Path) -> None:
        """Fetch remote updates into an existing working copy."""
        self.run(["fetch"], cwd=repo_dir)

    def reset_hard(self, repo_dir: Path, revision: str) -> None:
        """Force the working copy to an exact revision."""
        self.run(["reset", "--quiet", "--hard", revision], cwd=repo_dir)

    def current_revision(self, repo_dir: Path) -> str:
        """Revision identifier checked out in a working copy (newline stripped)."""
        return self.run(["rev-parse", "HEAD"], cwd=repo_dir).rstrip("\r\n")


class GitProbe:
    """
    One-shot check that git is installed and runnable.

    The first call to ``ensure_available`` runs ``git --version``; later calls
    reuse the outcome, so a build invocation probes exactly once no matter
    how many dependencies it syncs.
    """

    def __init__(self, client: GitClient):
        self.client = client
        self._lock = threading.Lock()
        self._checked = False
        self._version: Optional[str] = None
        self._error: Optional[str] = None

    def ensure_available(self) -> str:
        """
        Check that git works, probing only on the first call.

        Returns:
            The ``git --version`` output

        Raises:
            ToolUnavailableError: If git is missing or exits non-zero
        """
        with self._lock:
            if not self._checked:
                try:
                    self._version = self.client.version()
                    logger.debug(f"Found {self._version}")
                except GitCommandError as e:
                    self._error = str(e)
                self._checked = True

        # Unset after a failed probe
        if self._version is None:
            raise ToolUnavailableError(
                f"'{self.client.executable} --version' failed. Is git not installed?\n"
                + f"{self._error}"
            )
        return self._version


class DependencySynchronizer:
    """
    Brings dependency working copies to their pinned revisions.

    Example usage:
        client = GitClient()
        synchronizer = DependencySynchronizer(GitProbe(client), client)
        synchronizer.sync_all(pins)
    """

    def __init__(self, probe: GitProbe, client: Optional[GitClient] = None):
        """
        Initialize dependency synchronizer.

        Args:
            probe: Tool availability check shared for the whole invocation
            client: git client (defaults to the probe's client)
        """
        self.probe = probe
        self.client = client if client is not None else probe.client

    def sync(self, pin: DependencyPin) -> SyncResult:
        """
        Converge one working copy to its pinned revision.

        Args:
            pin: Dependency to synchronize

        Returns:
            SyncResult describing what was done

        Raises:
            ToolUnavailableError: If git is not available
            SyncError: If clone or reset fails, or the revision does not match afterwards
        """
        self.probe.ensure_available()
        local_path = Path(pin.local_path)

        if not local_path.exists():
            self._clone(pin, local_path)
            self._reset(pin, local_path)
            self._verify(pin, local_path)
            return SyncResult(pin=pin, action=SyncAction.CLONED)

        try:
            current = self.client.current_revision(local_path)
        except GitCommandError as e:
            logger.warning(f"Could not read the revision of {local_path}: {e}")
            current = None

        if current == pin.revision:
            logger.debug(f"{pin.name} already at {pin.revision}")
            return SyncResult(pin=pin, action=SyncAction.UP_TO_DATE, previous_revision=current)

        logger.info(f"Updating {pin.name} from {current or 'unknown revision'} to {pin.revision}")
        fetch_failed = False
        try:
            self.client.fetch(local_path)
        except GitCommandError as e:
            # The pinned revision may already be in local history
            fetch_failed = True
            logger.warning(f"Failed to 'git fetch' in {local_path}: {e}")

        self._reset(pin, local_path)
        self._verify(pin, local_path)
        return SyncResult(
            pin=pin,
            action=SyncAction.RESET,
            previous_revision=current,
            fetch_failed=fetch_failed,
        )

    def sync_all(
        self, pins: Sequence[DependencyPin], max_workers: Optional[int] = None
    ) -> List[SyncResult]:
        """
        Synchronize every pin, concurrently.

        git is probed once up front. The first failure cancels pins that have
        not started yet, waits for in-flight ones, then is re-raised. Results
        are returned in pin order.

        Args:
            pins: Dependencies to synchronize
            max_workers: Worker count (defaults to the CPU count)

        Returns:
            One SyncResult per pin

        Raises:
            ToolUnavailableError: If git is not available
            SyncError: For the first dependency that failed
        """
        self.probe.ensure_available()
        return run_ordered(self.sync, pins, max_workers, thread_name_prefix="git-sync")

    def _clone(self, pin: DependencyPin, local_path: Path) -> None:
        parent = local_path.parent
        parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cloning required dependency {pin.name}: git clone {pin.remote} {local_path}")
        try:
            self.client.clone(pin.remote, local_path, cwd=parent)
        except GitCommandError as e:
            raise SyncError(f"Failed to clone {pin.name} from {pin.remote}: {e}") from e

    def _reset(self, pin: DependencyPin, local_path: Path) -> None:
        try:
            self.client.reset_hard(local_path, pin.revision)
        except GitCommandError as e:
            raise SyncError(
                f"Failed to reset {pin.name} in {local_path} to {pin.revision}: {e}"
            ) from e

    def _verify(self, pin: DependencyPin, local_path: Path) -> None:
        try:
            actual = self.client.current_revision(local_path)
        except GitCommandError as e:
            raise SyncError(f"Could not read the revision of {pin.name} after reset: {e}") from e
        if actual != pin.revision:
            raise SyncError(
                f"{pin.name} is at {actual} after reset, expected {pin.revision}. "
                + "Pins must name full commit hashes."
            )
