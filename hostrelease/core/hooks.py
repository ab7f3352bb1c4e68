"""Seams to the outside world: subprocesses, git, systemd, and host identity.

Every external tool the release controller talks to sits behind a
``typing.Protocol`` so it can be replaced by a fake in tests. The default
implementations shell out with explicit argument vectors; the only place a
string goes through a shell is ``run_shell``, which exists for the
operator-supplied hook commands.
"""

from __future__ import annotations

import getpass
import logging
import os
import pwd
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from hostrelease.core.errors import MarkerMissingError
from hostrelease.models.results import ServiceState

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when a subprocess cannot be started or exits non-zero."""

    def __init__(
        self, argv: Sequence[str], returncode: int | None, detail: str = ""
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.detail = detail
        if returncode is None:
            msg = f"could not run {self.argv[0]!r}: {detail}"
        else:
            msg = f"{self.argv[0]!r} exited with status {returncode}"
            if detail:
                msg = f"{msg}: {detail}"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class CommandRunner(Protocol):
    """Runs one command to completion.

    Returns captured stdout when ``capture`` is set, otherwise ``""`` with the
    child's output passed straight through to the terminal. Raises
    ``CommandError`` on failure.
    """

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> str: ...


@runtime_checkable
class VcsClient(Protocol):
    """Source-control operations needed to fetch a release candidate."""

    def clone(self, repo_url: str, branch: str, dest: Path) -> None: ...

    def checkout_ref(self, checkout: Path, ref: str) -> None: ...

    def revision(self, checkout: Path, *, short: bool = False) -> str: ...

    def branch(self, checkout: Path) -> str | None: ...

    def remote_url(self, checkout: Path) -> str | None: ...

    def trust(self, repo_dir: Path) -> None: ...


@runtime_checkable
class ServiceManager(Protocol):
    """Observes and restarts the managed service."""

    def state(self, service: str) -> ServiceState: ...

    def restart(self, service: str) -> None: ...


@runtime_checkable
class DeployHook(Protocol):
    """Installs a published release onto the runtime."""

    def deploy(self, release_dir: Path, checkout_dir: Path | None) -> None: ...


@runtime_checkable
class MarkerReader(Protocol):
    """Reads the deployed-version marker as the runtime user.

    Raises ``MarkerMissingError`` if the marker cannot be read.
    """

    def read(self, path: Path, user: str) -> str: ...


@runtime_checkable
class HostIdentity(Protocol):
    """Who we are running as, and who exists on the host."""

    def is_privileged(self) -> bool: ...

    def user_exists(self, name: str) -> bool: ...

    def sudo_user(self) -> str | None: ...

    def operator(self) -> str: ...


# ---------------------------------------------------------------------------
# Default implementations
# ---------------------------------------------------------------------------


class SubprocessRunner:
    """``subprocess.run`` with an explicit argv and no shell."""

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> str:
        full_env = {**os.environ, **env} if env else None
        logger.debug("exec: %s (cwd=%s)", " ".join(argv), cwd or ".")
        try:
            proc = subprocess.run(
                list(argv),
                cwd=cwd,
                env=full_env,
                capture_output=capture,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise CommandError(argv, None, str(exc)) from exc

        if proc.returncode != 0:
            detail = (proc.stderr or "").strip()[:500] if capture else ""
            raise CommandError(argv, proc.returncode, detail)
        return proc.stdout if capture else ""


def run_shell(
    runner: CommandRunner,
    command: str,
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run an operator-supplied hook command through a login shell."""
    runner.run(["bash", "-lc", command], cwd=cwd, env=env)


class GitClient:
    """``VcsClient`` backed by the ``git`` executable."""

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or SubprocessRunner()

    def _git(self, *args: str, cwd: Path | None = None) -> str:
        return self._runner.run(["git", *args], cwd=cwd, capture=True).strip()

    def clone(self, repo_url: str, branch: str, dest: Path) -> None:
        self._git(
            "clone", "--quiet", "--single-branch", "--branch", branch, repo_url, str(dest)
        )

    def checkout_ref(self, checkout: Path, ref: str) -> None:
        self._git("-C", str(checkout), "fetch", "--quiet", "origin", ref)
        self._git("-C", str(checkout), "checkout", "--quiet", "--detach", "FETCH_HEAD")

    def revision(self, checkout: Path, *, short: bool = False) -> str:
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        return self._git("-C", str(checkout), *args)

    def branch(self, checkout: Path) -> str | None:
        try:
            name = self._git("-C", str(checkout), "rev-parse", "--abbrev-ref", "HEAD")
        except CommandError:
            return None
        # A detached HEAD has no branch name.
        return None if name in ("", "HEAD") else name

    def remote_url(self, checkout: Path) -> str | None:
        try:
            url = self._git("-C", str(checkout), "remote", "get-url", "origin")
        except CommandError:
            return None
        return url or None

    def trust(self, repo_dir: Path) -> None:
        real = Path(repo_dir).resolve()
        for path in (real, real / ".git"):
            self._git("config", "--global", "--add", "safe.directory", str(path))


class SystemdServiceManager:
    """``ServiceManager`` backed by ``systemctl``.

    A service counts as installed only when systemd is running on the host
    and the unit is enabled.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        systemd_run_dir: Path = Path("/run/systemd/system"),
    ) -> None:
        self._runner = runner or SubprocessRunner()
        self._systemd_run_dir = systemd_run_dir

    def has_systemd(self) -> bool:
        return shutil.which("systemctl") is not None and self._systemd_run_dir.is_dir()

    def _succeeds(self, *args: str) -> bool:
        try:
            self._runner.run(["systemctl", *args], capture=True)
        except CommandError:
            return False
        return True

    def state(self, service: str) -> ServiceState:
        if not self.has_systemd() or not self._succeeds("is-enabled", service):
            return ServiceState.NOT_INSTALLED
        if self._succeeds("is-active", service):
            return ServiceState.ACTIVE
        return ServiceState.INACTIVE

    def restart(self, service: str) -> None:
        self._runner.run(["systemctl", "restart", service])


class SudoMarkerReader:
    """Reads the marker with ``sudo -u <runtime user> cat``.

    The marker lives in the runtime user's home, which the orchestrating
    (root) user may not be able to read directly on hardened hosts.
    """

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or SubprocessRunner()

    def read(self, path: Path, user: str) -> str:
        try:
            return self._runner.run(
                ["sudo", "-n", "-u", user, "cat", str(path)], capture=True
            )
        except CommandError as exc:
            raise MarkerMissingError(
                f"deployed version file missing or unreadable: {path} ({exc})"
            ) from exc


class FileMarkerReader:
    """Reads the marker directly, as the current user."""

    def read(self, path: Path, user: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise MarkerMissingError(
                f"deployed version file missing or unreadable: {path} ({exc.strerror})"
            ) from exc


class PosixHostIdentity:
    """``HostIdentity`` from the process credentials and the passwd database."""

    def is_privileged(self) -> bool:
        return os.geteuid() == 0

    def user_exists(self, name: str) -> bool:
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def sudo_user(self) -> str | None:
        return os.environ.get("SUDO_USER") or None

    def operator(self) -> str:
        # Under sudo, credit the human who invoked it rather than root.
        return self.sudo_user() or getpass.getuser()
