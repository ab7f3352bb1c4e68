"""Shared test fixtures for hostrelease.

The controllers talk to git, systemd, sudo, and the passwd database through
small protocols. The fakes here stand in for all of them so the full update
and rollback pipelines run against a temporary release store.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from hostrelease.core.errors import MarkerMissingError
from hostrelease.core.hooks import CommandError, FileMarkerReader
from hostrelease.core.release_store import ReleaseStore
from hostrelease.core.rollback import RollbackController
from hostrelease.core.update import UpdateController
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.release import MANIFEST_FILENAME, ReleaseManifest
from hostrelease.models.results import RollbackResult, ServiceState, UpdateResult


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class RecordedCall:
    argv: list[str]
    cwd: Path | None
    env: dict[str, str]


class FakeRunner:
    """``CommandRunner`` that records argv and answers from a lookup table."""

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self.outputs: dict[tuple[str, ...], str] = {}
        self._failures: list[tuple[str, ...]] = []

    def fail_on(self, *argv_prefix: str) -> None:
        self._failures.append(tuple(argv_prefix))

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = False,
    ) -> str:
        argv = list(argv)
        self.calls.append(RecordedCall(argv, cwd, dict(env or {})))
        for prefix in self._failures:
            if tuple(argv[: len(prefix)]) == prefix:
                raise CommandError(argv, 1, "boom")
        return self.outputs.get(tuple(argv), "")

    @property
    def argvs(self) -> list[list[str]]:
        return [call.argv for call in self.calls]


class FakeVcs:
    """``VcsClient`` that "clones" by copying a prepared source tree."""

    def __init__(self, source: Path, remote: str | None = None) -> None:
        self.source = source
        self.revision_id = "0" * 40
        self.branch_name: str | None = "main"
        self.remote = remote
        self.fail_clone = False
        self.cloned: list[tuple[str, str]] = []
        self.checked_out: list[str] = []
        self.trusted: list[Path] = []

    def clone(self, repo_url: str, branch: str, dest: Path) -> None:
        if self.fail_clone:
            raise CommandError(["git", "clone", repo_url], 128, "repository not found")
        self.cloned.append((repo_url, branch))
        shutil.copytree(self.source, dest, symlinks=True, dirs_exist_ok=True)

    def checkout_ref(self, checkout: Path, ref: str) -> None:
        self.checked_out.append(ref)

    def revision(self, checkout: Path, *, short: bool = False) -> str:
        return self.revision_id[:7] if short else self.revision_id

    def branch(self, checkout: Path) -> str | None:
        return self.branch_name

    def remote_url(self, checkout: Path) -> str | None:
        return self.remote

    def trust(self, repo_dir: Path) -> None:
        self.trusted.append(repo_dir)


class FakeServiceManager:
    """``ServiceManager`` with a scripted state before and after restart."""

    def __init__(
        self,
        state: ServiceState = ServiceState.NOT_INSTALLED,
        after_restart: ServiceState = ServiceState.ACTIVE,
    ) -> None:
        self.current = state
        self.after_restart = after_restart
        self.restart_fails = False
        self.restarts: list[str] = []

    def state(self, service: str) -> ServiceState:
        return self.current

    def restart(self, service: str) -> None:
        if self.restart_fails:
            raise CommandError(["systemctl", "restart", service], 1, "unit failed")
        self.restarts.append(service)
        self.current = self.after_restart


class RecordingDeploy:
    """``DeployHook`` that records releases and can act as the runtime.

    With ``marker_path`` set it writes the deployed-version marker the way a
    real runtime would, from the release's manifest.
    """

    def __init__(self, marker_path: Path | None = None) -> None:
        self.marker_path = marker_path
        self.fail = False
        self.report_revision: str | None = None
        self.deployed: list[Path] = []

    def deploy(self, release_dir: Path, checkout_dir: Path | None) -> None:
        if self.fail:
            raise CommandError(["bash", "bin/deploy.sh"], 1)
        self.deployed.append(Path(release_dir))
        if self.marker_path is None:
            return
        manifest = ReleaseStore.read_manifest(release_dir)
        revision = self.report_revision or (
            manifest.revision_id if manifest else Path(release_dir).name
        )
        self.marker_path.parent.mkdir(parents=True, exist_ok=True)
        self.marker_path.write_text(
            json.dumps({"revision_id": revision, "short": revision[:7]}),
            encoding="utf-8",
        )


class FakeMarkerReader:
    """``MarkerReader`` returning fixed text, or missing when ``text`` is None."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text
        self.reads: list[tuple[Path, str]] = []

    def read(self, path: Path, user: str) -> str:
        self.reads.append((path, user))
        if self.text is None:
            raise MarkerMissingError(f"deployed version file missing or unreadable: {path}")
        return self.text


@dataclass
class FakeIdentity:
    """``HostIdentity`` with settable answers."""

    privileged: bool = False
    users: set[str] = field(default_factory=set)
    sudo: str | None = None
    name: str = "tester"

    def is_privileged(self) -> bool:
        return self.privileged

    def user_exists(self, name: str) -> bool:
        return name in self.users

    def sudo_user(self) -> str | None:
        return self.sudo

    def operator(self) -> str:
        return self.name


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class ReleaseHarness:
    """Builds configs and controllers wired to the fakes above."""

    def __init__(self, tmp_path: Path, source: Path) -> None:
        self.tmp_path = tmp_path
        self.source = source
        self.runner = FakeRunner()
        self.vcs = FakeVcs(source)
        self.identity = FakeIdentity()
        self.service = FakeServiceManager()
        self.deployer = RecordingDeploy()
        self.marker = FakeMarkerReader()
        self.sleeps: list[float] = []
        self.defaults: dict[str, Any] = {
            "release_root": tmp_path / "store",
            "tmp_parent": tmp_path / "tmp",
            "repo": str(source),
            "branch": "main",
            "preflight_cmd": "",
            "allow_non_root": True,
            "skip_version_check": True,
            "skip_cli_link": True,
        }

    def config(self, **overrides: Any) -> ReleaseConfig:
        return ReleaseConfig(**{**self.defaults, **overrides})

    def _collaborators(self) -> dict[str, Any]:
        return {
            "runner": self.runner,
            "identity": self.identity,
            "service_manager": self.service,
            "marker_reader": self.marker,
            "deploy_hook": self.deployer,
            "sleep": self.sleeps.append,
        }

    def update_controller(self, **overrides: Any) -> UpdateController:
        return UpdateController(self.config(**overrides), vcs=self.vcs, **self._collaborators())

    def rollback_controller(self, **overrides: Any) -> RollbackController:
        return RollbackController(self.config(**overrides), **self._collaborators())

    def update(self, revision: str, **overrides: Any) -> UpdateResult:
        self.vcs.revision_id = revision
        return self.update_controller(**overrides).run()

    def rollback(self, target: str = "previous", **overrides: Any) -> RollbackResult:
        return self.rollback_controller(**overrides).run(target)

    @property
    def store(self) -> ReleaseStore:
        return ReleaseStore(self.config())

    def current_name(self) -> str | None:
        current = self.store.current()
        return current.name if current else None

    def previous_name(self) -> str | None:
        previous = self.store.previous()
        return previous.name if previous else None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A working tree with nested VCS metadata that must never be published."""
    src = tmp_path / "src"
    (src / "bin").mkdir(parents=True)
    (src / "lib" / "vendor" / ".hg").mkdir(parents=True)
    (src / ".git" / "objects").mkdir(parents=True)
    (src / "README.md").write_text("agent host\n", encoding="utf-8")
    (src / "bin" / "deploy.sh").write_text("#!/bin/bash\nexit 0\n", encoding="utf-8")
    (src / "bin" / "deploy.sh").chmod(0o755)
    (src / "lib" / "agent.py").write_text("VERSION = 1\n", encoding="utf-8")
    (src / "lib" / "vendor" / ".hg" / "store").write_text("x", encoding="utf-8")
    (src / ".git" / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    (src / "lib" / "current_agent").symlink_to("agent.py")
    return src


@pytest.fixture
def harness(tmp_path: Path, source_tree: Path) -> ReleaseHarness:
    """A release store under tmp_path with every external seam faked."""
    return ReleaseHarness(tmp_path, source_tree)


@pytest.fixture
def verifying_harness(harness: ReleaseHarness, tmp_path: Path) -> ReleaseHarness:
    """Harness where deploy writes a real marker and verification is enforced."""
    marker = tmp_path / "runtime" / ".agent" / "deployed-version.json"
    harness.identity.privileged = True
    harness.identity.users.add("agent")
    harness.deployer.marker_path = marker
    harness.marker = FileMarkerReader()
    harness.defaults.update(skip_version_check=False, marker_path=marker)
    return harness


@pytest.fixture
def store_config(tmp_path: Path) -> ReleaseConfig:
    """A minimal config rooted at a temp store."""
    return ReleaseConfig(release_root=tmp_path / "store", tmp_parent=tmp_path / "tmp")


@pytest.fixture
def make_release(store_config: ReleaseConfig):
    """Factory fixture: create ``releases/<revision>`` directly on disk."""

    def _factory(
        revision: str,
        *,
        config: ReleaseConfig | None = None,
        manifest: bool = True,
        files: dict[str, str] | None = None,
    ) -> Path:
        cfg = config or store_config
        release_dir = cfg.releases_dir / revision
        release_dir.mkdir(parents=True)
        for rel, content in (files or {"README.md": revision}).items():
            path = release_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        if manifest:
            (release_dir / MANIFEST_FILENAME).write_text(
                ReleaseManifest(
                    revision_id=revision,
                    short_id=revision[:7],
                    branch="main",
                    source_repo="/srv/agent.git",
                    built_by="tester",
                ).to_json(),
                encoding="utf-8",
            )
        return release_dir

    return _factory


@pytest.fixture
def identity() -> FakeIdentity:
    """An unprivileged operator named ``tester``."""
    return FakeIdentity()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
