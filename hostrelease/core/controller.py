"""Shared rollout pipeline for the update and rollback controllers.

Both controllers end the same way once they have a published release in hand:

    deploy -> restart_if_active -> health -> verify -> cutover -> CLI link

Everything up to and including verify may fail and abort the run; none of it
touches ``current`` or ``previous``. Cutover runs last and only on success.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path

from hostrelease.core.cutover import CutoverManager
from hostrelease.core.deploy import DeployInvoker
from hostrelease.core.errors import ConfigurationError
from hostrelease.core.hooks import (
    CommandRunner,
    DeployHook,
    HostIdentity,
    MarkerReader,
    PosixHostIdentity,
    ServiceManager,
    SubprocessRunner,
)
from hostrelease.core.release_store import ReleaseStore
from hostrelease.core.service import ServiceController
from hostrelease.core.verifier import VersionVerifier
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.results import RunResult

logger = logging.getLogger(__name__)


def same_path(a: Path | None, b: Path | None) -> bool:
    if a is None or b is None:
        return False
    return os.path.realpath(a) == os.path.realpath(b)


class BaseController:
    """Wires the release components together from one ``ReleaseConfig``.

    Every external collaborator can be injected; anything not supplied gets
    the default subprocess/OS-backed implementation.
    """

    action: str = "release"

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        runner: CommandRunner | None = None,
        identity: HostIdentity | None = None,
        service_manager: ServiceManager | None = None,
        marker_reader: MarkerReader | None = None,
        deploy_hook: DeployHook | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or SubprocessRunner()
        self.identity = identity or PosixHostIdentity()

        self.store = ReleaseStore(config)
        self.cutover = CutoverManager()
        self.deployer = DeployInvoker(
            config, runner=self.runner, identity=self.identity, hook=deploy_hook
        )
        self.service = ServiceController(
            config, manager=service_manager, runner=self.runner, sleep=sleep
        )
        self.verifier = VersionVerifier(
            config, reader=marker_reader, identity=self.identity
        )

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def require_privilege(self) -> None:
        if self.config.allow_non_root or self.identity.is_privileged():
            return
        raise ConfigurationError(
            f"{self.action} requires root (or HOSTRELEASE_ALLOW_NON_ROOT=1 for tests)"
        )

    # ------------------------------------------------------------------
    # Shared pipeline tail
    # ------------------------------------------------------------------

    def rollout(
        self,
        release_dir: Path,
        expected_revision: str,
        result: RunResult,
        *,
        checkout_dir: Path | None = None,
    ) -> None:
        """Deploy, restart, health-check, and verify. Pointers are not touched."""
        self.deployer.deploy(release_dir, checkout_dir)
        result.steps_completed.append("deploy")

        result.service_state = self.service.restart_if_active(release_dir, checkout_dir)
        result.steps_completed.append("restart")

        if self.service.check_health(release_dir, checkout_dir):
            result.steps_completed.append("health")

        result.verification = self.verifier.verify(expected_revision)
        result.steps_completed.append("verify")

    def cut_over(
        self, release_dir: Path, old_current: Path | None, result: RunResult
    ) -> None:
        """Move the old release to ``previous`` and the new one to ``current``."""
        if old_current is not None and not same_path(old_current, release_dir):
            self.cutover.atomic_swap(old_current, self.config.previous_link)
            result.previous_release = old_current
        self.cutover.atomic_swap(release_dir, self.config.current_link)
        result.steps_completed.append("cutover")

    def link_cli(self, result: RunResult) -> None:
        """Repoint the global CLI entry into the new current release."""
        if self.config.skip_cli_link:
            return
        if not self.identity.is_privileged():
            logger.debug("non-root run: leaving %s alone", self.config.cli_link)
            return
        entry = self.config.current_link / "bin" / self.config.cli_entry_name
        self.cutover.atomic_swap(entry, self.config.cli_link)
        result.steps_completed.append("cli_link")
