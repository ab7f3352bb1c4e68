"""Restart the managed service after a deploy, and run the health hook.

The built-in policy only ever restarts a service that is already running. A
service an operator stopped on purpose stays stopped across updates, and a
host without the service installed is left alone.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from hostrelease.core.deploy import hook_env
from hostrelease.core.errors import HealthCheckError, RestartError
from hostrelease.core.hooks import (
    CommandError,
    CommandRunner,
    ServiceManager,
    SubprocessRunner,
    SystemdServiceManager,
    run_shell,
)
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.results import ServiceState

logger = logging.getLogger(__name__)


class ServiceController:
    """Restart-if-active state machine, replaceable by a restart override."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        manager: ServiceManager | None = None,
        runner: CommandRunner | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._config = config
        self._runner = runner or SubprocessRunner()
        self._manager = manager or SystemdServiceManager(self._runner)
        self._sleep = sleep or time.sleep

    def restart_if_active(
        self, release_dir: Path, checkout_dir: Path | None = None
    ) -> ServiceState | None:
        """Restart the service if it is running.

        Returns the observed state, or None when the built-in policy was
        bypassed (restart override or ``skip_restart``).
        """
        override = self._config.hooks.restart
        if override:
            logger.info("running restart override")
            try:
                run_shell(self._runner, override, env=hook_env(release_dir, checkout_dir))
            except CommandError as exc:
                raise RestartError(f"restart override failed: {exc}") from exc
            return None

        if self._config.skip_restart:
            logger.info("skipping restart")
            return None

        service = self._config.service_name
        state = self._manager.state(service)
        if state is ServiceState.NOT_INSTALLED:
            logger.info("service %s not installed; skipping restart", service)
            return state
        if state is ServiceState.INACTIVE:
            logger.info("service %s installed but not active; skipping restart", service)
            return state

        logger.info("restarting %s", service)
        try:
            self._manager.restart(service)
        except CommandError as exc:
            raise RestartError(f"service {service} restart command failed: {exc}") from exc

        self._sleep(self._config.restart_settle_seconds)
        if self._manager.state(service) is not ServiceState.ACTIVE:
            raise RestartError(f"service {service} failed to restart")
        return ServiceState.ACTIVE

    def check_health(self, release_dir: Path, checkout_dir: Path | None = None) -> bool:
        """Run the health override if one is configured. Returns whether it ran."""
        command = self._config.hooks.health
        if not command:
            return False
        logger.info("running health check")
        try:
            run_shell(self._runner, command, env=hook_env(release_dir, checkout_dir))
        except CommandError as exc:
            raise HealthCheckError(f"health check failed: {exc}") from exc
        return True
