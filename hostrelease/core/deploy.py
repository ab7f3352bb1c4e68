"""Run the deploy procedure for a published release.

Releases are self-describing: each one ships the script that installs it.
An operator can replace that script with an override command. Either way the
only contract here is "invoke it and propagate its exit status"; what the
procedure does to the runtime is its own business.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from hostrelease.core.errors import DeployError
from hostrelease.core.hooks import (
    CommandError,
    CommandRunner,
    DeployHook,
    HostIdentity,
    PosixHostIdentity,
    SubprocessRunner,
    run_shell,
)
from hostrelease.models.config import ReleaseConfig

logger = logging.getLogger(__name__)

ENV_RELEASE_DIR = "HOSTRELEASE_RELEASE_DIR"
ENV_CHECKOUT_DIR = "HOSTRELEASE_CHECKOUT_DIR"
ENV_SRC = "HOSTRELEASE_SRC"
ENV_CONFIG_USER = "HOSTRELEASE_CONFIG_USER"


def hook_env(release_dir: Path, checkout_dir: Path | None) -> dict[str, str]:
    """Context passed to every operator-supplied hook command."""
    return {
        ENV_RELEASE_DIR: str(release_dir),
        ENV_CHECKOUT_DIR: str(checkout_dir) if checkout_dir else "",
    }


class ShellCommandDeploy:
    """Deploy by running an operator-supplied shell command."""

    def __init__(self, command: str, runner: CommandRunner | None = None) -> None:
        self.command = command
        self._runner = runner or SubprocessRunner()

    def deploy(self, release_dir: Path, checkout_dir: Path | None) -> None:
        logger.info("running deploy override")
        run_shell(self._runner, self.command, env=hook_env(release_dir, checkout_dir))


class ReleaseScriptDeploy:
    """Deploy by running the script shipped inside the release."""

    def __init__(
        self,
        script: str,
        config_user: str = "",
        runner: CommandRunner | None = None,
    ) -> None:
        self.script = script
        self.config_user = config_user
        self._runner = runner or SubprocessRunner()

    def deploy(self, release_dir: Path, checkout_dir: Path | None) -> None:
        script_path = Path(release_dir) / self.script
        if not (script_path.is_file() and os.access(script_path, os.X_OK)):
            raise DeployError(f"missing deploy script in release: {script_path}")

        logger.info("deploying release to runtime: %s", release_dir)
        self._runner.run(
            ["bash", str(script_path)],
            env={ENV_SRC: str(release_dir), ENV_CONFIG_USER: self.config_user},
        )


class DeployInvoker:
    """Chooses the deploy procedure for a release and runs it."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        runner: CommandRunner | None = None,
        identity: HostIdentity | None = None,
        hook: DeployHook | None = None,
    ) -> None:
        self._config = config
        self._runner = runner or SubprocessRunner()
        self._identity = identity or PosixHostIdentity()
        self._hook = hook

    def _select_hook(self) -> DeployHook:
        if self._hook is not None:
            return self._hook
        override = self._config.hooks.deploy
        if override:
            return ShellCommandDeploy(override, self._runner)
        config_user = self._config.config_user or self._identity.sudo_user() or ""
        return ReleaseScriptDeploy(self._config.deploy_script, config_user, self._runner)

    def deploy(self, release_dir: Path, checkout_dir: Path | None = None) -> None:
        try:
            self._select_hook().deploy(release_dir, checkout_dir)
        except CommandError as exc:
            raise DeployError(f"deploy failed for {release_dir}: {exc}") from exc
