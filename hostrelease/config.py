"""Environment-driven settings for hostrelease.

Centralized config using pydantic-settings. Reads from a .env file and
HOSTRELEASE_* environment variables. Settings are read exactly once per
invocation and turned into an immutable ``ReleaseConfig`` (see
``hostrelease.models.config``); no other module reads the environment.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ReleaseSettings(BaseSettings):
    """Release controller settings with environment variable overrides.

    Examples
    --------
    Point the controller at a scratch store and disable host-level checks::

        export HOSTRELEASE_RELEASE_ROOT=/tmp/store
        export HOSTRELEASE_ALLOW_NON_ROOT=true
        export HOSTRELEASE_SKIP_VERSION_CHECK=true

    Replace the built-in restart with a custom command::

        HOSTRELEASE_RESTART_CMD="systemctl try-restart agent-host"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HOSTRELEASE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Release store
    release_root: Path = Path("/opt/hostrelease")
    tmp_parent: Path = Path("/tmp")
    install_dir: Path | None = None  # checkout of the running code, if any

    # Source selection (empty means "resolve")
    repo: str = ""
    branch: str = ""
    ref: str = ""

    # Command hooks (empty means built-in behaviour)
    preflight_cmd: str = "bin/test.sh"
    deploy_cmd: str = ""
    restart_cmd: str = ""
    health_cmd: str = ""

    # Step switches
    skip_preflight: bool = False
    skip_restart: bool = False
    skip_version_check: bool = False
    skip_cli_link: bool = False
    allow_non_root: bool = False

    # Managed service and runtime identity
    service_name: str = "agent-host"
    restart_settle_seconds: float = 3.0
    runtime_user: str = "agent"
    runtime_home: Path | None = None
    marker_path: Path | None = None

    # Deploy procedure shipped inside each release
    deploy_script: str = "bin/deploy.sh"
    config_user: str = ""

    # Global CLI entry point
    cli_entry_name: str = "hostrelease"
    cli_link_path: Path | None = None

    # Observability
    log_level: str = "INFO"
