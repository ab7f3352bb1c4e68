"""Per-invocation release configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from hostrelease.config import ReleaseSettings
from hostrelease.core.errors import ConfigurationError


class HookCommands(BaseModel):
    """Shell commands that replace a built-in step. ``None`` keeps the default."""

    model_config = ConfigDict(frozen=True)

    preflight: str | None = None
    deploy: str | None = None
    restart: str | None = None
    health: str | None = None


class ReleaseConfig(BaseModel):
    """Everything one update or rollback needs to know, resolved up front.

    Built once from ``ReleaseSettings`` plus command-line overrides and
    passed down to every component.
    """

    model_config = ConfigDict(frozen=True)

    release_root: Path = Path("/opt/hostrelease")
    tmp_parent: Path = Path("/tmp")
    install_dir: Path | None = None

    repo: str = ""
    branch: str = ""
    ref: str = ""

    preflight_cmd: str = "bin/test.sh"
    deploy_cmd: str = ""
    restart_cmd: str = ""
    health_cmd: str = ""

    skip_preflight: bool = False
    skip_restart: bool = False
    skip_version_check: bool = False
    skip_cli_link: bool = False
    allow_non_root: bool = False

    service_name: str = "agent-host"
    restart_settle_seconds: float = 3.0
    runtime_user: str = "agent"
    runtime_home: Path | None = None
    marker_path: Path | None = None

    deploy_script: str = "bin/deploy.sh"
    config_user: str = ""

    cli_entry_name: str = "hostrelease"
    cli_link_path: Path | None = None

    @field_validator("release_root", "tmp_parent")
    @classmethod
    def _absolute(cls, value: Path) -> Path:
        if not str(value).strip():
            raise ValueError("path must not be empty")
        return value.expanduser().absolute()

    @field_validator("restart_settle_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @classmethod
    def from_settings(
        cls, settings: ReleaseSettings | None = None, **overrides: Any
    ) -> ReleaseConfig:
        """Merge settings with explicit overrides; ``None`` overrides are ignored."""
        try:
            settings = settings or ReleaseSettings()
            data = settings.model_dump(include=set(cls.model_fields))
            data.update({k: v for k, v in overrides.items() if v is not None})
            return cls(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid configuration: {exc}") from exc

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    @property
    def releases_dir(self) -> Path:
        return self.release_root / "releases"

    @property
    def current_link(self) -> Path:
        return self.release_root / "current"

    @property
    def previous_link(self) -> Path:
        return self.release_root / "previous"

    @property
    def source_url_file(self) -> Path:
        return self.release_root / "source.url"

    @property
    def source_branch_file(self) -> Path:
        return self.release_root / "source.branch"

    @property
    def runtime_home_dir(self) -> Path:
        return self.runtime_home or Path("/home") / self.runtime_user

    @property
    def deployed_marker_path(self) -> Path:
        return self.marker_path or (
            self.runtime_home_dir / ".agent" / "deployed-version.json"
        )

    @property
    def cli_link(self) -> Path:
        return self.cli_link_path or Path("/usr/local/bin") / self.cli_entry_name

    @property
    def hooks(self) -> HookCommands:
        return HookCommands(
            preflight=self.preflight_cmd or None,
            deploy=self.deploy_cmd or None,
            restart=self.restart_cmd or None,
            health=self.health_cmd or None,
        )
