"""Outcome records for update and rollback runs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


class ServiceState(str, Enum):
    """Observed state of the managed service."""

    NOT_INSTALLED = "not_installed"
    INACTIVE = "inactive"
    ACTIVE = "active"


class VerificationOutcome(str, Enum):
    """How the deployed-version check concluded (failures raise instead)."""

    VERIFIED = "verified"
    SKIPPED_DISABLED = "skipped_disabled"
    SKIPPED_UNPRIVILEGED = "skipped_unprivileged"
    SKIPPED_NO_RUNTIME_USER = "skipped_no_runtime_user"


class RunStatus(str, Enum):
    SUCCESS = "success"
    NOOP = "noop"


class RunResult(BaseModel):
    """Fields shared by update and rollback results.

    Results are filled in as the run progresses, so unlike the other models
    they are not frozen.
    """

    status: RunStatus = RunStatus.SUCCESS
    revision_id: str = ""
    release_dir: Path | None = None
    previous_release: Path | None = None
    service_state: ServiceState | None = None
    verification: VerificationOutcome | None = None
    steps_completed: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: float = 0.0

    @property
    def short_id(self) -> str:
        return self.revision_id[:7]


class UpdateResult(RunResult):
    """Outcome of a successful update."""

    repo_url: str = ""
    branch: str = ""
    reused_release: bool = False


class RollbackResult(RunResult):
    """Outcome of a successful (or no-op) rollback."""

    target: str = "previous"
