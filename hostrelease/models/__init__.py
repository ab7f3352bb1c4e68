"""hostrelease data models — Pydantic v2, frozen where they are records."""

from hostrelease.models.config import HookCommands, ReleaseConfig
from hostrelease.models.release import (
    MANIFEST_FILENAME,
    DeployedVersionMarker,
    DocumentFieldError,
    DocumentMalformedError,
    ReleaseManifest,
    parse_document,
)
from hostrelease.models.results import (
    RollbackResult,
    RunResult,
    RunStatus,
    ServiceState,
    UpdateResult,
    VerificationOutcome,
)

__all__ = [
    # config
    "HookCommands",
    "ReleaseConfig",
    # release documents
    "MANIFEST_FILENAME",
    "ReleaseManifest",
    "DeployedVersionMarker",
    "DocumentMalformedError",
    "DocumentFieldError",
    "parse_document",
    # results
    "RunResult",
    "RunStatus",
    "UpdateResult",
    "RollbackResult",
    "ServiceState",
    "VerificationOutcome",
]
