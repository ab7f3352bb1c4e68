"""Error taxonomy for release publishing, deployment, and rollback.

Every failure raised by this package derives from ``ReleaseError`` and carries
the name of the step that failed, so an operator can tell a code defect
(preflight/deploy) from an infrastructure problem (restart/health) from an
invariant violation (integrity/verify) by reading one line on stderr.

None of these errors are retried. Callers either surface them or let the
process exit.
"""

from __future__ import annotations

from typing import ClassVar


class ReleaseError(RuntimeError):
    """Base class for every failure raised by hostrelease."""

    step: ClassVar[str] = "release"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.step}] {self.message}"


# ---------------------------------------------------------------------------
# Configuration and integrity
# ---------------------------------------------------------------------------


class ConfigurationError(ReleaseError):
    """Missing or invalid configuration. Raised before any side effect."""

    step = "config"


class IntegrityError(ReleaseError):
    """A release directory is missing, corrupt, or contains VCS metadata."""

    step = "integrity"


class ResolutionError(ReleaseError):
    """A rollback target could not be resolved to exactly one release."""

    step = "resolve"


class AmbiguousReleaseError(ResolutionError):
    """A revision prefix matched more than one published release."""

    def __init__(self, prefix: str, candidates: list[str]) -> None:
        self.prefix = prefix
        self.candidates = candidates
        super().__init__(
            f"ambiguous release prefix '{prefix}' matches: {', '.join(candidates)}"
        )


class ReleaseNotFoundError(ResolutionError):
    """No published release matched the requested revision."""


# ---------------------------------------------------------------------------
# External steps
# ---------------------------------------------------------------------------


class StepError(ReleaseError):
    """An external step (VCS, hook, service manager) failed."""


class FetchError(StepError):
    step = "fetch"


class PreflightError(StepError):
    step = "preflight"


class PublishError(StepError):
    step = "publish"


class DeployError(StepError):
    step = "deploy"


class RestartError(StepError):
    step = "restart"


class HealthCheckError(StepError):
    step = "health"


# ---------------------------------------------------------------------------
# Deployed-version verification
# ---------------------------------------------------------------------------


class VerificationError(ReleaseError):
    """The runtime is not provably running the release just deployed."""

    step = "verify"


class MarkerMissingError(VerificationError):
    """The deployed-version marker does not exist or could not be read."""


class MarkerMalformedError(VerificationError):
    """The deployed-version marker is not a JSON object."""


class MarkerFieldError(VerificationError):
    """The marker parsed, but carries no string revision-id."""


class VersionMismatchError(VerificationError):
    """The marker names a different revision than the one deployed."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"deployed revision mismatch (expected {expected}, got {actual})"
        )


# ---------------------------------------------------------------------------
# Cutover
# ---------------------------------------------------------------------------


class CutoverError(ReleaseError):
    """An atomic pointer swap failed. Never assumed partially applied."""

    step = "cutover"
