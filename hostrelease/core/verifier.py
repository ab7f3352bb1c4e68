"""Cross-check that the runtime is running the release we just deployed.

The deploy procedure and this controller live in different trust domains: a
deploy script can exit 0 while the runtime keeps the old code. The runtime
records what it believes it runs in a marker file owned by the runtime user;
reading that marker back is the only check that catches that failure.

Skips are explicit and logged, never silent defaults:
  * disabled by configuration (test harnesses),
  * not privileged enough to read as the runtime user,
  * runtime user not provisioned yet (bootstrap).
"""

from __future__ import annotations

import logging

from hostrelease.core.errors import (
    MarkerFieldError,
    MarkerMalformedError,
    VersionMismatchError,
)
from hostrelease.core.hooks import (
    HostIdentity,
    MarkerReader,
    PosixHostIdentity,
    SudoMarkerReader,
)
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.release import (
    DeployedVersionMarker,
    DocumentFieldError,
    DocumentMalformedError,
    parse_document,
)
from hostrelease.models.results import VerificationOutcome

logger = logging.getLogger(__name__)


class VersionVerifier:
    def __init__(
        self,
        config: ReleaseConfig,
        *,
        reader: MarkerReader | None = None,
        identity: HostIdentity | None = None,
    ) -> None:
        self._config = config
        self._reader = reader or SudoMarkerReader()
        self._identity = identity or PosixHostIdentity()

    def read_marker(self) -> DeployedVersionMarker:
        """Read and parse the marker, keeping the three failure kinds apart."""
        path = self._config.deployed_marker_path
        text = self._reader.read(path, self._config.runtime_user)
        try:
            return parse_document(DeployedVersionMarker, text)
        except DocumentMalformedError as exc:
            raise MarkerMalformedError(f"deployed version file malformed: {path}: {exc}") from exc
        except DocumentFieldError as exc:
            raise MarkerFieldError(
                f"deployed version file has no revision id: {path}: {exc}"
            ) from exc

    def verify(self, expected_revision_id: str) -> VerificationOutcome:
        if self._config.skip_version_check:
            logger.info("version check disabled; skipping deployed version verification")
            return VerificationOutcome.SKIPPED_DISABLED

        if not self._identity.is_privileged():
            logger.info("non-root run: skipping deployed version verification")
            return VerificationOutcome.SKIPPED_UNPRIVILEGED

        user = self._config.runtime_user
        if not self._identity.user_exists(user):
            logger.info(
                "runtime user '%s' missing; skipping deployed version verification", user
            )
            return VerificationOutcome.SKIPPED_NO_RUNTIME_USER

        marker = self.read_marker()
        if marker.revision_id != expected_revision_id:
            raise VersionMismatchError(expected_revision_id, marker.revision_id)

        logger.info("deployed version verified: %s", expected_revision_id[:7])
        return VerificationOutcome.VERIFIED
