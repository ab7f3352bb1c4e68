"""Rollback controller: redeploy an already-published release and cut over.

The target is either the literal ``previous`` or a revision-id, which may be
abbreviated to any prefix that matches exactly one published release. The
release already exists, so fetch, preflight, and publish are skipped; the
rest of the pipeline is the update pipeline unchanged. A successful rollback
swaps ``current`` and ``previous``, so two rollbacks to ``previous`` toggle
between the same two releases.
"""

from __future__ import annotations

import logging
import time

from hostrelease.core.controller import BaseController, same_path
from hostrelease.core.errors import ConfigurationError
from hostrelease.core.release_store import PREVIOUS_TOKEN
from hostrelease.models.results import RollbackResult, RunStatus

logger = logging.getLogger(__name__)


class RollbackController(BaseController):
    action = "rollback"

    def run(self, target: str = PREVIOUS_TOKEN) -> RollbackResult:
        start = time.monotonic()
        self.require_privilege()
        self.store.validate_root()

        if not self.store.releases_dir.is_dir():
            raise ConfigurationError(
                f"release directory missing: {self.store.releases_dir}"
            )
        current = self.store.current()
        if current is None:
            raise ConfigurationError(
                f"current release link is missing: {self.config.current_link}"
            )

        target_dir = self.store.resolve(target)
        self.store.verify_release(target_dir)

        result = RollbackResult(target=target, release_dir=target_dir)
        logger.info("target: %s", target_dir)
        logger.info("current: %s", current)

        if same_path(target_dir, current):
            logger.info("already on requested release")
            result.status = RunStatus.NOOP
            result.revision_id = target_dir.name
            result.duration_seconds = round(time.monotonic() - start, 2)
            return result

        result.revision_id = self.store.expected_revision(target_dir)
        try:
            self.rollout(target_dir, result.revision_id, result)
            self.cut_over(target_dir, current, result)
            self.link_cli(result)
        finally:
            result.duration_seconds = round(time.monotonic() - start, 2)

        logger.info("rollback complete: current -> %s", self.store.current())
        return result
