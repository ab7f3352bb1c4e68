"""Update controller: fetch a revision, publish it, deploy it, cut over.

Lifecycle:
1. Resolve the source repository and branch
2. Remember them for bare re-invocations
3. Clone the target ref into a temporary checkout
4. Run preflight checks inside the checkout
5. Publish an immutable, VCS-free release (no-op if already published)
6. Deploy, restart if active, health-check, verify the deployed version
7. Atomically switch ``previous`` and ``current``
8. Repoint the global CLI entry and re-check the release

A failure anywhere before step 7 leaves ``current`` exactly as it was.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any

from hostrelease.core.controller import BaseController
from hostrelease.core.deploy import ENV_CHECKOUT_DIR
from hostrelease.core.errors import ConfigurationError, FetchError, PreflightError
from hostrelease.core.hooks import CommandError, GitClient, VcsClient, run_shell
from hostrelease.core.publisher import ReleasePublisher
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.results import UpdateResult

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


class UpdateController(BaseController):
    action = "update"

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        vcs: VcsClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        self.vcs = vcs or GitClient(self.runner)
        self.publisher = ReleasePublisher(self.store, self.identity)

    # ------------------------------------------------------------------
    # Source resolution
    # ------------------------------------------------------------------

    def _install_checkout(self) -> Path | None:
        install_dir = self.config.install_dir
        if install_dir is not None and (install_dir / ".git").is_dir():
            return install_dir
        return None

    def resolve_source(self) -> tuple[str, str]:
        """Pick the repo URL and branch.

        Precedence: explicit override > remembered value > the install
        checkout's own origin/branch > default (branch only).
        """
        remembered_url, remembered_branch = self.store.remembered_source()
        install = self._install_checkout()

        repo_url = self.config.repo or remembered_url
        if not repo_url and install is not None:
            repo_url = self.vcs.remote_url(install)
        if not repo_url:
            raise ConfigurationError(
                "cannot resolve update repo URL; pass --repo or set HOSTRELEASE_REPO"
            )

        branch = self.config.branch or remembered_branch
        if not branch and install is not None:
            branch = self.vcs.branch(install)
        branch = branch or DEFAULT_BRANCH

        if not repo_url.strip():
            raise ConfigurationError("empty repo URL")
        if not branch.strip():
            raise ConfigurationError("empty branch")
        return repo_url.strip(), branch.strip()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _trust_local_repo(self, repo_url: str) -> None:
        """Root cloning an admin-owned local repo trips git's safe.directory check."""
        repo_path = Path(repo_url)
        if not (self.identity.is_privileged() and (repo_path / ".git").is_dir()):
            return
        try:
            self.vcs.trust(repo_path)
        except CommandError as exc:
            logger.warning("could not mark %s as a safe directory: %s", repo_path, exc)

    def fetch(self, repo_url: str, branch: str, checkout: Path) -> tuple[str, str, str]:
        """Clone into *checkout*; return (revision_id, short_id, branch)."""
        self._trust_local_repo(repo_url)
        try:
            logger.info("cloning update source")
            self.vcs.clone(repo_url, branch, checkout)
            if self.config.ref:
                logger.info("checking out ref: %s", self.config.ref)
                self.vcs.checkout_ref(checkout, self.config.ref)
            revision_id = self.vcs.revision(checkout)
            short_id = self.vcs.revision(checkout, short=True)
        except CommandError as exc:
            raise FetchError(f"failed to fetch {repo_url} ({branch}): {exc}") from exc
        if not revision_id:
            raise FetchError(f"no revision resolved for {repo_url} ({branch})")
        return revision_id, short_id or revision_id[:7], self.vcs.branch(checkout) or branch

    def preflight(self, checkout: Path) -> bool:
        """Run the preflight command in *checkout*. Returns whether it ran."""
        command = self.config.hooks.preflight
        if self.config.skip_preflight or not command:
            logger.info("skipping preflight checks")
            return False
        logger.info("running preflight: %s", command)
        try:
            run_shell(self.runner, command, cwd=checkout, env={ENV_CHECKOUT_DIR: str(checkout)})
        except CommandError as exc:
            raise PreflightError(f"preflight failed: {exc}") from exc
        return True

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> UpdateResult:
        start = time.monotonic()
        self.require_privilege()
        self.store.validate_root()

        repo_url, branch = self.resolve_source()
        result = UpdateResult(repo_url=repo_url, branch=branch)
        logger.info("repo: %s", repo_url)
        logger.info("branch: %s", branch)

        self.store.remember_source(repo_url, branch)

        try:
            self.config.tmp_parent.mkdir(parents=True, exist_ok=True)
            checkout = Path(
                tempfile.mkdtemp(prefix="hostrelease-update.", dir=self.config.tmp_parent)
            )
        except OSError as exc:
            raise ConfigurationError(
                f"cannot create checkout under {self.config.tmp_parent}: {exc}"
            ) from exc

        try:
            revision_id, short_id, target_branch = self.fetch(repo_url, branch, checkout)
            result.revision_id = revision_id
            result.branch = target_branch
            result.steps_completed.append("fetch")
            logger.info("target: %s", short_id)

            if self.preflight(checkout):
                result.steps_completed.append("preflight")

            result.reused_release = self.store.release_path(revision_id).is_dir()
            release_dir = self.publisher.publish(
                checkout, revision_id, repo_url, target_branch, short_id=short_id
            )
            result.release_dir = release_dir
            result.steps_completed.append("publish")

            self.rollout(release_dir, revision_id, result, checkout_dir=checkout)

            self.cut_over(release_dir, self.store.current(), result)
            self.link_cli(result)
            self.store.verify_release(release_dir)
        finally:
            shutil.rmtree(checkout, ignore_errors=True)
            result.duration_seconds = round(time.monotonic() - start, 2)

        logger.info("active release: %s", release_dir)
        return result
