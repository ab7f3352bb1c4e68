"""Publish a fetched checkout as an immutable, VCS-free release.

Publishing is idempotent per revision-id: an existing, valid release is
returned untouched. A new release is assembled in a hidden staging directory
inside ``releases/`` and renamed into place only once complete, so no
half-written tree is ever visible under a revision-id.

A failed publish leaves its staging directory on disk. Staging directories
are hidden and never referenced by a pointer.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path

from hostrelease.core.errors import IntegrityError, PublishError
from hostrelease.core.hooks import HostIdentity, PosixHostIdentity
from hostrelease.core.release_store import (
    VCS_METADATA_NAMES,
    ReleaseStore,
    find_vcs_metadata,
)
from hostrelease.models.release import MANIFEST_FILENAME, ReleaseManifest

logger = logging.getLogger(__name__)

_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH
_TRAVERSE_BITS = (
    stat.S_IRUSR | stat.S_IXUSR | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
)


def _ignore_vcs(directory: str, names: list[str]) -> set[str]:
    return {name for name in names if name in VCS_METADATA_NAMES}


def _make_files_read_only(root: Path) -> None:
    """Strip write bits from every regular file. Directories stay writable."""
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_symlink():
                continue
            mode = path.stat().st_mode
            path.chmod(stat.S_IMODE(mode) & ~_WRITE_BITS)


def _make_traversable(path: Path) -> None:
    path.chmod(stat.S_IMODE(path.stat().st_mode) | _TRAVERSE_BITS)


class ReleasePublisher:
    """Turns a checkout into ``releases/<revision-id>``."""

    def __init__(self, store: ReleaseStore, identity: HostIdentity | None = None) -> None:
        self._store = store
        self._identity = identity or PosixHostIdentity()

    def publish(
        self,
        checkout_dir: Path,
        revision_id: str,
        repo_url: str,
        branch: str,
        *,
        short_id: str | None = None,
    ) -> Path:
        """Publish *checkout_dir* as *revision_id* and return the release dir.

        If the release already exists it is validated and returned as-is.
        """
        release_dir = self._store.release_path(revision_id)
        releases_dir = self._store.releases_dir

        if release_dir.exists() or release_dir.is_symlink():
            logger.info("release already exists: %s", release_dir)
            self._store.verify_release(release_dir)
            try:
                # The global CLI link resolves through this directory.
                _make_traversable(release_dir)
            except OSError as exc:
                logger.warning("could not make %s traversable: %s", release_dir, exc)
            return release_dir

        short_id = short_id or revision_id[:7]
        try:
            releases_dir.mkdir(parents=True, exist_ok=True)
            staging = Path(
                tempfile.mkdtemp(prefix=f".staging.{short_id}.", dir=releases_dir)
            )
        except OSError as exc:
            raise PublishError(f"cannot create staging directory in {releases_dir}: {exc}") from exc

        logger.info("publishing release: %s", release_dir)
        try:
            shutil.copytree(
                checkout_dir,
                staging,
                symlinks=True,
                ignore=_ignore_vcs,
                dirs_exist_ok=True,
            )
        except (OSError, shutil.Error) as exc:
            raise PublishError(f"failed to stage {checkout_dir} into {staging}: {exc}") from exc

        found = find_vcs_metadata(staging)
        if found is not None:
            raise IntegrityError(f"staged release contains version-control metadata: {found}")

        manifest = ReleaseManifest(
            revision_id=revision_id,
            short_id=short_id,
            branch=branch,
            source_repo=repo_url,
            built_by=self._identity.operator(),
        )
        try:
            (staging / MANIFEST_FILENAME).write_text(manifest.to_json(), encoding="utf-8")
            _make_files_read_only(staging)
            _make_traversable(staging)
            # Fails if another publish of the same revision got there first.
            os.rename(staging, release_dir)
        except OSError as exc:
            raise PublishError(f"failed to finalize release {release_dir}: {exc}") from exc

        logger.info("published %s (%s)", short_id, release_dir)
        return release_dir
