"""On-disk release store: layout, integrity, pointers, and remembered source.

Layout::

    <root>/releases/<revision-id>/   immutable snapshot + release.json
    <root>/releases/.staging.*       in-progress (or orphaned) publishes
    <root>/current                   symlink to the active release
    <root>/previous                  symlink to the prior active release
    <root>/source.url                remembered repository URL
    <root>/source.branch             remembered branch

Nothing here mutates ``current`` or ``previous``; that is ``CutoverManager``'s
job alone.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from hostrelease.core.cutover import CutoverManager
from hostrelease.core.errors import (
    AmbiguousReleaseError,
    ConfigurationError,
    IntegrityError,
    ReleaseNotFoundError,
)
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.release import (
    MANIFEST_FILENAME,
    DocumentFieldError,
    DocumentMalformedError,
    ReleaseManifest,
    parse_document,
)

logger = logging.getLogger(__name__)

# Directory names that mark version-control metadata. None may appear at any
# depth inside a published release.
VCS_METADATA_NAMES: frozenset[str] = frozenset({".git", ".hg", ".svn"})

PREVIOUS_TOKEN = "previous"


def find_vcs_metadata(root: Path) -> Path | None:
    """Return the first VCS metadata directory under *root*, if any."""
    for dirpath, dirnames, _ in os.walk(root):
        for name in dirnames:
            if name in VCS_METADATA_NAMES:
                return Path(dirpath) / name
    return None


def validate_release_name(revision_id: str) -> str:
    """A revision-id is used verbatim as a directory name under ``releases/``."""
    if (
        not revision_id
        or revision_id != revision_id.strip()
        or "/" in revision_id
        or os.sep in revision_id
        or revision_id.startswith(".")
    ):
        raise ConfigurationError(f"invalid revision id: {revision_id!r}")
    return revision_id


class ReleaseStore:
    """Read-side view of a release store rooted at ``config.release_root``."""

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self.config.release_root

    @property
    def releases_dir(self) -> Path:
        return self.config.releases_dir

    def validate_root(self) -> None:
        """Reject a store root that exists but cannot hold a store."""
        for path in (self.root, self.releases_dir):
            try:
                mode = path.stat().st_mode
            except FileNotFoundError:
                continue
            except OSError as exc:
                # e.g. an ancestor of the root is a regular file
                raise ConfigurationError(f"unusable release store path {path}: {exc}") from exc
            if not stat.S_ISDIR(mode):
                raise ConfigurationError(f"release store path is not a directory: {path}")

    def release_path(self, revision_id: str) -> Path:
        return self.releases_dir / validate_release_name(revision_id)

    def list_releases(self) -> list[str]:
        """Names of published releases, sorted. Staging directories are excluded."""
        if not self.releases_dir.is_dir():
            return []
        try:
            entries = list(self.releases_dir.iterdir())
        except OSError as exc:
            raise ConfigurationError(f"cannot list {self.releases_dir}: {exc}") from exc
        return sorted(
            entry.name
            for entry in entries
            if entry.is_dir() and not entry.is_symlink() and not entry.name.startswith(".")
        )

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    @staticmethod
    def verify_release(release_dir: Path) -> None:
        """Raise ``IntegrityError`` unless *release_dir* is a VCS-free directory."""
        release_dir = Path(release_dir)
        if not release_dir.is_dir():
            raise IntegrityError(f"release is missing or not a directory: {release_dir}")
        found = find_vcs_metadata(release_dir)
        if found is not None:
            raise IntegrityError(f"release contains version-control metadata: {found}")

    # ------------------------------------------------------------------
    # Pointers
    # ------------------------------------------------------------------

    def current(self) -> Path | None:
        return CutoverManager.resolve(self.config.current_link)

    def previous(self) -> Path | None:
        return CutoverManager.resolve(self.config.previous_link)

    def resolve(self, target: str) -> Path:
        """Resolve ``previous``, a full revision-id, or a unique revision prefix."""
        if target == PREVIOUS_TOKEN:
            link = self.config.previous_link
            if not link.is_symlink():
                raise ReleaseNotFoundError(f"no previous release pointer at {link}")
            resolved = CutoverManager.resolve(link)
            if resolved is None:
                raise ReleaseNotFoundError(f"failed to resolve previous release: {link}")
            return resolved

        if not target or target.startswith(".") or "/" in target:
            raise ReleaseNotFoundError(f"release not found: {target!r}")

        exact = self.releases_dir / target
        if exact.is_dir():
            return exact

        matches = [name for name in self.list_releases() if name.startswith(target)]
        if len(matches) > 1:
            raise AmbiguousReleaseError(target, matches)
        if not matches:
            raise ReleaseNotFoundError(f"release not found: {target}")
        return self.releases_dir / matches[0]

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    @staticmethod
    def read_manifest(release_dir: Path) -> ReleaseManifest | None:
        """Load ``release.json``. None if absent; ``IntegrityError`` if corrupt."""
        path = Path(release_dir) / MANIFEST_FILENAME
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise IntegrityError(f"release manifest unreadable: {path}: {exc}") from exc
        try:
            return parse_document(ReleaseManifest, text)
        except (DocumentMalformedError, DocumentFieldError) as exc:
            raise IntegrityError(f"release manifest corrupt: {path}: {exc}") from exc

    def expected_revision(self, release_dir: Path) -> str:
        """The revision a runtime should report after deploying *release_dir*."""
        manifest = self.read_manifest(release_dir)
        if manifest is None:
            logger.warning(
                "release %s has no %s; using directory name as revision",
                release_dir, MANIFEST_FILENAME,
            )
            return Path(release_dir).name
        return manifest.revision_id

    # ------------------------------------------------------------------
    # Remembered source
    # ------------------------------------------------------------------

    @staticmethod
    def _first_line(path: Path) -> str | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"cannot read remembered source {path}: {exc}") from exc
        lines = text.splitlines()
        value = lines[0].strip() if lines else ""
        return value or None

    def remembered_source(self) -> tuple[str | None, str | None]:
        """Return the remembered (repo URL, branch); either may be None."""
        return (
            self._first_line(self.config.source_url_file),
            self._first_line(self.config.source_branch_file),
        )

    def remember_source(self, repo_url: str, branch: str) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.config.source_url_file.write_text(f"{repo_url}\n", encoding="utf-8")
            self.config.source_branch_file.write_text(f"{branch}\n", encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                f"cannot write remembered source under {self.root}: {exc}"
            ) from exc
        logger.info("remembered source: %s (%s)", repo_url, branch)
