"""Atomic pointer swaps over filesystem symlinks.

A pointer (``current``, ``previous``, the global CLI entry) is a symlink.
Repointing it builds the new link under a hidden sibling name and renames it
over the old one. ``rename(2)`` within one filesystem is atomic, so a reader
resolving the pointer sees the old target or the new target and never a
missing link. This relies on POSIX rename semantics; there is no fallback for
filesystems without them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from hostrelease.core.errors import CutoverError

logger = logging.getLogger(__name__)


class CutoverManager:
    """Owns every mutation of the store's pointers."""

    @staticmethod
    def resolve(link_path: Path) -> Path | None:
        """Return the fully resolved target of *link_path*, or None if absent."""
        link_path = Path(link_path)
        if not (link_path.is_symlink() or link_path.exists()):
            return None
        return Path(os.path.realpath(link_path))

    def atomic_swap(self, target_path: Path, link_path: Path) -> None:
        """Point *link_path* at *target_path* in a single rename.

        Raises ``CutoverError`` on any failure; the old link is then still in
        place and the temporary link has been removed. Not retried.
        """
        target_path = Path(target_path)
        link_path = Path(link_path)
        parent = link_path.parent
        tmp_link = parent / f".tmp.{link_path.name}.{os.getpid()}"

        try:
            parent.mkdir(parents=True, exist_ok=True)
            if tmp_link.is_symlink() or tmp_link.exists():
                tmp_link.unlink()
            os.symlink(target_path, tmp_link)
            os.replace(tmp_link, link_path)
        except OSError as exc:
            if tmp_link.is_symlink():
                tmp_link.unlink()
            raise CutoverError(
                f"failed to point {link_path} at {target_path}: {exc.strerror or exc}"
            ) from exc

        logger.info("%s -> %s", link_path, target_path)
