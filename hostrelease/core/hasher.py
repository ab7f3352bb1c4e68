"""Content hashing helpers for published release trees.

A release is keyed by its revision-id, not by a hash of its bytes; the tree
digest is a secondary fingerprint used to show that a release has not drifted
since publish and that re-publishing a revision is byte-for-byte a no-op.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

_CHUNK = 1 << 16


def file_sha256(path: Path) -> str:
    """SHA-256 of a file's contents, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def tree_digest(root: Path) -> str:
    """SHA-256 over every entry beneath *root*, in sorted path order.

    Each entry contributes its relative path, its kind, and its content
    (file bytes digest or symlink target). Permissions and timestamps are
    ignored.
    """
    root = Path(root)
    digest = hashlib.sha256()
    entries: list[tuple[str, str, str]] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        base = Path(dirpath)
        for name in dirnames:
            path = base / name
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                entries.append((rel, "link", os.readlink(path)))
            else:
                entries.append((rel, "dir", ""))
        for name in filenames:
            path = base / name
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                entries.append((rel, "link", os.readlink(path)))
            else:
                entries.append((rel, "file", file_sha256(path)))

    for rel, kind, content in sorted(entries):
        digest.update(f"{kind}\0{rel}\0{content}\n".encode("utf-8"))
    return f"sha256:{digest.hexdigest()}"
