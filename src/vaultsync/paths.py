"""Mapping between repository paths and working-copy disk paths.

Repository paths use ``/`` separators under a ``$`` root marker
(``$/Project/src/main.c``) and compare case-insensitively.  A
:class:`PathMapper` is bound to one repository folder and the disk
directory it is mirrored into.
"""

from __future__ import annotations

import os

from .exceptions import PathMappingError

REPO_ROOT = "$"


def normalize_repo_path(path: str) -> str:
    """Normalize a repository path: ``/`` separators, ``$`` root, no bad segments.

    ``Project/src``, ``/Project/src`` and ``$/Project/src/`` all become
    ``$/Project/src``.
    """
    path = path.replace("\\", "/").rstrip("/")
    if path in ("", REPO_ROOT):
        return REPO_ROOT
    if not path.startswith(REPO_ROOT + "/"):
        if path.startswith(REPO_ROOT):
            raise PathMappingError(f"Invalid repository path: {path!r}")
        path = f"{REPO_ROOT}/{path.lstrip('/')}"
    for seg in path.split("/")[1:]:
        if not seg:
            raise PathMappingError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise PathMappingError(f"Invalid path segment: {seg!r}")
    return path


def same_path(a: str, b: str) -> bool:
    """Case-insensitive repository path equality."""
    return a.casefold() == b.casefold()


def is_under(path: str, folder: str) -> bool:
    """True if *path* is *folder* itself or lives below it (case-insensitive)."""
    p = path.casefold()
    f = folder.casefold()
    return p == f or p.startswith(f + "/")


def is_below(path: str, folder: str) -> bool:
    """True if *path* lives strictly below *folder* (case-insensitive)."""
    return path.casefold().startswith(folder.casefold() + "/")


def parent_repo_path(path: str) -> str:
    parent, _, _ = path.rpartition("/")
    return parent or REPO_ROOT


class PathMapper:
    """Bidirectional mapping for one bound (repository folder, disk folder) pair.

    Pure: no backend call and no filesystem access beyond making
    *working_root* absolute.
    """

    def __init__(self, repo_root: str, working_root: str | os.PathLike[str]):
        self.repo_root = normalize_repo_path(repo_root)
        self.working_root = os.path.abspath(os.fspath(working_root)).rstrip(os.sep) or os.sep

    def __repr__(self) -> str:
        return f"PathMapper({self.repo_root!r}, {self.working_root!r})"

    def to_disk_path(self, repo_path: str) -> str:
        """Return the working-copy path of *repo_path*.

        Raises :class:`PathMappingError` when *repo_path* is not under the
        bound repository root.
        """
        repo_path = repo_path.replace("\\", "/")
        if not is_under(repo_path, self.repo_root):
            raise PathMappingError(
                f"{repo_path!r} is not under repository folder {self.repo_root!r}"
            )
        rel = repo_path[len(self.repo_root):]
        rel = rel.replace("/", os.sep)
        return self.working_root + rel

    def to_repo_path(self, disk_path: str | os.PathLike[str]) -> str:
        """Return the repository path of a working-copy *disk_path*."""
        full = os.path.abspath(os.fspath(disk_path))
        rel = os.path.relpath(full, self.working_root)
        if rel == os.curdir:
            return self.repo_root
        if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
            raise PathMappingError(
                f"{full!r} is not under working folder {self.working_root!r}"
            )
        rel = rel.replace(os.sep, "/")
        return f"{self.repo_root}/{rel}"

    def relative_dir_to_repo(self, rel_dir: str) -> str:
        """Map a directory relative to the working root to a repository folder.

        The empty string (or ``"."``) maps to the repository root folder.
        """
        if rel_dir in ("", os.curdir):
            return self.repo_root
        return f"{self.repo_root}/{rel_dir.replace(os.sep, '/')}"
