"""Add scanner: find working-copy files the versioned tree does not track."""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from ._types import ChangeSetItem, VersionedFolder

if TYPE_CHECKING:
    from .backend import BackendClient
    from .paths import PathMapper

log = logging.getLogger(__name__)


def walk_disk_files(root: str | os.PathLike[str]) -> set[str]:
    """Return the absolute paths of every file under *root*.

    Symlinked directories are not descended into.
    """
    result: set[str] = set()
    base = Path(os.path.abspath(root))
    for dirpath, _dirnames, filenames in os.walk(base):
        dp = Path(dirpath)
        for fname in filenames:
            result.add(str(dp / fname))
    return result


def versioned_disk_paths(root: VersionedFolder, mapper: PathMapper) -> set[str]:
    """Disk paths of every file node under *root*."""
    return {mapper.to_disk_path(f.full_path) for f in root.iter_files()}


def find_untracked(root: VersionedFolder, mapper: PathMapper) -> dict[str, list[str]]:
    """Group untracked working-copy files by parent directory.

    Returns ``{relative_dir: [absolute_file_path, ...]}`` with the root
    directory as ``""``; file lists are sorted.  Paths compare
    case-insensitively, so a versioned file renamed only in case is not
    untracked.
    """
    versioned = {p.casefold() for p in versioned_disk_paths(root, mapper)}
    seen: dict[str, str] = {}
    untracked = []
    for path in sorted(walk_disk_files(mapper.working_root)):
        key = path.casefold()
        if key in seen:
            log.warning("Skipping %s, it differs only in case from %s", path, seen[key])
            continue
        seen[key] = path
        if key not in versioned:
            untracked.append(path)
    groups: dict[str, list[str]] = defaultdict(list)
    for path in untracked:
        rel_dir = os.path.relpath(os.path.dirname(path), mapper.working_root)
        groups["" if rel_dir == os.curdir else rel_dir].append(path)
    return {d: sorted(files) for d, files in groups.items()}


def scan_additions(
    client: BackendClient, root: VersionedFolder, mapper: PathMapper,
) -> list[ChangeSetItem]:
    """Issue one add call per directory of untracked files.

    Returns every change-set item the backend reported for the adds.
    """
    items: list[ChangeSetItem] = []
    for rel_dir, files in sorted(find_untracked(root, mapper).items()):
        repo_folder = mapper.relative_dir_to_repo(rel_dir)
        added = client.add(repo_folder, files)
        log.info("Added %d file(s) to %s", len(files), repo_folder)
        items.extend(added)
    return items
