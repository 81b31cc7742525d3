"""Change-set builder: walk the versioned tree against the working copy.

Files are classified folder by folder (one status query per folder);
missing files become deletes, renegade files are checked out so the
backend records their modification.  A missing file whose name survives
on disk in another letter case is checked out and committed under the
new spelling.  Folders missing on disk are
collected into the deleted-folder set instead of deleting their files
one by one.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._types import ChangeSetItem, VersionedFolder
from .exceptions import BackendCallError
from .status import StatusAction, classify_status

if TYPE_CHECKING:
    from .backend import BackendClient
    from .paths import PathMapper

log = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Output of one builder pass."""
    items: list[ChangeSetItem] = field(default_factory=list)
    deleted_folders: list[str] = field(default_factory=list)


def build_changes(
    client: BackendClient, root: VersionedFolder, mapper: PathMapper,
) -> BuildResult:
    """Collect delete/modify items for *root* and everything below it.

    Depth-first, files before subfolders; each non-root folder is checked
    against the disk only after its descendants were processed.  The root
    folder is never a deletion candidate.
    """
    result = BuildResult()
    stack: list[tuple[VersionedFolder, bool]] = [(root, False)]
    while stack:
        folder, descendants_done = stack.pop()
        if descendants_done:
            if folder is not root and not os.path.isdir(mapper.to_disk_path(folder.full_path)):
                log.info("Folder %s is missing on disk", folder.full_path)
                result.deleted_folders.append(folder.full_path)
            continue
        _classify_files(client, folder, mapper, result.items)
        stack.append((folder, True))
        for sub in reversed(folder.folders):
            stack.append((sub, False))
    return result


def _classify_files(
    client: BackendClient,
    folder: VersionedFolder,
    mapper: PathMapper,
    items: list[ChangeSetItem],
) -> None:
    """Classify the direct file children of *folder*, appending to *items*."""
    if not folder.files:
        return
    disk_paths = [mapper.to_disk_path(f.full_path) for f in folder.files]
    statuses = client.get_status(disk_paths)
    if len(statuses) != len(disk_paths):
        raise BackendCallError(
            f"Status query for {folder.full_path} returned {len(statuses)} "
            f"results for {len(disk_paths)} files"
        )

    missing: list[str] = []
    for node, disk_path, status in zip(folder.files, disk_paths, statuses):
        action = classify_status(status, node.full_path)
        if action is StatusAction.DELETE:
            renamed = _case_renamed(disk_path)
            if renamed is None:
                missing.append(node.full_path)
                continue
            # same file, new spelling: a modify carrying the new name
            new_path = mapper.to_repo_path(renamed)
            client.checkout([disk_path], exclusive=False, allow_multiple_checkout=False)
            for item in client.list_pending_changes(node.full_path):
                if item.key == new_path.casefold():
                    item = ChangeSetItem(new_path, item.kind)
                items.append(item)
            log.info("Checked out %s as it was renamed to %s", node.full_path, new_path)
        elif action is StatusAction.CHECKOUT:
            client.checkout([disk_path], exclusive=False, allow_multiple_checkout=False)
            items.extend(client.list_pending_changes(node.full_path))
            log.info("Checked out %s as it was %s", node.full_path, status)

    if missing:
        items.extend(client.delete(missing))
        for path in missing:
            log.info("Deleted %s as it was missing", path)


def _case_renamed(disk_path: str) -> str | None:
    """Return a file next to *disk_path* whose name differs only in case, or None.

    Only a case-sensitive disk can hold such a file while *disk_path*
    itself is missing.
    """
    parent, name = os.path.split(disk_path)
    try:
        entries = sorted(os.listdir(parent))
    except (FileNotFoundError, NotADirectoryError):
        return None
    key = name.casefold()
    for entry in entries:
        candidate = os.path.join(parent, entry)
        if entry != name and entry.casefold() == key and os.path.isfile(candidate):
            return candidate
    return None
