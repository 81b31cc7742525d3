"""Merge builder and scanner output into one change set."""

from __future__ import annotations

import logging
from typing import Iterable

from ._types import ChangeKind, ChangeSetItem
from .exceptions import ContradictionError
from .paths import is_below, is_under

log = logging.getLogger(__name__)


def collapse_folders(folders: Iterable[str]) -> list[str]:
    """Drop repeats and folders nested inside another listed folder.

    Comparison is case-insensitive; first-seen spelling and order win.
    """
    unique: dict[str, str] = {}
    for folder in folders:
        unique.setdefault(folder.casefold(), folder)
    return [
        f for f in unique.values()
        if not any(o is not f and is_under(f, o) for o in unique.values())
    ]


def remove_duplicates(
    items: Iterable[ChangeSetItem], deleted_folders: Iterable[str] = (),
) -> list[ChangeSetItem]:
    """Return *items* with one entry per repository path.

    A repeated path with the same kind is dropped; a repeated path with a
    different kind raises :class:`ContradictionError`.  Items below a
    deleted folder are pruned, then one delete per deleted folder is
    appended.

    A deleted folder replaced on disk by a file of the same name yields
    the add of that file alone; committing it replaces the folder.
    """
    seen: dict[str, ChangeKind] = {}
    result: list[ChangeSetItem] = []
    for item in items:
        kind = seen.get(item.key)
        if kind is not None:
            if kind != item.kind:
                raise ContradictionError(item.repository_path, kind, item.kind)
            continue
        seen[item.key] = item.kind
        result.append(item)

    folders = collapse_folders(deleted_folders)
    if not folders:
        return result

    by_key = {f.casefold(): f for f in folders}
    replaced: set[str] = set()
    kept: list[ChangeSetItem] = []
    for item in result:
        if any(is_below(item.repository_path, f) for f in folders):
            log.debug("Pruned %s, covered by a deleted folder", item)
            continue
        folder = by_key.get(item.key)
        if folder is not None:
            if item.kind == ChangeKind.DELETE:
                continue
            if item.kind != ChangeKind.ADD:
                raise ContradictionError(item.repository_path, ChangeKind.DELETE, item.kind)
            log.info("File %s replaces folder %s", item.repository_path, folder)
            replaced.add(item.key)
        kept.append(item)
    kept.extend(
        ChangeSetItem(f, ChangeKind.DELETE) for f in folders if f.casefold() not in replaced
    )
    return kept
