"""Exclude rules for copying a source tree into the working copy.

Directories whose *name* is in the ignored set (``.git``, ``.idea``,
``.vs`` by default) are skipped outright.  On top of that, ``--exclude``
patterns, an ``--exclude-from`` file and, optionally, the source tree's
own ``.gitignore`` files can exclude more.

Pattern syntax follows gitignore rules (implemented by
``dulwich.ignore.IgnoreFilter``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from dulwich.ignore import IgnoreFilter

DEFAULT_IGNORED_DIRS = frozenset({".git", ".idea", ".vs"})


class ExcludeFilter:
    """Decides which source entries :func:`~vaultsync.sources.copy_tree` skips."""

    def __init__(
        self,
        *,
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
        patterns: Sequence[str] | None = None,
        exclude_from: str | None = None,
        gitignore: bool = False,
    ) -> None:
        self.ignored_dirs = frozenset(ignored_dirs)
        lines: list[bytes] = [p.encode("utf-8") for p in patterns or ()]
        if exclude_from is not None:
            for raw in Path(exclude_from).read_bytes().splitlines():
                line = raw.strip()
                if line and not line.startswith(b"#"):
                    lines.append(line)
        self._base: IgnoreFilter | None = IgnoreFilter(lines) if lines else None
        self._gitignore = gitignore
        # {rel_dir: IgnoreFilter | None}, loaded as the walk enters each directory
        self._dir_filters: dict[str, IgnoreFilter | None] = {}

    def __repr__(self) -> str:
        return f"ExcludeFilter(ignored_dirs={sorted(self.ignored_dirs)!r}, gitignore={self._gitignore})"

    @property
    def has_patterns(self) -> bool:
        """True if any pattern-based filtering is configured."""
        return self._base is not None or self._gitignore

    def enter_directory(self, abs_dir: Path, rel_dir: str) -> None:
        """Load ``.gitignore`` from *abs_dir* when gitignore mode is on."""
        if not self._gitignore or rel_dir in self._dir_filters:
            return
        gi = abs_dir / ".gitignore"
        self._dir_filters[rel_dir] = IgnoreFilter.from_path(str(gi)) if gi.is_file() else None

    def is_excluded(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """Check one entry, given as a ``/``-separated path relative to the source root.

        Every ancestor directory must have been passed to
        :meth:`enter_directory` first for ``.gitignore`` rules to apply.
        """
        name = rel_path.rsplit("/", 1)[-1]
        if is_dir and name in self.ignored_dirs:
            return True

        check = rel_path + "/" if is_dir else rel_path
        if self._base is not None and self._base.is_ignored(check) is True:
            return True
        if not self._gitignore:
            return False

        # Each .gitignore matches paths relative to its own directory;
        # the deepest explicit answer wins.
        parts = rel_path.split("/")
        for depth in range(len(parts) - 1, -1, -1):
            filt = self._dir_filters.get("/".join(parts[:depth]))
            if filt is None:
                continue
            sub = "/".join(parts[depth:])
            result = filt.is_ignored(sub + "/" if is_dir else sub)
            if result is not None:
                return result
        return False
