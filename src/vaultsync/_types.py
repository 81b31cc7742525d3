"""Data structures shared by the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ChangeKind(str, Enum):
    """Kind of a pending change.

    Members: ``ADD``, ``MODIFY``, ``DELETE``.
    """
    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class UnchangedPolicy(str, Enum):
    """What a commit does with checked-out files whose content did not change."""
    CHECKIN = "checkin"
    UNDO_CHECKOUT = "undo_checkout"
    LEAVE_CHECKED_OUT = "leave_checked_out"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class ChangeSetItem:
    """A single pending add/modify/delete of one repository path."""
    repository_path: str
    kind: ChangeKind

    @property
    def key(self) -> str:
        """Case-insensitive identity of the path."""
        return self.repository_path.casefold()

    def __str__(self) -> str:
        return f"{self.repository_path}-{self.kind}"


@dataclass
class VersionedFile:
    full_path: str

    @property
    def name(self) -> str:
        return self.full_path.rsplit("/", 1)[-1]


@dataclass
class VersionedFolder:
    """A folder of the versioned tree with its direct children."""
    full_path: str
    files: list[VersionedFile] = field(default_factory=list)
    folders: list[VersionedFolder] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.full_path.rsplit("/", 1)[-1]

    def iter_files(self):
        """Yield every file below this folder, walking with an explicit stack."""
        stack = [self]
        while stack:
            folder = stack.pop()
            yield from folder.files
            stack.extend(folder.folders)


@dataclass
class ChangeSet:
    """The final change set of one reconciliation pass."""
    items: list[ChangeSetItem] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.items

    @property
    def total(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def paths(self, kind: ChangeKind) -> list[str]:
        """Repository paths of every item of *kind*, sorted."""
        return sorted(i.repository_path for i in self.items if i.kind == kind)

    @property
    def add(self) -> list[str]:
        return self.paths(ChangeKind.ADD)

    @property
    def modify(self) -> list[str]:
        return self.paths(ChangeKind.MODIFY)

    @property
    def delete(self) -> list[str]:
        return self.paths(ChangeKind.DELETE)
