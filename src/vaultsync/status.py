"""Per-file status classification.

The backend reports one :class:`FileStatus` per working-copy file; the
classifier turns it into the :class:`StatusAction` the change-set builder
performs.  Statuses that imply a human decision (merges, newer repository
versions) are deliberately left alone and only logged.
"""

from __future__ import annotations

import logging
from enum import Enum

from .exceptions import ClassificationError

log = logging.getLogger(__name__)


class FileStatus(str, Enum):
    """Working-folder status of one file, as reported by the backend."""
    UNCHANGED = "unchanged"
    EDITED = "edited"
    MISSING = "missing"
    RENEGADE = "renegade"
    MERGED = "merged"
    NEEDS_MERGE = "needs_merge"
    UNKNOWN = "unknown"
    MORE_RECENT = "more_recent"
    OLD = "old"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class StatusAction(str, Enum):
    """What the change-set builder does for a classified file."""
    NONE = "none"
    DELETE = "delete"
    CHECKOUT = "checkout"
    UNHANDLED = "unhandled"

    def __str__(self) -> str:          # noqa: D105
        return self.value


_POLICY = {
    FileStatus.UNCHANGED: StatusAction.NONE,
    FileStatus.EDITED: StatusAction.NONE,
    FileStatus.MISSING: StatusAction.DELETE,
    FileStatus.RENEGADE: StatusAction.CHECKOUT,
    FileStatus.MERGED: StatusAction.UNHANDLED,
    FileStatus.NEEDS_MERGE: StatusAction.UNHANDLED,
    FileStatus.UNKNOWN: StatusAction.UNHANDLED,
    FileStatus.MORE_RECENT: StatusAction.UNHANDLED,
    FileStatus.OLD: StatusAction.UNHANDLED,
}


def classify_status(status, path: str = "") -> StatusAction:
    """Return the action for *status*.

    Raises :class:`ClassificationError` for anything that is not a
    :class:`FileStatus` member.
    """
    if not isinstance(status, FileStatus):
        raise ClassificationError(f"Unrecognized status {status!r} for {path or '<unknown>'}")
    action = _POLICY[status]
    if action is StatusAction.UNHANDLED:
        log.warning("Unhandled %s with %s", path, status)
    return action
