from ._types import ChangeKind, ChangeSet, ChangeSetItem, UnchangedPolicy, VersionedFile, VersionedFolder
from .exceptions import (
    VaultSyncError, PreconditionError, PathMappingError, AuthError,
    ClassificationError, ContradictionError, BackendCallError,
)
from .paths import PathMapper
from .status import FileStatus, StatusAction, classify_status
from .changes import BuildResult, build_changes
from .scan import find_untracked, scan_additions
from .dedupe import remove_duplicates
from .session import ReconciliationSession, SessionState
from .vault import GitVault, VaultClient, init_vault, add_user
from .mirror import MirrorOptions, MirrorResult, mirror_to_vault, mirror_git, mirror_filesystem

__all__ = [
    "ChangeKind", "ChangeSet", "ChangeSetItem", "UnchangedPolicy", "VersionedFile", "VersionedFolder",
    "VaultSyncError", "PreconditionError", "PathMappingError", "AuthError",
    "ClassificationError", "ContradictionError", "BackendCallError",
    "PathMapper", "FileStatus", "StatusAction", "classify_status",
    "BuildResult", "build_changes", "find_untracked", "scan_additions", "remove_duplicates",
    "ReconciliationSession", "SessionState",
    "GitVault", "VaultClient", "init_vault", "add_user",
    "MirrorOptions", "MirrorResult", "mirror_to_vault", "mirror_git", "mirror_filesystem",
]
