"""Mirror a source tree into a repository folder and commit the difference.

The working directory holds two subfolders: ``git`` (the clone, for git
sources) and ``vault`` (the working copy bound to the repository folder).
The working copy is first brought up to date, then emptied and refilled
from the source, so the reconciliation sees exactly what changed.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._exclude import ExcludeFilter
from ._types import ChangeSet, UnchangedPolicy
from .exceptions import PreconditionError
from .session import ReconciliationSession
from .sources import clear_directory, clone_git, copy_tree
from .vault import GitVault

if TYPE_CHECKING:
    from .backend import Backend

log = logging.getLogger(__name__)

GIT_SUBDIR = "git"
VAULT_SUBDIR = "vault"


@dataclass
class MirrorOptions:
    """Where to mirror to, and how."""
    server: str
    repository: str
    repo_folder: str
    user: str
    password: str
    work_dir: str
    label: str | None = None
    exclude: ExcludeFilter = field(default_factory=ExcludeFilter)
    dry_run: bool = False
    unchanged_policy: UnchangedPolicy = UnchangedPolicy.CHECKIN
    keep_local_copy: bool = True
    git_user: str | None = None
    git_password: str | None = None

    @property
    def vault_dir(self) -> str:
        return os.path.join(self.work_dir, VAULT_SUBDIR)


@dataclass
class MirrorResult:
    """Outcome of one mirror run."""
    changes: ChangeSet
    committed: int = 0
    label: str | None = None


def ensure_empty_work_dir(work_dir: str) -> None:
    """Create *work_dir* if needed; raise :class:`PreconditionError` unless empty."""
    os.makedirs(work_dir, exist_ok=True)
    with os.scandir(work_dir) as it:
        if any(True for _ in it):
            raise PreconditionError(f"{work_dir} is not empty")


def mirror_to_vault(
    source_dir: str, options: MirrorOptions, *, backend: Backend | None = None,
) -> MirrorResult:
    """Make ``options.repo_folder`` match *source_dir* and commit.

    A label is applied only if one was requested and at least one change
    was committed.  With ``options.dry_run`` the change set is computed
    and returned without committing.
    """
    session = ReconciliationSession(
        backend if backend is not None else GitVault(),
        options.server,
        options.repo_folder,
        options.vault_dir,
        repository=options.repository,
        user=options.user,
        password=options.password,
        unchanged_policy=options.unchanged_policy,
        keep_local_copy=options.keep_local_copy,
    )
    with session:
        session.get()
        clear_directory(options.vault_dir)
        copied = copy_tree(source_dir, options.vault_dir, options.exclude)
        log.info("Copied %d file(s) from %s", copied, source_dir)
        changes = session.reconcile()
        if options.dry_run:
            return MirrorResult(changes)
        committed = session.commit()
        applied = None
        if committed > 0 and options.label:
            session.label(options.label)
            applied = options.label
    return MirrorResult(changes, committed, applied)


def mirror_git(
    url: str, branch: str, options: MirrorOptions, *, backend: Backend | None = None,
) -> MirrorResult:
    """Clone *branch* of *url* into the working directory and mirror it."""
    ensure_empty_work_dir(options.work_dir)
    git_dir = os.path.join(options.work_dir, GIT_SUBDIR)
    clone_git(url, branch, git_dir, user=options.git_user, password=options.git_password)
    return mirror_to_vault(git_dir, options, backend=backend)


def mirror_filesystem(
    source: str, options: MirrorOptions, *, backend: Backend | None = None,
) -> MirrorResult:
    """Mirror the local folder *source*."""
    if not os.path.isdir(source):
        raise PreconditionError(f"Source directory does not exist or could not be found: {source}")
    ensure_empty_work_dir(options.work_dir)
    return mirror_to_vault(source, options, backend=backend)
