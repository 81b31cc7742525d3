"""Reconciliation session: owns one backend connection from login to dispose.

Typical use::

    with ReconciliationSession(GitVault(), server, "$/Project", work_dir,
                               repository="main", user="ci", password="...") as s:
        s.get()
        ...  # rewrite the working copy
        changes = s.reconcile()
        if s.commit() and label:
            s.label(label)

Leaving the ``with`` block always disposes the session: outstanding
checkouts and pending changes are undone, the working folder is unbound
and the client logs out, whether or not reconciliation succeeded.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import TYPE_CHECKING

from ._types import ChangeSet, UnchangedPolicy
from .changes import build_changes
from .dedupe import remove_duplicates
from .exceptions import PreconditionError
from .paths import PathMapper
from .scan import scan_additions

if TYPE_CHECKING:
    from .backend import Backend, BackendClient

log = logging.getLogger(__name__)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    LOGGED_IN = "logged_in"
    WORKING_FOLDER_BOUND = "working_folder_bound"
    CLEAN = "clean"
    RECONCILED = "reconciled"
    COMMITTED = "committed"
    DISPOSED = "disposed"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class ReconciliationSession:
    """Reconcile one repository folder with its working copy.

    Args:
        backend: The backend to log in to.
        server: Server address passed to :meth:`Backend.login`.
        repo_folder: Repository folder to reconcile (``$/...``).
        working_folder: Disk directory bound to *repo_folder*.
        repository: Repository name on the server.
        user: Login user.
        password: Login password.
        unchanged_policy: Commit handling of checked-out, unchanged files.
        keep_local_copy: Passed to commit and undo-checkout calls.
    """

    def __init__(
        self,
        backend: Backend,
        server: str,
        repo_folder: str,
        working_folder: str | os.PathLike[str],
        *,
        repository: str,
        user: str,
        password: str,
        unchanged_policy: UnchangedPolicy = UnchangedPolicy.CHECKIN,
        keep_local_copy: bool = True,
    ):
        self._backend = backend
        self.server = server
        self.repository = repository
        self.mapper = PathMapper(repo_folder, working_folder)
        self._user = user
        self._password = password
        self.unchanged_policy = unchanged_policy
        self.keep_local_copy = keep_local_copy
        self._client: BackendClient | None = None
        self._bound = False
        self._change_set: ChangeSet | None = None
        self.state = SessionState.DISCONNECTED

    def __repr__(self) -> str:
        return f"ReconciliationSession({self.server!r}, {self.repo_folder!r}, state={self.state})"

    @property
    def repo_folder(self) -> str:
        return self.mapper.repo_root

    @property
    def working_folder(self) -> str:
        return self.mapper.working_root

    @property
    def client(self) -> BackendClient:
        if self._client is None:
            raise PreconditionError(f"Session is not connected (state: {self.state})")
        return self._client

    @property
    def change_set(self) -> ChangeSet | None:
        """Change set of the last :meth:`reconcile`, or None."""
        return self._change_set

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(str(s) for s in states)
            raise PreconditionError(f"Session is {self.state}, expected one of: {allowed}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> ReconciliationSession:
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def open(self) -> ReconciliationSession:
        """Log in, bind the working folder and clear stale pending changes.

        Disposes the session before re-raising if any step fails.
        """
        try:
            self.login()
            self.bind()
            self.clean()
        except BaseException:
            self.dispose()
            raise
        return self

    def login(self) -> None:
        self._require(SessionState.DISCONNECTED)
        log.info("About to log in to %s", self.server)
        self._client = self._backend.login(self.server, self._user, self._password, self.repository)
        self.state = SessionState.LOGGED_IN
        log.info("Connected")

    def bind(self) -> None:
        """Bind the repository folder to the working folder, replacing any old binding."""
        self._require(SessionState.LOGGED_IN)
        client = self.client
        existing = client.working_folder(self.repo_folder)
        if existing is not None:
            log.info("Unbinding %s from %s", self.repo_folder, existing)
            client.unbind_working_folder(self.repo_folder)
        log.info("Setting working folder to %s", self.working_folder)
        client.bind_working_folder(self.repo_folder, self.working_folder)
        self._bound = True
        self.state = SessionState.WORKING_FOLDER_BOUND

    def clean(self) -> None:
        """Undo every pending change left under the bound folder."""
        self._require(SessionState.WORKING_FOLDER_BOUND)
        self._undo_pending()
        self.state = SessionState.CLEAN

    def _undo_pending(self) -> None:
        client = self.client
        pending = client.list_pending_changes(self.repo_folder)
        if not pending:
            return
        log.info("Removing %d item(s) from change set", len(pending))
        for _ in pending:
            client.undo_pending_change(0)

    def dispose(self) -> None:
        """Release every backend resource.  Safe to call more than once."""
        if self.state is SessionState.DISPOSED:
            return
        client = self._client
        try:
            if client is not None and self._bound:
                try:
                    client.undo_checkout([self.repo_folder], True, self.keep_local_copy)
                    self._undo_pending()
                finally:
                    self._bound = False
                    client.unbind_working_folder(self.repo_folder)
        finally:
            self._client = None
            self.state = SessionState.DISPOSED
            if client is not None:
                client.logout()
                log.info("Logged out of %s", self.server)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get(self) -> None:
        """Fetch the latest versioned tree into the working folder."""
        self._require(SessionState.WORKING_FOLDER_BOUND, SessionState.CLEAN)
        log.info("Getting %s into %s", self.repo_folder, self.working_folder)
        self.client.get(self.repo_folder)

    def reconcile(self) -> ChangeSet:
        """Compute the change set that makes the repository match the working copy.

        Changes the backend already holds as pending (checked-out, edited
        files) are part of it.
        """
        self._require(SessionState.CLEAN, SessionState.RECONCILED, SessionState.COMMITTED)
        client = self.client
        root = client.list_folder(self.repo_folder, True)
        built = build_changes(client, root, self.mapper)
        added = scan_additions(client, root, self.mapper)
        # edited files are already pending in the backend
        pending = client.list_pending_changes(self.repo_folder)
        collected = built.items + added + pending
        log.debug("Change set before dedupe: %s", ", ".join(str(i) for i in collected))
        items = remove_duplicates(collected, built.deleted_folders)
        self._change_set = ChangeSet(items)
        self.state = SessionState.RECONCILED
        log.info(
            "Change set item count: %d. %s",
            len(items), ", ".join(str(i) for i in items),
        )
        return self._change_set

    def commit(self) -> int:
        """Submit the reconciled change set as one commit.

        Returns the number of committed items; an empty change set is not
        submitted and returns 0.
        """
        self._require(SessionState.RECONCILED)
        items = self._change_set.items if self._change_set is not None else []
        if not items:
            log.info("Nothing to commit")
            self.state = SessionState.COMMITTED
            return 0
        count = self.client.commit(items, self.unchanged_policy, self.keep_local_copy)
        self.state = SessionState.COMMITTED
        log.info("Committed %d item(s)", count)
        return count

    def label(self, name: str) -> None:
        """Apply label *name* to the repository folder after a commit."""
        self._require(SessionState.COMMITTED)
        log.info("Applying label %s to %s", name, self.repo_folder)
        self.client.apply_label(self.repo_folder, name)
