"""The version-control backend contract the engine relies on.

Every method is one blocking round-trip; callers issue them strictly
sequentially.  Implementations raise :class:`~vaultsync.exceptions.AuthError`
from :meth:`Backend.login` and
:class:`~vaultsync.exceptions.BackendCallError` from any other failed call.
:mod:`vaultsync.vault` ships an implementation backed by a bare git
repository.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence

if TYPE_CHECKING:
    from ._types import ChangeSetItem, UnchangedPolicy, VersionedFolder
    from .status import FileStatus


class BackendClient(Protocol):
    """A logged-in connection; owns the server-side session state."""

    def logout(self) -> None: ...

    def bind_working_folder(self, repo_path: str, disk_path: str) -> None: ...

    def unbind_working_folder(self, repo_path: str) -> None: ...

    def working_folder(self, repo_path: str) -> str | None: ...

    def get(self, repo_path: str) -> None: ...

    def list_pending_changes(self, repo_path: str) -> list[ChangeSetItem]: ...

    def undo_pending_change(self, index: int) -> None: ...

    def get_status(self, disk_paths: Sequence[str]) -> list[FileStatus]: ...

    def checkout(
        self, disk_paths: Sequence[str], exclusive: bool, allow_multiple_checkout: bool,
    ) -> None: ...

    def add(self, repo_folder: str, disk_paths: Sequence[str]) -> list[ChangeSetItem]: ...

    def delete(self, repo_paths: Sequence[str]) -> list[ChangeSetItem]: ...

    def commit(
        self,
        items: Sequence[ChangeSetItem],
        unchanged_policy: UnchangedPolicy,
        keep_local_copy: bool,
    ) -> int: ...

    def list_folder(self, repo_path: str, recursive: bool) -> VersionedFolder: ...

    def undo_checkout(
        self, repo_paths: Sequence[str], recursive: bool, keep_local_copy: bool,
    ) -> None: ...

    def apply_label(self, repo_path: str, label: str) -> None: ...


class Backend(Protocol):
    """Entry point of a backend: authenticates and returns a client."""

    def login(
        self, server: str, user: str, password: str, repository: str,
    ) -> BackendClient: ...
