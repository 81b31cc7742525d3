"""A version-control backend kept in a bare git repository.

The server address is the path (or ``file://`` URL) of a bare repository
and the repository name is a branch in it.  Repository paths map onto the
branch tree: ``$/Project/a.txt`` is ``Project/a.txt``.

Client-side state (working-folder bindings, the blob id each file had when
it was fetched, checkouts and the pending change set) is kept per user in
``<repo>/vaultsync/<user>.json`` so it survives between logins, just like
a working-folder cache would.

Users are optional: when the repository config registers none, any
credentials are accepted.  Register users with :func:`add_user`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import posixpath
import shutil
import time
from pathlib import Path
from typing import Sequence

from dulwich.errors import NotGitRepository
from dulwich.objects import Blob, Commit, Tag
from dulwich.repo import Repo

from ._tree import (
    GIT_FILEMODE_BLOB_EXECUTABLE,
    GIT_FILEMODE_LINK,
    blob_id_for_file,
    flatten_tree,
    mode_from_disk,
    rebuild_tree,
)
from ._types import (
    ChangeKind,
    ChangeSetItem,
    UnchangedPolicy,
    VersionedFile,
    VersionedFolder,
)
from .exceptions import AuthError, BackendCallError, PathMappingError
from .paths import REPO_ROOT, PathMapper, is_below, is_under, normalize_repo_path
from .status import FileStatus

log = logging.getLogger(__name__)

STATE_DIR = "vaultsync"
USER_SECTION = b"vaultsync-user"
ANONYMOUS = "anonymous"


# ---------------------------------------------------------------------------
# Repository administration
# ---------------------------------------------------------------------------

def _repo_dir(server: str) -> str:
    return server[len("file://"):] if server.startswith("file://") else server


def _branch_ref(repository: str) -> bytes:
    if not repository or any(ch in repository for ch in ": \t\n"):
        raise ValueError(f"Invalid repository name: {repository!r}")
    return f"refs/heads/{repository}".encode()


def _hash_password(password: str) -> bytes:
    return hashlib.sha256(password.encode()).hexdigest().encode("ascii")


def _signature(user: str) -> bytes:
    return f"{user} <{user}@vaultsync>".encode()


def init_vault(
    server: str,
    repository: str = "main",
    *,
    user: str | None = None,
    password: str | None = None,
) -> None:
    """Create a bare repository at *server* with an empty *repository* branch.

    An existing repository is reused; the branch is created only if
    missing.  When *user* is given it is registered with *password*.
    """
    path = _repo_dir(server)
    ref = _branch_ref(repository)
    if os.path.exists(path):
        repo = Repo(path)
    else:
        repo = Repo.init_bare(path, mkdir=True)
    try:
        if ref not in repo.refs:
            tree = rebuild_tree(repo.object_store, None, {}, set())
            c = _new_commit(tree, [], _signature("vaultsync"), f"Create repository {repository}")
            repo.object_store.add_object(c)
            repo.refs[ref] = c.id
            repo.refs.set_symbolic_ref(b"HEAD", ref)
    finally:
        repo.close()
    if user is not None:
        add_user(server, user, password or "")


def add_user(server: str, user: str, password: str) -> None:
    """Register (or update) *user* in the repository config."""
    repo = Repo(_repo_dir(server))
    try:
        config = repo.get_config()
        config.set((USER_SECTION, user.encode()), b"password-sha256", _hash_password(password))
        config.write_to_path()
    finally:
        repo.close()


def _registered_users(repo: Repo) -> dict[str, bytes]:
    users: dict[str, bytes] = {}
    config = repo.get_config()
    for section in config.sections():
        if len(section) == 2 and section[0] == USER_SECTION:
            try:
                users[section[1].decode()] = config.get(section, b"password-sha256")
            except KeyError:
                continue
    return users


def _new_commit(tree_id: bytes, parents: list[bytes], identity: bytes, message: str) -> Commit:
    c = Commit()
    c.tree = tree_id
    c.parents = parents
    c.author = c.committer = identity
    now = int(time.time())
    c.author_time = c.commit_time = now
    c.author_timezone = c.commit_timezone = 0
    msg = message.encode()
    if not msg.endswith(b"\n"):
        msg += b"\n"
    c.message = msg
    c.encoding = b"UTF-8"
    return c


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------

class GitVault:
    """Backend entry point: log in to a bare repository."""

    def login(self, server: str, user: str, password: str, repository: str) -> VaultClient:
        path = _repo_dir(server)
        if not os.path.isdir(path):
            raise AuthError(f"Server not reachable: {server}")
        try:
            repo = Repo(path)
        except NotGitRepository as exc:
            raise AuthError(f"Server not reachable: {server}") from exc
        try:
            try:
                ref = _branch_ref(repository)
            except ValueError as exc:
                raise AuthError(str(exc)) from exc
            if ref not in repo.refs:
                raise AuthError(f"Repository not found: {repository}")
            users = _registered_users(repo)
            if users and users.get(user) != _hash_password(password):
                raise AuthError(f"Invalid credentials for user {user!r}")
        except AuthError:
            repo.close()
            raise
        return VaultClient(repo, repository, user or ANONYMOUS)


class VaultClient:
    """A logged-in connection to a :class:`GitVault` repository."""

    def __init__(self, repo: Repo, repository: str, user: str):
        self._repo = repo
        self.repository = repository
        self.user = user
        self._ref = _branch_ref(repository)
        self._state_path = Path(repo.controldir()) / STATE_DIR / f"{user}.json"
        self._connected = True
        # repo folder -> disk folder
        self._bindings: dict[str, str] = {}
        # casefolded repo path -> {"path": ..., "id": blob id fetched into the working copy}
        self._baselines: dict[str, dict] = {}
        # casefolded repo path -> {"path": ..., "exclusive": ...}
        self._checkouts: dict[str, dict] = {}
        self._pending: list[ChangeSetItem] = []
        self._load()

    def __repr__(self) -> str:
        return f"VaultClient({self._repo.controldir()!r}, {self.repository!r}, user={self.user!r})"

    # ------------------------------------------------------------------
    # State persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if not self._state_path.is_file():
            return
        data = json.loads(self._state_path.read_text())
        self._bindings = dict(data.get("bindings", {}))
        self._baselines = dict(data.get("baselines", {}))
        self._checkouts = dict(data.get("checkouts", {}))
        self._pending = [
            ChangeSetItem(p["path"], ChangeKind(p["kind"])) for p in data.get("pending", [])
        ]

    def _save(self) -> None:
        data = {
            "bindings": self._bindings,
            "baselines": self._baselines,
            "checkouts": self._checkouts,
            "pending": [{"path": i.repository_path, "kind": i.kind.value} for i in self._pending],
        }
        self._state_path.parent.mkdir(parents=True, exist_ok=True)
        self._state_path.write_text(json.dumps(data, indent=2, sort_keys=True))

    def _foreign_checkouts(self) -> dict[str, list[tuple[str, bool]]]:
        """Checkouts held by other users: ``{key: [(user, exclusive), ...]}``."""
        result: dict[str, list[tuple[str, bool]]] = {}
        state_dir = self._state_path.parent
        if not state_dir.is_dir():
            return result
        for path in state_dir.glob("*.json"):
            if path == self._state_path:
                continue
            data = json.loads(path.read_text())
            for key, co in data.get("checkouts", {}).items():
                result.setdefault(key, []).append((path.stem, bool(co.get("exclusive"))))
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_connected(self) -> None:
        if not self._connected:
            raise BackendCallError("Not logged in")

    def _tip(self) -> tuple[bytes, bytes]:
        """Return (commit id, tree id) of the branch tip."""
        try:
            commit_id = self._repo.refs[self._ref]
        except KeyError as exc:
            raise BackendCallError(f"Repository not found: {self.repository}") from exc
        return commit_id, self._repo[commit_id].tree

    def _tip_files(self) -> dict[str, tuple[int, bytes]]:
        return flatten_tree(self._repo.object_store, self._tip()[1])

    @staticmethod
    def _tree_path(repo_path: str) -> str:
        repo_path = normalize_repo_path(repo_path)
        return "" if repo_path == REPO_ROOT else repo_path[len(REPO_ROOT) + 1:]

    @staticmethod
    def _repo_path(tree_path: str) -> str:
        return f"{REPO_ROOT}/{tree_path}" if tree_path else REPO_ROOT

    def _mapper_for_repo(self, repo_path: str) -> PathMapper:
        """Mapper of the innermost binding containing *repo_path*."""
        best = None
        for folder, disk in self._bindings.items():
            if is_under(repo_path, folder) and (best is None or len(folder) > len(best[0])):
                best = (folder, disk)
        if best is None:
            raise BackendCallError(f"No working folder bound for {repo_path}")
        return PathMapper(*best)

    def _repo_path_for_disk(self, disk_path: str) -> str:
        for folder, disk in sorted(self._bindings.items(), key=lambda b: -len(b[1])):
            try:
                return PathMapper(folder, disk).to_repo_path(disk_path)
            except PathMappingError:
                continue
        raise BackendCallError(f"{disk_path} is not in a bound working folder")

    def _disk_path(self, repo_path: str) -> str:
        return self._mapper_for_repo(repo_path).to_disk_path(repo_path)

    def _find_file(self, files: dict[str, tuple[int, bytes]], repo_path: str) -> str | None:
        """Tree path of the file at *repo_path* (case-insensitive), or None."""
        tp = self._tree_path(repo_path)
        if tp in files:
            return tp
        key = tp.casefold()
        for path in files:
            if path.casefold() == key:
                return path
        return None

    def _folder_prefix(self, files: dict[str, tuple[int, bytes]], repo_path: str) -> str | None:
        """Actual-case tree path of the folder *repo_path*, or None if absent."""
        tp = self._tree_path(repo_path)
        if not tp:
            return ""
        key = tp.casefold() + "/"
        for path in files:
            if path.casefold().startswith(key):
                return path[:len(tp)]
        return None

    def _baseline(self, repo_path: str) -> str | None:
        entry = self._baselines.get(repo_path.casefold())
        return entry["id"] if entry else None

    def _set_baseline(self, repo_path: str, blob_id: str) -> None:
        self._baselines[repo_path.casefold()] = {"path": repo_path, "id": blob_id}

    def _release(self, key: str) -> None:
        self._checkouts.pop(key, None)
        self._pending = [
            i for i in self._pending if not (i.key == key and i.kind == ChangeKind.MODIFY)
        ]

    def _add_pending(self, item: ChangeSetItem) -> None:
        if not any(i.key == item.key and i.kind == item.kind for i in self._pending):
            self._pending.append(item)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def logout(self) -> None:
        if not self._connected:
            return
        self._save()
        self._connected = False
        self._repo.close()

    def bind_working_folder(self, repo_path: str, disk_path: str) -> None:
        self._check_connected()
        repo_path = normalize_repo_path(repo_path)
        disk_path = os.path.abspath(disk_path)
        if self._tree_path(repo_path) and self._find_file(self._tip_files(), repo_path):
            raise BackendCallError(f"{repo_path} is a file, not a folder")
        os.makedirs(disk_path, exist_ok=True)
        self._bindings[repo_path] = disk_path
        self._save()

    def unbind_working_folder(self, repo_path: str) -> None:
        self._check_connected()
        for folder in [f for f in self._bindings if f.casefold() == repo_path.casefold()]:
            del self._bindings[folder]
            self._baselines = {
                k: v for k, v in self._baselines.items() if not is_under(k, folder.casefold())
            }
            self._checkouts = {
                k: v for k, v in self._checkouts.items() if not is_under(k, folder.casefold())
            }
        self._save()

    def working_folder(self, repo_path: str) -> str | None:
        self._check_connected()
        for folder, disk in self._bindings.items():
            if folder.casefold() == repo_path.casefold():
                return disk
        return None

    def get(self, repo_path: str) -> None:
        """Write the latest version of every file under *repo_path* to disk.

        Working files are overwritten; files fetched earlier that the
        repository no longer has are removed from disk.
        """
        self._check_connected()
        files = self._tip_files()
        prefix = self._folder_prefix(files, repo_path)
        seen: set[str] = set()
        try:
            if prefix is not None:
                for tp, (mode, sha) in files.items():
                    if prefix and not tp.startswith(prefix + "/"):
                        continue
                    rp = self._repo_path(tp)
                    disk = self._disk_path(rp)
                    self._write_working_file(disk, mode, sha)
                    self._set_baseline(rp, sha.decode())
                    seen.add(rp.casefold())
            for key, entry in list(self._baselines.items()):
                if key in seen or not is_under(key, repo_path.casefold()):
                    continue
                del self._baselines[key]
                disk = self._disk_path(entry["path"])
                if os.path.isfile(disk) or os.path.islink(disk):
                    os.remove(disk)
        except OSError as exc:
            raise BackendCallError(f"Get of {repo_path} failed: {exc}") from exc
        finally:
            self._save()

    def _write_working_file(self, disk: str, mode: int, sha: bytes) -> None:
        data = self._repo.object_store[sha].data
        os.makedirs(os.path.dirname(disk), exist_ok=True)
        if os.path.islink(disk) or os.path.isfile(disk):
            os.remove(disk)
        if mode == GIT_FILEMODE_LINK:
            os.symlink(data.decode(), disk)
            return
        with open(disk, "wb") as f:
            f.write(data)
        if mode == GIT_FILEMODE_BLOB_EXECUTABLE:
            os.chmod(disk, os.stat(disk).st_mode | 0o111)

    # ------------------------------------------------------------------
    # Pending change set
    # ------------------------------------------------------------------

    def list_pending_changes(self, repo_path: str) -> list[ChangeSetItem]:
        self._check_connected()
        return [i for i in self._pending if is_under(i.repository_path, repo_path)]

    def undo_pending_change(self, index: int) -> None:
        self._check_connected()
        try:
            item = self._pending.pop(index)
        except IndexError as exc:
            raise BackendCallError(f"No pending change at index {index}") from exc
        if item.kind == ChangeKind.MODIFY:
            self._checkouts.pop(item.key, None)
        log.debug("Undid pending change %s", item)
        self._save()

    # ------------------------------------------------------------------
    # Status and edits
    # ------------------------------------------------------------------

    def get_status(self, disk_paths: Sequence[str]) -> list[FileStatus]:
        self._check_connected()
        files = self._tip_files()
        try:
            return [self._status_of(d, files) for d in disk_paths]
        except OSError as exc:
            raise BackendCallError(f"Status query failed: {exc}") from exc

    def _status_of(self, disk_path: str, files: dict[str, tuple[int, bytes]]) -> FileStatus:
        repo_path = self._repo_path_for_disk(disk_path)
        if not (os.path.isfile(disk_path) or os.path.islink(disk_path)):
            return FileStatus.MISSING
        baseline = self._baseline(repo_path)
        if baseline is None:
            return FileStatus.UNKNOWN
        tp = self._find_file(files, repo_path)
        if tp is None:
            return FileStatus.MORE_RECENT
        tip = files[tp][1].decode()
        local = blob_id_for_file(disk_path).decode()
        local_changed = local != baseline
        repo_changed = tip != baseline
        if not local_changed and not repo_changed:
            return FileStatus.UNCHANGED
        if not repo_changed:
            if repo_path.casefold() in self._checkouts:
                return FileStatus.EDITED
            return FileStatus.RENEGADE
        if not local_changed:
            return FileStatus.OLD
        if local == tip:
            return FileStatus.MERGED
        return FileStatus.NEEDS_MERGE

    def checkout(
        self, disk_paths: Sequence[str], exclusive: bool, allow_multiple_checkout: bool,
    ) -> None:
        self._check_connected()
        files = self._tip_files()
        foreign = self._foreign_checkouts()
        for disk in disk_paths:
            repo_path = self._repo_path_for_disk(disk)
            tp = self._find_file(files, repo_path)
            if tp is None:
                raise BackendCallError(f"Cannot check out {repo_path}: not in repository")
            repo_path = self._repo_path(tp)
            key = repo_path.casefold()
            holders = foreign.get(key, [])
            if any(excl for _user, excl in holders):
                raise BackendCallError(f"{repo_path} is exclusively checked out by {holders[0][0]}")
            if holders and (exclusive or not allow_multiple_checkout):
                raise BackendCallError(f"{repo_path} is already checked out by {holders[0][0]}")
            self._checkouts[key] = {"path": repo_path, "exclusive": exclusive}
            self._add_pending(ChangeSetItem(repo_path, ChangeKind.MODIFY))
        self._save()

    def undo_checkout(
        self, repo_paths: Sequence[str], recursive: bool, keep_local_copy: bool,
    ) -> None:
        """Release checkouts; without *keep_local_copy* restore fetched content."""
        self._check_connected()
        files = self._tip_files()
        try:
            for repo_path in repo_paths:
                if recursive:
                    keys = [k for k in self._checkouts if is_under(k, repo_path.casefold())]
                else:
                    keys = [k for k in self._checkouts if k == repo_path.casefold()]
                for key in keys:
                    path = self._checkouts[key]["path"]
                    self._release(key)
                    baseline = self._baseline(path)
                    tp = self._find_file(files, path)
                    if keep_local_copy or baseline is None or tp is None:
                        continue
                    self._write_working_file(self._disk_path(path), files[tp][0], baseline.encode())
        except OSError as exc:
            raise BackendCallError(f"Undo checkout failed: {exc}") from exc
        finally:
            self._save()

    def add(self, repo_folder: str, disk_paths: Sequence[str]) -> list[ChangeSetItem]:
        self._check_connected()
        repo_folder = normalize_repo_path(repo_folder)
        files = self._tip_files()
        added: list[ChangeSetItem] = []
        for disk in disk_paths:
            if not (os.path.isfile(disk) or os.path.islink(disk)):
                raise BackendCallError(f"Cannot add {disk}: not a file")
            repo_path = f"{repo_folder}/{os.path.basename(disk)}"
            if self._find_file(files, repo_path) is not None:
                raise BackendCallError(f"Cannot add {repo_path}: already in repository")
            item = ChangeSetItem(repo_path, ChangeKind.ADD)
            self._add_pending(item)
            added.append(item)
        self._save()
        return added

    def delete(self, repo_paths: Sequence[str]) -> list[ChangeSetItem]:
        self._check_connected()
        files = self._tip_files()
        deleted: list[ChangeSetItem] = []
        for repo_path in repo_paths:
            tp = self._find_file(files, repo_path)
            if tp is None:
                tp = self._folder_prefix(files, repo_path)
            if not tp:
                raise BackendCallError(f"Cannot delete {repo_path}: not in repository")
            item = ChangeSetItem(self._repo_path(tp), ChangeKind.DELETE)
            self._add_pending(item)
            deleted.append(item)
        self._save()
        return deleted

    # ------------------------------------------------------------------
    # Commit and labels
    # ------------------------------------------------------------------

    def commit(
        self,
        items: Sequence[ChangeSetItem],
        unchanged_policy: UnchangedPolicy,
        keep_local_copy: bool,
    ) -> int:
        """Commit *items* as one git commit; return how many were committed.

        Raises :class:`BackendCallError` if a modified file changed in the
        repository since it was fetched, or if the branch moved while
        committing.
        """
        self._check_connected()
        if not items:
            return 0
        try:
            return self._commit(items, unchanged_policy, keep_local_copy)
        except OSError as exc:
            raise BackendCallError(f"Commit failed: {exc}") from exc

    def _commit(
        self,
        items: Sequence[ChangeSetItem],
        unchanged_policy: UnchangedPolicy,
        keep_local_copy: bool,
    ) -> int:
        commit_id, tree_id = self._tip()
        files = flatten_tree(self._repo.object_store, tree_id)
        writes: dict[str, tuple[bytes, int]] = {}
        removes: set[str] = set()
        committed: list[ChangeSetItem] = []
        new_baselines: dict[str, str] = {}

        for item in items:
            if item.kind == ChangeKind.DELETE:
                tp = self._find_file(files, item.repository_path)
                if tp is None:
                    tp = self._folder_prefix(files, item.repository_path)
                if not tp:
                    raise BackendCallError(f"Cannot delete {item.repository_path}: not in repository")
                removes.add(tp)
                committed.append(item)
                continue

            disk = self._disk_path(item.repository_path)
            if not (os.path.isfile(disk) or os.path.islink(disk)):
                raise BackendCallError(f"Cannot commit {item.repository_path}: {disk} is missing")
            local = blob_id_for_file(disk)
            if item.kind == ChangeKind.MODIFY:
                tp = self._find_file(files, item.repository_path)
                if tp is None:
                    raise BackendCallError(f"Cannot commit {item.repository_path}: deleted in repository")
                tip = files[tp][1]
                baseline = self._baseline(item.repository_path)
                if baseline is not None and tip.decode() != baseline:
                    raise BackendCallError(
                        f"Cannot commit {item.repository_path}: changed in repository since it was fetched"
                    )
                # A modify spelled differently renames the file (case only)
                target = posixpath.join(posixpath.dirname(tp), item.repository_path.rsplit("/", 1)[-1])
                if target != tp:
                    removes.add(tp)
                    tp = target
                elif local == tip:
                    if unchanged_policy == UnchangedPolicy.UNDO_CHECKOUT:
                        self._release(item.key)
                        continue
                    if unchanged_policy == UnchangedPolicy.LEAVE_CHECKED_OUT:
                        continue
                    committed.append(item)
                    continue
            else:
                tp = self._tree_path(item.repository_path)
            writes[tp] = (self._store_blob(disk), mode_from_disk(disk))
            new_baselines[item.key] = local.decode()
            committed.append(item)

        if writes or removes:
            new_tree = rebuild_tree(self._repo.object_store, tree_id, writes, removes)
            c = _new_commit(
                new_tree, [commit_id], _signature(self.user),
                f"vaultsync: {len(committed)} change(s)",
            )
            self._repo.object_store.add_object(c)
            if not self._repo.refs.set_if_equals(self._ref, commit_id, c.id):
                raise BackendCallError(f"Repository {self.repository} changed during commit")
            log.debug("Created commit %s", c.id.decode()[:7])

        for item in committed:
            if item.kind == ChangeKind.DELETE:
                for key in [k for k in self._baselines if is_under(k, item.key)]:
                    del self._baselines[key]
                for key in [k for k in self._checkouts if is_under(k, item.key)]:
                    self._release(key)
                if not keep_local_copy:
                    self._remove_local(item.repository_path)
            else:
                if item.kind == ChangeKind.ADD:
                    # the file may replace a folder of the same name
                    for key in [k for k in self._baselines if is_below(k, item.key)]:
                        del self._baselines[key]
                    for key in [k for k in self._checkouts if is_below(k, item.key)]:
                        self._release(key)
                    self._pending = [i for i in self._pending if not is_below(i.key, item.key)]
                if item.key in new_baselines:
                    self._set_baseline(item.repository_path, new_baselines[item.key])
                self._release(item.key)
        done = {i.key for i in committed}
        self._pending = [i for i in self._pending if i.key not in done]
        self._save()
        return len(committed)

    def _store_blob(self, disk: str) -> bytes:
        if os.path.islink(disk):
            data = os.readlink(disk).encode()
        else:
            with open(disk, "rb") as f:
                data = f.read()
        blob = Blob.from_string(data)
        self._repo.object_store.add_object(blob)
        return blob.id

    def _remove_local(self, repo_path: str) -> None:
        disk = self._disk_path(repo_path)
        if os.path.isdir(disk) and not os.path.islink(disk):
            shutil.rmtree(disk)
        elif os.path.lexists(disk):
            os.remove(disk)

    def list_folder(self, repo_path: str, recursive: bool) -> VersionedFolder:
        """Return the versioned folder *repo_path*.

        A folder without files does not exist in a git tree; it is
        returned empty.  Without *recursive*, subfolders carry no children.
        """
        self._check_connected()
        repo_path = normalize_repo_path(repo_path)
        files = self._tip_files()
        if self._tree_path(repo_path) and self._find_file(files, repo_path):
            raise BackendCallError(f"{repo_path} is a file, not a folder")
        root = VersionedFolder(repo_path)
        prefix = self._folder_prefix(files, repo_path)
        if prefix is None:
            return root
        folders: dict[str, VersionedFolder] = {"": root}
        for tp in sorted(files):
            if prefix and not tp.startswith(prefix + "/"):
                continue
            rel = tp[len(prefix) + 1:] if prefix else tp
            parts = rel.split("/")
            if not recursive and len(parts) > 1:
                parts = parts[:2]
                is_file = False
            else:
                is_file = True
            parent = root
            for depth in range(1, len(parts)):
                key = "/".join(parts[:depth])
                node = folders.get(key)
                if node is None:
                    node = VersionedFolder(f"{repo_path}/{key}")
                    folders[key] = node
                    parent.folders.append(node)
                parent = node
            if is_file:
                parent.files.append(VersionedFile(f"{repo_path}/{rel}"))
        return root

    def apply_label(self, repo_path: str, label: str) -> None:
        """Create annotated tag *label* at the branch tip."""
        self._check_connected()
        ref = f"refs/tags/{label}".encode()
        if any(ch in label for ch in ": \t\n") or not label:
            raise BackendCallError(f"Invalid label name: {label!r}")
        if ref in self._repo.refs:
            raise BackendCallError(f"Label already exists: {label}")
        commit_id, _tree = self._tip()
        tag = Tag()
        tag.name = label.encode()
        tag.object = (Commit, commit_id)
        tag.tagger = _signature(self.user)
        tag.tag_time = int(time.time())
        tag.tag_timezone = 0
        tag.message = f"Label {normalize_repo_path(repo_path)}\n".encode()
        self._repo.object_store.add_object(tag)
        self._repo.refs[ref] = tag.id
