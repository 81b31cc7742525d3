"""Low-level git tree helpers for the bundled backend (dulwich object store)."""

from __future__ import annotations

import hashlib
import os
import stat
from collections import defaultdict

from dulwich.objects import Tree

GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644
GIT_FILEMODE_BLOB_EXECUTABLE = 0o100755
GIT_FILEMODE_LINK = 0o120000
GIT_FILEMODE_COMMIT = 0o160000

_HASH_CHUNK_SIZE = 65536


def _blob_hasher(size: int):
    """Return a SHA-1 hasher pre-loaded with the git blob header.

    Git blob OID = SHA-1(``blob <size>\\0`` + content).
    """
    return hashlib.sha1(f"blob {size}\0".encode())


def blob_id_for_file(path: str) -> bytes:
    """Compute the git blob id of a disk file without loading it whole.

    Symlinks hash their target string.  Returns 40-char hex bytes, the
    form dulwich uses for object ids.
    """
    if os.path.islink(path):
        data = os.readlink(path).encode()
        h = _blob_hasher(len(data))
        h.update(data)
        return h.hexdigest().encode("ascii")
    size = os.stat(path).st_size
    h = _blob_hasher(size)
    with open(path, "rb") as f:
        while True:
            chunk = f.read(_HASH_CHUNK_SIZE)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest().encode("ascii")


def mode_from_disk(path: str) -> int:
    """Return the git filemode for a disk file."""
    if os.path.islink(path):
        return GIT_FILEMODE_LINK
    st = os.stat(path)
    if stat.S_ISDIR(st.st_mode):
        raise IsADirectoryError(path)
    if st.st_mode & 0o111:
        return GIT_FILEMODE_BLOB_EXECUTABLE
    return GIT_FILEMODE_BLOB


def flatten_tree(object_store, tree_id: bytes | None) -> dict[str, tuple[int, bytes]]:
    """Return ``{path: (filemode, blob_id)}`` for every file below *tree_id*.

    Submodule entries are skipped.
    """
    result: dict[str, tuple[int, bytes]] = {}
    if tree_id is None:
        return result
    stack = [("", tree_id)]
    while stack:
        prefix, tid = stack.pop()
        for entry in object_store[tid].iteritems():
            name = entry.path.decode()
            path = f"{prefix}/{name}" if prefix else name
            if entry.mode == GIT_FILEMODE_TREE:
                stack.append((path, entry.sha))
            elif entry.mode != GIT_FILEMODE_COMMIT:
                result[path] = (entry.mode, entry.sha)
    return result


def rebuild_tree(
    object_store,
    base_tree_id: bytes | None,
    writes: dict[str, tuple[bytes, int]],
    removes: set[str],
) -> bytes:
    """Rebuild a tree with writes and removes applied.

    Only the ancestor chain from changed leaves to root is rebuilt.
    Sibling subtrees are shared by id.  Directories left empty are pruned.

    Args:
        object_store: The dulwich object store.
        base_tree_id: Id of the existing tree (or None for empty).
        writes: Mapping of path → (blob id, filemode); blobs must already
            be in the store.
        removes: Paths (files or whole folders) to remove.

    Returns:
        Id of the new root tree.
    """
    sub_writes: dict[str, dict[str, tuple[bytes, int]]] = defaultdict(dict)
    leaf_writes: dict[str, tuple[bytes, int]] = {}
    sub_removes: dict[str, set[str]] = defaultdict(set)
    leaf_removes: set[str] = set()

    for path, value in writes.items():
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_writes[parts[0]] = value
        else:
            sub_writes[parts[0]][parts[1]] = value

    for path in removes:
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_removes.add(parts[0])
        else:
            sub_removes[parts[0]].add(parts[1])

    entries: dict[bytes, tuple[int, bytes]] = {}
    if base_tree_id is not None:
        for entry in object_store[base_tree_id].iteritems():
            entries[entry.path] = (entry.mode, entry.sha)

    # Removes first so a write can replace a removed folder with a file
    for name in leaf_removes:
        entries.pop(name.encode(), None)
    for name, (blob_id, mode) in leaf_writes.items():
        entries[name.encode()] = (mode, blob_id)

    for subdir in set(sub_writes) | set(sub_removes):
        key = subdir.encode()
        existing = entries.get(key)
        existing_id = existing[1] if existing and existing[0] == GIT_FILEMODE_TREE else None
        if existing_id is None and subdir not in sub_writes:
            continue
        new_id = rebuild_tree(
            object_store,
            existing_id,
            sub_writes.get(subdir, {}),
            sub_removes.get(subdir, set()),
        )
        if len(object_store[new_id]) == 0:
            entries.pop(key, None)
        else:
            entries[key] = (GIT_FILEMODE_TREE, new_id)

    tree = Tree()
    for name, (mode, sha) in sorted(entries.items()):
        tree.add(name, mode, sha)
    object_store.add_object(tree)
    return tree.id
