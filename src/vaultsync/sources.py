"""Content providers: put the source tree on disk.

A source is either a branch of a git repository (cloned with dulwich) or
a folder of the local filesystem.  Either way its files end up copied
into the working copy with :func:`copy_tree`.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from dulwich import porcelain
from dulwich.errors import GitProtocolError, NotGitRepository

from ._exclude import ExcludeFilter
from .exceptions import PreconditionError

log = logging.getLogger(__name__)


def _credential_helper_login(host: str) -> tuple[str | None, str | None]:
    """Ask the configured git credential helper for the login stored for *host*."""
    request = f"protocol=https\nhost={host}\n\n"
    try:
        proc = subprocess.run(
            ["git", "credential", "fill"],
            input=request, capture_output=True, text=True, timeout=5,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except (OSError, subprocess.TimeoutExpired):
        return None, None
    if proc.returncode != 0:
        return None, None
    fields = dict(line.split("=", 1) for line in proc.stdout.splitlines() if "=" in line)
    return fields.get("username"), fields.get("password")


def authenticated_url(url: str, user: str | None = None, password: str | None = None) -> str:
    """Return *url* with a login embedded, for cloning over HTTPS.

    The login comes from *user* and *password* (the ``--git-user`` and
    ``--git-password`` options) or, without *user*, from the git
    credential helper.  Non-HTTPS URLs and URLs naming a user already are
    left alone.
    """
    parts = urlsplit(url)
    if parts.scheme != "https" or parts.username:
        return url
    if user is None:
        user, password = _credential_helper_login(parts.hostname or "")
        if user is None:
            return url
    login = quote(user, safe="")
    if password:
        login += ":" + quote(password, safe="")
    host = parts.hostname + (f":{parts.port}" if parts.port else "")
    return urlunsplit(parts._replace(netloc=f"{login}@{host}"))


def clone_git(
    url: str,
    branch: str,
    dest: str | os.PathLike[str],
    *,
    user: str | None = None,
    password: str | None = None,
) -> None:
    """Clone *branch* of the git repository at *url* into *dest*."""
    log.info("Starting to clone %s (branch %s)", url, branch)
    try:
        repo = porcelain.clone(authenticated_url(url, user, password), os.fspath(dest), branch=branch)
    except (GitProtocolError, NotGitRepository, KeyError, ValueError, OSError) as exc:
        raise PreconditionError(f"Cannot clone {url} branch {branch}: {exc}") from exc
    try:
        log.info("Cloned %s at %s", url, repo.head().decode()[:7])
    finally:
        repo.close()


def copy_tree(
    src: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    exclude: ExcludeFilter | None = None,
) -> int:
    """Copy the files under *src* into *dest*; return the number of files copied.

    Directories excluded by *exclude* (by default: named ``.git``,
    ``.idea`` or ``.vs``) are skipped with their whole content.
    Symlinked directories are not descended into; symlinked files are
    copied as regular files.
    """
    src_path = Path(src)
    if not src_path.is_dir():
        raise PreconditionError(
            f"Source directory does not exist or could not be found: {src_path}"
        )
    if exclude is None:
        exclude = ExcludeFilter()
    dest_path = Path(dest)
    count = 0
    for dirpath, dirnames, filenames in os.walk(src_path):
        dp = Path(dirpath)
        rel_dir = dp.relative_to(src_path).as_posix()
        if rel_dir == ".":
            rel_dir = ""
        exclude.enter_directory(dp, rel_dir)
        target = dest_path / rel_dir if rel_dir else dest_path
        target.mkdir(parents=True, exist_ok=True)

        kept = []
        for d in sorted(dirnames):
            rel = f"{rel_dir}/{d}" if rel_dir else d
            if (dp / d).is_symlink() or exclude.is_excluded(rel, is_dir=True):
                log.debug("Skipping directory %s", rel)
                continue
            kept.append(d)
        dirnames[:] = kept

        for fname in sorted(filenames):
            rel = f"{rel_dir}/{fname}" if rel_dir else fname
            if exclude.has_patterns and exclude.is_excluded(rel):
                continue
            shutil.copy2(dp / fname, target / fname)
            count += 1
    return count


def clear_directory(path: str | os.PathLike[str]) -> None:
    """Remove every file and subdirectory of *path*, keeping *path* itself."""
    base = Path(path)
    if not base.is_dir():
        return
    for child in base.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
