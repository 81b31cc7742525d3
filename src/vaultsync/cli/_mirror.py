"""The git and fileSystem mirror commands."""

from __future__ import annotations

import click

from .._exclude import ExcludeFilter
from .._types import UnchangedPolicy
from ..mirror import MirrorOptions, mirror_filesystem, mirror_git
from ._helpers import (
    main,
    _fail,
    _mirror_options,
    _print_changes,
    _status,
)


def _build_options(*, server, repository, user, password, repo_folder, work_dir, label,
                   ignore_dirs, exclude, exclude_from, use_gitignore, dry_run,
                   unchanged_policy, keep_local_copy) -> MirrorOptions:
    return MirrorOptions(
        server=server,
        repository=repository,
        repo_folder=repo_folder,
        user=user,
        password=password,
        work_dir=work_dir,
        label=label,
        exclude=ExcludeFilter(ignored_dirs=ignore_dirs, patterns=exclude,
                              exclude_from=exclude_from, gitignore=use_gitignore),
        dry_run=dry_run,
        unchanged_policy=UnchangedPolicy(unchanged_policy),
        keep_local_copy=keep_local_copy,
    )


def _run(ctx, mirror, *args, options: MirrorOptions):
    try:
        result = mirror(*args, options)
    except Exception:
        _fail(ctx)
    _print_changes(result.changes, dry_run=options.dry_run,
                   committed=result.committed, label=result.label)
    _status(ctx, f"Mirrored into {options.repo_folder} on {options.server}")


# ---------------------------------------------------------------------------
# git
# ---------------------------------------------------------------------------

@main.command("git")
@_mirror_options
@click.option("--url", required=True, help="URL of the git repository to mirror.")
@click.option("--branch", required=True, help="Git branch to mirror.")
@click.option("--git-user", envvar="VAULTSYNC_GIT_USER", default=None,
              help="User for an HTTPS clone (or set VAULTSYNC_GIT_USER); "
                   "defaults to the git credential helper.")
@click.option("--git-password", envvar="VAULTSYNC_GIT_PASSWORD", default=None,
              help="Password or token for an HTTPS clone (or set VAULTSYNC_GIT_PASSWORD).")
@click.pass_context
def git_cmd(ctx, url, branch, git_user, git_password, **kwargs):
    """Mirror a git branch into the repository folder.

    The branch is cloned into WORK_DIR/git, copied into the working copy
    (skipping .git and other ignored directories) and the difference is
    committed.
    """
    options = _build_options(**kwargs)
    options.git_user = git_user
    options.git_password = git_password
    _status(ctx, f"Cloning {url} ({branch})")
    _run(ctx, mirror_git, url, branch, options=options)


# ---------------------------------------------------------------------------
# fileSystem
# ---------------------------------------------------------------------------

@main.command("fileSystem")
@_mirror_options
@click.option("--source", "source", required=True, type=click.Path(),
              help="Path to the folder to mirror.")
@click.pass_context
def filesystem_cmd(ctx, source, **kwargs):
    """Mirror a local folder into the repository folder."""
    options = _build_options(**kwargs)
    _run(ctx, mirror_filesystem, source, options=options)
