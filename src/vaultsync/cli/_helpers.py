"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import logging
import sys
import traceback

import click

from .._types import UnchangedPolicy


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _fail(ctx) -> None:
    """Print the active exception with its traceback and exit with -1."""
    click.echo(traceback.format_exc(), err=True, nl=False)
    ctx.exit(-1)


def _print_changes(changes, *, dry_run: bool, committed: int = 0, label: str | None = None) -> None:
    """Pretty-print a ChangeSet and what was done with it."""
    if changes.in_sync:
        click.echo("Nothing to commit, already in sync.")
        return
    for item in sorted(changes.items, key=lambda i: i.repository_path.casefold()):
        click.echo(f"  {item.kind.value:<6}  {item.repository_path}")
    if dry_run:
        click.echo(f"{changes.total} change(s) would be committed.")
        return
    click.echo(f"Committed {committed} change(s).")
    if label:
        click.echo(f"Applied label {label}.")


# ---------------------------------------------------------------------------
# Option decorators
# ---------------------------------------------------------------------------

def _server_option(f):
    """Shared --server/--repository options for every command."""
    f = click.option("--repository", required=True, envvar="VAULTSYNC_REPOSITORY",
                     help="Repository name on the server (or set VAULTSYNC_REPOSITORY).")(f)
    f = click.option("--server", required=True, envvar="VAULTSYNC_SERVER",
                     help="Server address: path or file:// URL of the bare repository "
                          "(or set VAULTSYNC_SERVER).")(f)
    return f


def _credential_options(f):
    f = click.option("--password", required=True, envvar="VAULTSYNC_PASSWORD",
                     help="Login password (or set VAULTSYNC_PASSWORD).")(f)
    f = click.option("--user", required=True, envvar="VAULTSYNC_USER",
                     help="Login user (or set VAULTSYNC_USER).")(f)
    return f


def _mirror_options(f):
    """Options shared by the git and fileSystem commands."""
    f = click.option("--keep-local-copy/--no-keep-local-copy", default=True,
                     help="Leave working files of committed deletes on disk (default: leave).")(f)
    f = click.option("--unchanged", "unchanged_policy",
                     type=click.Choice([p.value for p in UnchangedPolicy]),
                     default=UnchangedPolicy.CHECKIN.value, show_default=True,
                     help="What to do with checked-out files whose content did not change.")(f)
    f = click.option("-n", "--dry-run", is_flag=True, default=False,
                     help="Show the change set without committing.")(f)
    f = click.option("--gitignore", "use_gitignore", is_flag=True, default=False,
                     help="Honor .gitignore files found in the source tree.")(f)
    f = click.option("--exclude-from", "exclude_from", type=click.Path(exists=True),
                     help="Read exclude patterns from file.")(f)
    f = click.option("--exclude", multiple=True,
                     help="Exclude files matching pattern (gitignore syntax, repeatable).")(f)
    f = click.option("--ignore-dir", "ignore_dirs", multiple=True,
                     default=(".git", ".idea", ".vs"), show_default=True,
                     help="Directory name to skip when copying the source (repeatable).")(f)
    f = click.option("--label", default=None,
                     help="Label to apply after committing changes.")(f)
    f = click.option("--work-dir", required=True, type=click.Path(file_okay=False),
                     envvar="VAULTSYNC_WORK_DIR",
                     help="Working directory for this run; must be empty (created if missing).")(f)
    f = click.option("--repo-folder", required=True, envvar="VAULTSYNC_REPO_FOLDER",
                     help="Repository folder to mirror into, e.g. '$/Project'.")(f)
    f = _credential_options(f)
    f = _server_option(f)
    return f


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"],
                                               case_sensitive=False),
              default=None, help="Logging level (default: WARNING, or INFO with -v).")
@click.pass_context
def main(ctx, verbose, log_level):
    """vaultsync: mirror a source tree into a version-controlled folder.

    Copies a git branch or a local folder into a working copy of a
    repository folder, then commits exactly the adds, modifications and
    deletes needed to make the repository match.

    \b
    Quick start:
      vaultsync init --server vault.git --repository main
      vaultsync fileSystem --server vault.git --repository main \\
          --user ci --password secret --repo-folder '$/Project' \\
          --work-dir /tmp/run1 --source ./build
      vaultsync git ... --url https://host/repo.git --branch main

    \b
    The working directory must be empty; it receives the clone (git/)
    and the working copy (vault/).
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    level = log_level.upper() if log_level else ("INFO" if verbose else "WARNING")
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s", stream=sys.stderr)
