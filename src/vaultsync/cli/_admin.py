"""Repository administration commands for the bundled git backend."""

from __future__ import annotations

import click

from ..vault import init_vault
from ._helpers import (
    main,
    _server_option,
    _status,
)


@main.command()
@_server_option
@click.option("--user", default=None, help="Register this user.")
@click.option("--password", default=None, envvar="VAULTSYNC_PASSWORD",
              help="Password of the registered user (or set VAULTSYNC_PASSWORD).")
@click.pass_context
def init(ctx, server, repository, user, password):
    """Create a bare repository holding REPOSITORY as a branch.

    An existing repository is reused; only the missing branch is created.
    Without registered users any credentials are accepted at login.
    """
    if password is not None and user is None:
        raise click.ClickException("--password requires --user")
    try:
        init_vault(server, repository, user=user, password=password)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    _status(ctx, f"Initialized {server} ({repository})")
