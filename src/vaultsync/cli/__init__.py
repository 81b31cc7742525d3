"""vaultsync CLI: mirror a git branch or a folder into a repository folder."""

from ._helpers import main  # noqa: F401

# Import command modules to register Click commands with the main group.
from . import _admin, _mirror  # noqa: F401
