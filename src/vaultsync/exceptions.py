"""Exceptions for vaultsync."""


class VaultSyncError(Exception):
    """Base class for every error raised by vaultsync."""


class PreconditionError(VaultSyncError):
    """Raised before any backend mutation when an input is unusable.

    Examples: a non-empty working directory, a missing source folder.
    """


class PathMappingError(PreconditionError):
    """Raised when a path does not live under the bound root folder."""


class AuthError(VaultSyncError):
    """Raised when login fails (bad credentials or unreachable server)."""


class ClassificationError(VaultSyncError):
    """Raised for a file status the classifier does not model."""


class ContradictionError(VaultSyncError):
    """Raised when one repository path is claimed by two change kinds.

    Attributes:
        path: The repository path in conflict.
        kinds: The two kinds seen, in collection order.
    """

    def __init__(self, path: str, first, second):
        super().__init__(f"{path} has multiple change kinds: {first} and {second}")
        self.path = path
        self.kinds = (first, second)


class BackendCallError(VaultSyncError):
    """Raised when a primitive backend call fails. Never retried."""
