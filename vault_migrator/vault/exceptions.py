"""Exceptions raised while migrating a Vault server.

A migration run sorts failures into two kinds. Failures of a single item (one
secret, version, policy, role or user) are raised as ``VaultError`` subclasses
by the client and caught by the exporter or importer, which record the item as
skipped. Failures that make the run pointless (missing credentials, an
unreachable or sealed server, a bad snapshot file, a category that cannot be
listed) reach the command line and end it with exit status 1.
"""

from typing import Optional


class VaultError(Exception):
    """Base class for every error the migrator raises."""

    def __init__(self, message: str, details: Optional[dict] = None):
        """Initialize the error.

        Args:
            message: Human readable description, printed by the CLI
            details: Extra context appended to the message
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class VaultConnectionError(VaultError):
    """The source or target server could not be reached."""

    def __init__(
        self,
        message: str = "Vault server is unreachable",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)


class VaultAuthenticationError(VaultError):
    """The token is missing or was rejected by the server."""

    def __init__(
        self,
        message: str = "Vault token is missing or was rejected",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)


class VaultSecretNotFoundError(VaultError):
    """A logical path holds no value, e.g. a deleted or destroyed KV version."""

    def __init__(
        self,
        path: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message or f"No value stored at {path}", details)
        self.path = path


class VaultPermissionError(VaultError):
    """The token's policies do not allow an operation on a path.

    During export this usually means a subtree or a single secret is hidden
    from the migrating token; the item is skipped.
    """

    def __init__(
        self,
        path: str,
        operation: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(
            message or f"Permission denied for {operation} on path: {path}",
            details,
        )
        self.path = path
        self.operation = operation


class VaultSealedError(VaultError):
    """The server is sealed or not initialized, so nothing can be migrated."""

    def __init__(
        self,
        message: str = "Vault is sealed or not initialized",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details)


class VaultValidationError(VaultError):
    """Connection settings from flags, environment or .env are missing or invalid."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, details)


class SnapshotError(VaultError):
    """A snapshot or users file cannot be written, read or parsed."""

    def __init__(
        self,
        path: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message or f"Unusable snapshot file: {path}", details)
        self.path = path


class CategoryError(VaultError):
    """A whole category (engines, policies, auth methods) cannot be listed."""

    def __init__(
        self,
        category: str,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message or f"Failed to list {category}", details)
        self.category = category
