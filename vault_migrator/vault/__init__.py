"""Vault module for the migrator.

This module provides the VaultClient wrapper, the snapshot models, the
exporter and importer, and the exceptions they raise.
"""

from vault_migrator.vault.backup import ExportResult, VaultExporter
from vault_migrator.vault.client import VaultClient
from vault_migrator.vault.exceptions import (
    CategoryError,
    SnapshotError,
    VaultAuthenticationError,
    VaultConnectionError,
    VaultError,
    VaultPermissionError,
    VaultSealedError,
    VaultSecretNotFoundError,
    VaultValidationError,
)
from vault_migrator.vault.models import (
    AuthKind,
    AuthMethod,
    EngineKind,
    Policy,
    RestoreOptions,
    Role,
    Secret,
    SecretEngine,
    SecretMetadata,
    SecretVersion,
    Snapshot,
    User,
    VaultConnectionConfig,
    VaultHealth,
    coerce_int,
)
from vault_migrator.vault.paths import list_leaf_paths
from vault_migrator.vault.restore import RestoreResult, VaultImporter
from vault_migrator.vault.snapshot import load_snapshot, write_snapshot

__all__ = [
    "VaultClient",
    "VaultExporter",
    "ExportResult",
    "VaultImporter",
    "RestoreResult",
    "list_leaf_paths",
    "load_snapshot",
    "write_snapshot",
    "CategoryError",
    "SnapshotError",
    "VaultAuthenticationError",
    "VaultConnectionError",
    "VaultError",
    "VaultPermissionError",
    "VaultSealedError",
    "VaultSecretNotFoundError",
    "VaultValidationError",
    "AuthKind",
    "AuthMethod",
    "EngineKind",
    "Policy",
    "RestoreOptions",
    "Role",
    "Secret",
    "SecretEngine",
    "SecretMetadata",
    "SecretVersion",
    "Snapshot",
    "User",
    "VaultConnectionConfig",
    "VaultHealth",
    "coerce_int",
]
