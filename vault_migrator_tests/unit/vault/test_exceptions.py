"""Tests for the migrator's error types."""

import pytest

from vault_migrator.vault.exceptions import (
    CategoryError,
    SnapshotError,
    VaultError,
    VaultPermissionError,
    VaultSecretNotFoundError,
)


class TestVaultError:
    """Test VaultError base class."""

    def test_details_appended(self):
        error = VaultError("Failed to write", {"path": "secret/data/a"})
        assert str(error) == "Failed to write (details: {'path': 'secret/data/a'})"

    def test_no_details(self):
        assert str(VaultError("Failed to write")) == "Failed to write"


class TestPathErrors:
    """Test errors that carry the logical path they refer to."""

    def test_not_found_names_path(self):
        error = VaultSecretNotFoundError("secret/data/app/db")
        assert str(error) == "No value stored at secret/data/app/db"
        assert error.path == "secret/data/app/db"

    def test_permission_names_operation(self):
        error = VaultPermissionError("secret/metadata/app", "list")
        assert str(error) == "Permission denied for list on path: secret/metadata/app"
        assert error.operation == "list"

    def test_snapshot_error_default(self):
        assert str(SnapshotError("backup.json")) == "Unusable snapshot file: backup.json"


class TestCategoryError:
    """Test CategoryError."""

    def test_category_kept(self):
        error = CategoryError("policies")
        assert error.category == "policies"
        assert str(error) == "Failed to list policies"

    def test_is_vault_error(self):
        with pytest.raises(VaultError):
            raise CategoryError("auth methods", "Failed to list auth methods")
