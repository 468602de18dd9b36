"""Vault import.

This module replays a ``Snapshot`` onto a target server in a fixed order:
secret engines, then policies, then auth methods.

Mounts and auth methods that already exist are left alone, so re-running a
restore never duplicates them. Secret data is always written again; on a
KV v2 engine every run adds new versions. Version numbers from the snapshot
are not replayed, the target numbers the writes itself.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from vault_migrator.vault.client import VaultClient
from vault_migrator.vault.exceptions import CategoryError, VaultError
from vault_migrator.vault.models import (
    AuthKind,
    AuthMethod,
    EngineKind,
    RestoreOptions,
    Secret,
    SecretEngine,
    SecretMetadata,
    Snapshot,
    engine_selected,
)

logger = logging.getLogger(__name__)

# Vault reports this when auto-deletion is off
_NO_AUTO_DELETE = "0s"


@dataclass
class RestoreResult:
    """Outcome of a restore run."""

    engines: int = 0
    secrets: int = 0
    policies: int = 0
    auth_methods: int = 0
    skipped: list[dict] = field(default_factory=list)
    errors: list[CategoryError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no category had to be abandoned."""
        return not self.errors


def metadata_settings(metadata: SecretMetadata) -> dict[str, Any]:
    """KV v2 metadata fields that differ from the server defaults."""
    settings: dict[str, Any] = {}
    if metadata.max_versions > 0:
        settings["max_versions"] = metadata.max_versions
    if metadata.cas_required:
        settings["cas_required"] = True
    if metadata.custom_metadata:
        settings["custom_metadata"] = metadata.custom_metadata
    if metadata.delete_version_after and metadata.delete_version_after != _NO_AUTO_DELETE:
        settings["delete_version_after"] = metadata.delete_version_after
    return settings


class VaultImporter:
    """Writes a ``Snapshot`` to a target Vault server."""

    def __init__(self, client: VaultClient):
        """Initialize the importer.

        Args:
            client: Connected Vault client for the target server
        """
        self.client = client
        self._result = RestoreResult()

    def _skip(self, kind: str, path: str, error: Exception) -> None:
        logger.warning(f"Failed to restore {kind} {path}: {error}")
        self._result.skipped.append({"kind": kind, "path": path, "error": str(error)})

    def restore(self, snapshot: Snapshot, options: Optional[RestoreOptions] = None) -> RestoreResult:
        """Restore engines, policies and auth methods.

        Args:
            snapshot: Snapshot to replay
            options: What to restore and the password for userpass users

        Returns:
            RestoreResult with counts, skipped items and category errors
        """
        options = options or RestoreOptions()
        self._result = RestoreResult()

        logger.info("Restoring secret engines...")
        try:
            self.restore_secret_engines(snapshot.secret_engines, options.engines)
        except CategoryError as e:
            logger.error(str(e))
            self._result.errors.append(e)

        if not options.skip_policies:
            logger.info("Restoring policies...")
            self.restore_policies(snapshot)

        if not options.skip_auth:
            logger.info("Restoring auth methods...")
            try:
                self.restore_auth_methods(snapshot.auth_methods, options.default_password)
            except CategoryError as e:
                logger.error(str(e))
                self._result.errors.append(e)

        return self._result

    # ------------------------------------------------------------------
    # Secret engines
    # ------------------------------------------------------------------

    def restore_secret_engines(
        self,
        engines: list[SecretEngine],
        allow_list: Optional[list[str]] = None,
    ) -> None:
        """Mount missing engines and write their secrets.

        Raises:
            CategoryError: If the target mount table cannot be listed
        """
        for engine in engines:
            if not engine_selected(engine.path, allow_list):
                continue

            logger.info(f"  Restoring engine: {engine.path} (type: {engine.type})")
            try:
                mounts = self.client.list_secrets_engines()
            except VaultError as e:
                raise CategoryError("secret engines", f"Failed to list secret engines: {e}") from e

            mounted = engine.path in mounts
            if not mounted:
                try:
                    self.client.enable_secrets_engine(
                        engine.path,
                        engine.type,
                        description=engine.description,
                        options=engine.options,
                    )
                    mounted = True
                except VaultError as e:
                    self._skip("mount", engine.path, e)

            if mounted:
                self._result.engines += 1
            if engine.kind == EngineKind.KV_V2:
                restored = self.restore_kv2_secrets(engine.path, engine.secrets)
            elif engine.kind == EngineKind.KV_V1:
                restored = self.restore_kv1_secrets(engine.path, engine.secrets)
            else:
                continue
            logger.info(f"    Restored {restored} of {len(engine.secrets)} secrets")

    def restore_kv2_secrets(self, mount_path: str, secrets: list[Secret]) -> int:
        """Write each live version in order, then the metadata settings.

        Returns:
            Number of secrets with at least one version written
        """
        restored = 0
        for secret in secrets:
            data_path = f"{mount_path}data/{secret.path}"
            written = 0
            for version in secret.versions:
                if version.destroyed:
                    continue
                try:
                    self.client.write_path(data_path, {"data": version.data})
                except VaultError as e:
                    self._skip("secret version", f"{data_path} v{version.version}", e)
                    continue
                written += 1

            settings = metadata_settings(secret.metadata)
            if settings:
                metadata_path = f"{mount_path}metadata/{secret.path}"
                try:
                    self.client.write_path(metadata_path, settings)
                except VaultError as e:
                    self._skip("metadata", metadata_path, e)

            if written:
                restored += 1
        self._result.secrets += restored
        return restored

    def restore_kv1_secrets(self, mount_path: str, secrets: list[Secret]) -> int:
        """Write the latest version of each secret; KV v1 keeps no history."""
        restored = 0
        for secret in secrets:
            latest = secret.latest_version
            if latest is None:
                continue
            secret_path = f"{mount_path}{secret.path}"
            try:
                self.client.write_path(secret_path, latest.data)
            except VaultError as e:
                self._skip("secret", secret_path, e)
                continue
            restored += 1
        self._result.secrets += restored
        return restored

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def restore_policies(self, snapshot: Snapshot) -> None:
        for policy in snapshot.policies:
            try:
                self.client.write_policy(policy.name, policy.policy)
            except VaultError as e:
                self._skip("policy", policy.name, e)
                continue
            self._result.policies += 1
        logger.info(f"  Restored {self._result.policies} policies")

    # ------------------------------------------------------------------
    # Auth methods
    # ------------------------------------------------------------------

    def restore_auth_methods(self, methods: list[AuthMethod], default_password: str) -> None:
        """Enable missing auth methods and write their roles or users.

        Raises:
            CategoryError: If the target auth table cannot be listed
        """
        handlers = {
            AuthKind.USERPASS: lambda m: self._restore_userpass_users(m, default_password),
            AuthKind.APPROLE: self._restore_approle_roles,
            AuthKind.LDAP: self._restore_ldap_users,
        }

        for method in methods:
            logger.info(f"  Restoring auth method: {method.path} (type: {method.type})")
            try:
                auths = self.client.list_auth_methods()
            except VaultError as e:
                raise CategoryError("auth methods", f"Failed to list auth methods: {e}") from e

            if method.path not in auths:
                try:
                    self.client.enable_auth_method(
                        method.path,
                        method.type,
                        description=method.description,
                        options=method.options,
                    )
                except VaultError as e:
                    self._skip("auth method", method.path, e)
                    continue

            handler = handlers.get(method.kind)
            if handler is not None:
                handler(method)
            self._result.auth_methods += 1

        logger.info(f"  Restored {self._result.auth_methods} auth methods")

    def _restore_userpass_users(self, method: AuthMethod, default_password: str) -> None:
        # Vault only returns password hashes, so every user gets the default
        for user in method.users or []:
            data = dict(user.data)
            data["password"] = default_password
            self._write_member(f"auth/{method.name}/users/{user.name}", data, "user")

    def _restore_approle_roles(self, method: AuthMethod) -> None:
        for role in method.roles or []:
            self._write_member(f"auth/{method.name}/role/{role.name}", role.data, "role")

    def _restore_ldap_users(self, method: AuthMethod) -> None:
        for user in method.users or []:
            self._write_member(f"auth/{method.name}/users/{user.name}", user.data, "user")

    def _write_member(self, path: str, data: dict[str, Any], kind: str) -> None:
        try:
            self.client.write_path(path, data)
        except VaultError as e:
            self._skip(kind, path, e)
