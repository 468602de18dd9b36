"""Vault export.

This module walks a live Vault server and assembles a ``Snapshot``:

- Secret engines, with every KV secret and, for KV v2, every readable version
- ACL policies (except the built-in ``root`` and ``default``)
- Auth methods (except ``token/``), with userpass/LDAP users and AppRole roles

Failures scoped to a single item are logged and the item is left out. A
failure to list a whole category stops that category only.

Example:
    >>> from vault_migrator.vault.backup import VaultExporter
    >>> exporter = VaultExporter(vault_client)
    >>> result = exporter.export(engines=["secret"])
    >>> result.snapshot.secret_count
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from vault_migrator.vault.client import VaultClient
from vault_migrator.vault.exceptions import CategoryError, VaultError
from vault_migrator.vault.models import (
    RESERVED_MOUNT_PREFIXES,
    RESERVED_POLICY_NAMES,
    TOKEN_AUTH_PATH,
    AuthKind,
    AuthMethod,
    EngineKind,
    Policy,
    Role,
    Secret,
    SecretEngine,
    SecretMetadata,
    SecretVersion,
    Snapshot,
    User,
    engine_selected,
)
from vault_migrator.vault.paths import list_children, list_leaf_paths

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Outcome of an export run."""

    snapshot: Snapshot
    skipped: list[dict] = field(default_factory=list)
    errors: list[CategoryError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every category could be enumerated."""
        return not self.errors


class VaultExporter:
    """Builds a ``Snapshot`` from a live Vault server."""

    def __init__(self, client: VaultClient):
        """Initialize the exporter.

        Args:
            client: Connected Vault client for the source server
        """
        self.client = client
        self._skipped: list[dict] = []

    def _skip(self, kind: str, path: str, error: Exception) -> None:
        logger.warning(f"Skipping {kind} {path}: {error}")
        self._skipped.append({"kind": kind, "path": path, "error": str(error)})

    def export(self, engines: Optional[list[str]] = None) -> ExportResult:
        """Export engines, policies and auth methods.

        Args:
            engines: Engine allow-list (mount names, empty = all)

        Returns:
            ExportResult with the snapshot, skipped items and category errors
        """
        self._skipped = []
        snapshot = Snapshot(timestamp=datetime.now(timezone.utc))
        errors: list[CategoryError] = []

        try:
            snapshot.vault_version = self.client.get_health().version
        except VaultError as e:
            logger.warning(f"Could not read Vault version: {e}")

        logger.info("Backing up secret engines...")
        try:
            snapshot.secret_engines = self.export_secret_engines(engines)
        except CategoryError as e:
            logger.error(str(e))
            errors.append(e)

        logger.info("Backing up policies...")
        try:
            snapshot.policies = self.export_policies()
        except CategoryError as e:
            logger.error(str(e))
            errors.append(e)

        logger.info("Backing up auth methods...")
        try:
            snapshot.auth_methods = self.export_auth_methods()
        except CategoryError as e:
            logger.error(str(e))
            errors.append(e)

        return ExportResult(snapshot=snapshot, skipped=list(self._skipped), errors=errors)

    # ------------------------------------------------------------------
    # Secret engines
    # ------------------------------------------------------------------

    def export_secret_engines(self, engines: Optional[list[str]] = None) -> list[SecretEngine]:
        """Export every non-system mount in the allow-list.

        Raises:
            CategoryError: If the mount table cannot be listed
        """
        try:
            mounts = self.client.list_secrets_engines()
        except VaultError as e:
            raise CategoryError("secret engines", f"Failed to list secret engines: {e}") from e

        exported = []
        for path, mount in sorted(mounts.items()):
            if path.startswith(RESERVED_MOUNT_PREFIXES):
                continue
            if not engine_selected(path, engines):
                continue

            logger.info(f"  Processing engine: {path} (type: {mount.get('type')})")
            engine = SecretEngine(
                path=path,
                type=mount.get("type", ""),
                description=mount.get("description"),
                config=mount.get("config"),
                options=mount.get("options"),
            )

            if engine.kind == EngineKind.KV_V2:
                engine.secrets = self.export_kv2_secrets(path)
            elif engine.kind == EngineKind.KV_V1:
                engine.secrets = self.export_kv1_secrets(path)

            if engine.kind != EngineKind.OTHER:
                logger.info(f"    Backed up {len(engine.secrets)} secrets")
            exported.append(engine)

        return exported

    def export_kv2_secrets(self, mount_path: str) -> list[Secret]:
        """Rebuild the version history of every secret in a KV v2 mount.

        For each leaf the metadata is read once, then versions 1 through
        ``current_version`` are requested one by one. Versions that cannot be
        read are left out, so the history may have gaps.
        """
        secrets = []
        for path in list_leaf_paths(self.client.list_keys, f"{mount_path}metadata/"):
            try:
                raw_metadata = self.client.read_path(f"{mount_path}metadata/{path}")
            except VaultError as e:
                self._skip("secret", f"{mount_path}{path}", e)
                continue

            metadata = SecretMetadata.from_vault(raw_metadata)
            if metadata.current_version == 0:
                continue

            versions = []
            for number in range(1, metadata.current_version + 1):
                version = self._read_kv2_version(mount_path, path, number)
                if version is not None:
                    versions.append(version)

            if versions:
                secrets.append(Secret(path=path, versions=versions, metadata=metadata))

        return secrets

    def _read_kv2_version(self, mount_path: str, path: str, number: int) -> Optional[SecretVersion]:
        data_path = f"{mount_path}data/{path}"
        try:
            response = self.client.read_path(data_path, version=number)
        except VaultError as e:
            logger.debug(f"Skipping {data_path} version {number}: {e}")
            return None

        if response.get("data") is None:
            logger.debug(f"Skipping {data_path} version {number}: no data")
            return None

        version_metadata = response.get("metadata") or {}
        return SecretVersion(
            version=number,
            data=response["data"],
            created_time=version_metadata.get("created_time"),
            deletion_time=version_metadata.get("deletion_time"),
            destroyed=bool(version_metadata.get("destroyed", False)),
        )

    def export_kv1_secrets(self, mount_path: str) -> list[Secret]:
        """Read the current value of every secret in a KV v1 mount."""
        secrets = []
        now = datetime.now(timezone.utc)
        for path in list_leaf_paths(self.client.list_keys, mount_path):
            try:
                data = self.client.read_path(f"{mount_path}{path}")
            except VaultError as e:
                self._skip("secret", f"{mount_path}{path}", e)
                continue

            secrets.append(
                Secret(
                    path=path,
                    versions=[SecretVersion(version=1, data=data, created_time=now)],
                    metadata=SecretMetadata(current_version=1, max_versions=1),
                )
            )

        return secrets

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def export_policies(self) -> list[Policy]:
        """Export every ACL policy except the built-in ones.

        Raises:
            CategoryError: If policies cannot be listed
        """
        try:
            names = self.client.list_policies()
        except VaultError as e:
            raise CategoryError("policies", f"Failed to list policies: {e}") from e

        policies = []
        for name in names:
            if name in RESERVED_POLICY_NAMES:
                continue
            try:
                text = self.client.read_policy(name)
            except VaultError as e:
                self._skip("policy", name, e)
                continue
            policies.append(Policy(name=name, policy=text))

        logger.info(f"  Backed up {len(policies)} policies")
        return policies

    # ------------------------------------------------------------------
    # Auth methods
    # ------------------------------------------------------------------

    def export_auth_methods(self) -> list[AuthMethod]:
        """Export every auth method except token auth.

        Raises:
            CategoryError: If auth methods cannot be listed
        """
        try:
            auths = self.client.list_auth_methods()
        except VaultError as e:
            raise CategoryError("auth methods", f"Failed to list auth methods: {e}") from e

        exported = []
        for path, auth in sorted(auths.items()):
            if path == TOKEN_AUTH_PATH:
                continue

            logger.info(f"  Processing auth method: {path} (type: {auth.get('type')})")
            method = AuthMethod(
                path=path,
                type=auth.get("type", ""),
                description=auth.get("description"),
                config=auth.get("config"),
                options=auth.get("options"),
            )

            if method.kind in (AuthKind.USERPASS, AuthKind.LDAP):
                method.users = [
                    User(name=name, data=data)
                    for name, data in self._export_members(method, "users")
                ] or None
            elif method.kind == AuthKind.APPROLE:
                method.roles = [
                    Role(name=name, data=data)
                    for name, data in self._export_members(method, "role")
                ] or None

            exported.append(method)

        logger.info(f"  Backed up {len(exported)} auth methods")
        return exported

    def _export_members(self, method: AuthMethod, collection: str) -> list[tuple[str, dict]]:
        """Read every entry one level under ``auth/<mount>/<collection>``."""
        base = f"auth/{method.name}/{collection}"
        members = []
        for name in list_children(self.client.list_keys, base):
            try:
                members.append((name, self.client.read_path(f"{base}/{name}")))
            except VaultError as e:
                self._skip(collection.rstrip("s"), f"{base}/{name}", e)
        return members
