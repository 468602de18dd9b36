"""Shared fixtures for Vault migrator tests."""

import copy
from typing import Any, Optional

import pytest

from vault_migrator.vault.exceptions import (
    VaultError,
    VaultPermissionError,
    VaultSecretNotFoundError,
)
from vault_migrator.vault.models import VaultHealth


def _children(leaves, prefix: str) -> list[str]:
    keys = set()
    for leaf in leaves:
        if not leaf.startswith(prefix):
            continue
        rest = leaf[len(prefix):]
        if not rest:
            continue
        head, sep, _ = rest.partition("/")
        keys.add(head + sep)
    return sorted(keys)


class FakeVault:
    """In-memory stand-in for VaultClient.

    Implements the same methods as VaultClient with KV v1/v2 semantics close
    enough to the real server for export and import tests. Every write is
    recorded in ``writes``; paths in ``fail_reads``, ``fail_lists`` and
    ``fail_writes`` raise VaultPermissionError.
    """

    def __init__(self, version: str = "1.15.0"):
        self.version = version
        self.mounts: dict[str, dict[str, Any]] = {
            "sys/": {"type": "system", "description": "system endpoints"},
            "identity/": {"type": "identity", "description": "identity store"},
            "cubbyhole/": {"type": "cubbyhole", "description": "per-token storage"},
        }
        self.auths: dict[str, dict[str, Any]] = {
            "token/": {"type": "token", "description": "token based credentials"},
        }
        self.policies: dict[str, str] = {"root": "", "default": 'path "auth/token/lookup-self" {}'}
        self.kv1: dict[str, dict[str, dict]] = {}
        self.kv2: dict[str, dict[str, dict]] = {}
        self.logical: dict[str, dict] = {}

        self.writes: list[tuple[str, dict]] = []
        self.mount_calls: list[str] = []
        self.auth_calls: list[str] = []
        self.policy_writes: list[str] = []
        self.calls: list[str] = []

        self.fail_reads: set = set()
        self.fail_lists: set[str] = set()
        self.fail_writes: set[str] = set()
        self.fail_mount_list = False
        self.fail_auth_list = False
        self.fail_policy_list = False
        self.fail_mount_create = False

    # -- seeding -------------------------------------------------------

    def add_mount(self, path: str, engine_type: str = "kv", options: Optional[dict] = None,
                  description: str = "") -> None:
        self.mounts[path] = {
            "type": engine_type,
            "description": description,
            "config": {"default_lease_ttl": 0},
            "options": options,
        }
        if engine_type in ("kv", "generic"):
            if options and options.get("version") == "2":
                self.kv2.setdefault(path, {})
            else:
                self.kv1.setdefault(path, {})

    def add_kv1(self, mount: str, path: str, data: dict) -> None:
        self.kv1[mount][path] = copy.deepcopy(data)

    def add_kv2(self, mount: str, path: str, versions: list[dict], **metadata) -> None:
        entry = {
            "versions": [
                {
                    "data": copy.deepcopy(v),
                    "created_time": f"2024-01-0{i + 1}T10:00:00.123456789Z",
                    "deletion_time": "",
                    "destroyed": False,
                }
                for i, v in enumerate(versions)
            ],
            "metadata": {
                "cas_required": False,
                "max_versions": 0,
                "delete_version_after": "0s",
                "custom_metadata": None,
                **metadata,
            },
        }
        self.kv2[mount][path] = entry

    def add_auth(self, path: str, auth_type: str, description: str = "") -> None:
        self.auths[path] = {"type": auth_type, "description": description, "config": {}, "options": None}

    # -- helpers -------------------------------------------------------

    def _find_mount(self, path: str) -> Optional[str]:
        matches = [m for m in self.mounts if path.startswith(m)]
        return max(matches, key=len) if matches else None

    def writes_to(self, path: str) -> list[dict]:
        return [data for p, data in self.writes if p == path]

    # -- VaultClient interface ----------------------------------------

    def connect(self) -> None:
        self.calls.append("connect")

    def close(self) -> None:
        pass

    def __enter__(self) -> "FakeVault":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def get_health(self) -> VaultHealth:
        return VaultHealth(version=self.version, initialized=True)

    def list_secrets_engines(self) -> dict[str, dict]:
        self.calls.append("list_secrets_engines")
        if self.fail_mount_list:
            raise VaultPermissionError(path="sys/mounts", operation="list")
        return copy.deepcopy(self.mounts)

    def enable_secrets_engine(self, path, engine_type, description="", options=None) -> None:
        self.calls.append("enable_secrets_engine")
        mount = path.rstrip("/") + "/"
        self.mount_calls.append(mount)
        if self.fail_mount_create:
            raise VaultPermissionError(path=f"sys/mounts/{mount}", operation="mount")
        if mount in self.mounts:
            raise VaultError(f"path is already in use at {mount}")
        self.add_mount(mount, engine_type, options=options, description=description)

    def list_auth_methods(self) -> dict[str, dict]:
        self.calls.append("list_auth_methods")
        if self.fail_auth_list:
            raise VaultPermissionError(path="sys/auth", operation="list")
        return copy.deepcopy(self.auths)

    def enable_auth_method(self, path, auth_type, description="", options=None) -> None:
        self.calls.append("enable_auth_method")
        mount = path.rstrip("/") + "/"
        self.auth_calls.append(mount)
        if mount in self.auths:
            raise VaultError(f"path is already in use at {mount}")
        self.add_auth(mount, auth_type, description=description)

    def list_policies(self) -> list[str]:
        self.calls.append("list_policies")
        if self.fail_policy_list:
            raise VaultPermissionError(path="sys/policy", operation="list")
        return sorted(self.policies)

    def read_policy(self, name: str) -> str:
        if f"sys/policy/{name}" in self.fail_reads:
            raise VaultPermissionError(path=f"sys/policy/{name}", operation="read")
        return self.policies[name]

    def write_policy(self, name: str, policy: str) -> None:
        self.calls.append("write_policy")
        self.policy_writes.append(name)
        if f"sys/policy/{name}" in self.fail_writes:
            raise VaultPermissionError(path=f"sys/policy/{name}", operation="write")
        self.policies[name] = policy

    def list_keys(self, path: str) -> list[str]:
        if path in self.fail_lists:
            raise VaultPermissionError(path=path, operation="list")
        mount = self._find_mount(path)
        if mount in self.kv2 and path.startswith(f"{mount}metadata/"):
            return _children(self.kv2[mount], path[len(f"{mount}metadata/"):])
        if mount in self.kv1:
            return _children(self.kv1[mount], path[len(mount):])
        prefix = path if path.endswith("/") else path + "/"
        return _children(self.logical, prefix)

    def read_path(self, path: str, version: Optional[int] = None) -> dict:
        if path in self.fail_reads or (path, version) in self.fail_reads:
            raise VaultPermissionError(path=path, operation="read")
        mount = self._find_mount(path)
        if mount in self.kv2:
            for section in ("metadata/", "data/"):
                if path.startswith(mount + section):
                    key = path[len(mount + section):]
                    break
            else:
                raise VaultSecretNotFoundError(path=path)
            entry = self.kv2[mount].get(key)
            if entry is None:
                raise VaultSecretNotFoundError(path=path)
            if section == "metadata/":
                return {
                    **copy.deepcopy(entry["metadata"]),
                    "current_version": len(entry["versions"]),
                    "oldest_version": 0,
                    "created_time": entry["versions"][0]["created_time"],
                    "updated_time": entry["versions"][-1]["created_time"],
                }
            number = version or len(entry["versions"])
            stored = entry["versions"][number - 1]
            if stored["destroyed"] or stored["deletion_time"]:
                raise VaultSecretNotFoundError(path=path)
            return {
                "data": copy.deepcopy(stored["data"]),
                "metadata": {
                    "created_time": stored["created_time"],
                    "deletion_time": "",
                    "destroyed": False,
                    "version": number,
                },
            }
        if mount in self.kv1:
            data = self.kv1[mount].get(path[len(mount):])
            if data is None:
                raise VaultSecretNotFoundError(path=path)
            return copy.deepcopy(data)
        if path in self.logical:
            return copy.deepcopy(self.logical[path])
        raise VaultSecretNotFoundError(path=path)

    def write_path(self, path: str, data: dict) -> None:
        self.writes.append((path, copy.deepcopy(data)))
        if path in self.fail_writes:
            raise VaultPermissionError(path=path, operation="write")
        mount = self._find_mount(path)
        if mount in self.kv2:
            if path.startswith(f"{mount}data/"):
                key = path[len(f"{mount}data/"):]
                entry = self.kv2[mount].setdefault(
                    key, {"versions": [], "metadata": {"cas_required": False, "max_versions": 0}}
                )
                entry["versions"].append({
                    "data": copy.deepcopy(data["data"]),
                    "created_time": "2025-06-01T00:00:00Z",
                    "deletion_time": "",
                    "destroyed": False,
                })
                return
            if path.startswith(f"{mount}metadata/"):
                key = path[len(f"{mount}metadata/"):]
                entry = self.kv2[mount].setdefault(key, {"versions": [], "metadata": {}})
                entry["metadata"].update(copy.deepcopy(data))
                return
        if mount in self.kv1:
            self.kv1[mount][path[len(mount):]] = copy.deepcopy(data)
            return
        self.logical[path] = copy.deepcopy(data)


@pytest.fixture
def fake_vault() -> FakeVault:
    """Empty fake Vault with only the built-in mounts."""
    return FakeVault()


@pytest.fixture
def source_vault() -> FakeVault:
    """Fake Vault populated with engines, policies and auth methods."""
    vault = FakeVault()

    vault.add_mount("secret/", "kv", options={"version": "2"}, description="kv v2 store")
    vault.add_kv2("secret/", "app/database", [
        {"username": "db", "password": "one"},
        {"username": "db", "password": "two"},
        {"username": "db", "password": "three"},
    ], max_versions=5, custom_metadata={"owner": "platform"})
    vault.add_kv2("secret/", "app/api/key", [{"key": "abc"}])
    vault.add_kv2("secret/", "top", [{"value": "1"}])

    vault.add_mount("legacy/", "kv", options={"version": "1"})
    vault.add_kv1("legacy/", "service/token", {"token": "t0k3n"})

    vault.add_mount("pki/", "pki", description="certificates")

    vault.policies["app-readonly"] = 'path "secret/data/app/*" { capabilities = ["read"] }'
    vault.policies["ops"] = 'path "*" { capabilities = ["list"] }'

    vault.add_auth("userpass/", "userpass")
    vault.logical["auth/userpass/users/alice"] = {"policies": ["ops"], "password_hash": "x"}
    vault.logical["auth/userpass/users/bob"] = {"policies": ["app-readonly"]}

    vault.add_auth("approle/", "approle")
    vault.logical["auth/approle/role/ci"] = {"token_policies": ["ops"], "token_ttl": 3600}

    vault.add_auth("github/", "github")
    return vault
