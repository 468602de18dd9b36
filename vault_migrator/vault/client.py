"""VaultClient wrapper for HashiCorp Vault.

This module provides the client the exporter and importer talk to. It wraps
``hvac.Client`` and exposes only the calls a migration needs: mount, auth and
policy administration plus generic list, read and write on logical paths.

Every hvac or transport error is translated into the exception hierarchy in
``vault_migrator.vault.exceptions`` so callers can decide per item whether a
failure is fatal.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import hvac
import requests
from hvac.exceptions import (
    Forbidden,
    InvalidPath,
    Unauthorized,
    VaultDown,
    VaultNotInitialized,
)
from hvac.exceptions import VaultError as HvacVaultError

from vault_migrator.vault.exceptions import (
    VaultAuthenticationError,
    VaultConnectionError,
    VaultError,
    VaultPermissionError,
    VaultSealedError,
    VaultSecretNotFoundError,
)
from vault_migrator.vault.models import VaultConnectionConfig, VaultHealth

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(operation: str, path: str) -> Iterator[None]:
    """Map hvac and requests exceptions onto VaultError subclasses."""
    try:
        yield
    except InvalidPath as e:
        raise VaultSecretNotFoundError(path=path) from e
    except Forbidden as e:
        raise VaultPermissionError(path=path, operation=operation) from e
    except Unauthorized as e:
        raise VaultAuthenticationError(
            f"Token rejected for {operation} on path: {path}"
        ) from e
    except VaultNotInitialized as e:
        raise VaultSealedError("Vault is not initialized") from e
    except VaultDown as e:
        raise VaultConnectionError(f"Vault server is unavailable: {e}") from e
    except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
        raise VaultConnectionError(f"Vault server is unreachable: {e}") from e
    except HvacVaultError as e:
        raise VaultError(f"Failed to {operation} {path}: {e}") from e


def _mount_table(response: Any) -> dict[str, dict[str, Any]]:
    """Extract ``{path: mount_info}`` from a sys/mounts or sys/auth response."""
    if not isinstance(response, dict):
        return {}
    data = response.get("data")
    if not isinstance(data, dict):
        data = response
    return {
        path: info
        for path, info in data.items()
        if isinstance(info, dict) and "type" in info
    }


def _stringify_options(options: Optional[dict[str, Any]]) -> dict[str, str]:
    """Mount options are sent to Vault as strings."""
    result = {}
    for key, value in (options or {}).items():
        if isinstance(value, bool):
            result[key] = str(value).lower()
        else:
            result[key] = str(value)
    return result


class VaultClient:
    """Client for the Vault calls used by backup and restore.

    Example:
        >>> config = VaultConnectionConfig(
        ...     vault_addr="https://vault.example.com:8200",
        ...     token="hvs.example",
        ... )
        >>> with VaultClient(config) as client:
        ...     client.connect()
        ...     mounts = client.list_secrets_engines()
    """

    def __init__(
        self,
        config: VaultConnectionConfig,
        verify: Optional[bool] = None,
    ):
        """Initialize Vault client.

        Args:
            config: Connection configuration
            verify: TLS verification (overrides config if provided)
        """
        self.config = config
        self._verify = verify if verify is not None else config.verify
        self._client: Optional[hvac.Client] = None

    def _get_client(self) -> hvac.Client:
        """Get or create the underlying hvac client."""
        if self._client is None:
            if not self.config.has_credentials():
                raise VaultAuthenticationError(
                    "Token authentication requires token"
                )
            self._client = hvac.Client(
                url=self.config.vault_addr,
                token=self.config.token,
                namespace=self.config.namespace,
                verify=self._verify,
                timeout=self.config.timeout,
            )
        return self._client

    def connect(self) -> None:
        """Check that the server is reachable and the token is valid.

        Raises:
            VaultConnectionError: If Vault is unreachable
            VaultAuthenticationError: If the token is rejected
        """
        client = self._get_client()
        with _translate_errors("authenticate", "auth/token/lookup-self"):
            authenticated = client.is_authenticated()
        if not authenticated:
            raise VaultAuthenticationError(
                f"Token is not valid for {self.config.vault_addr}"
            )
        logger.info(f"Connected to Vault at {self.config.vault_addr}")

    def get_health(self) -> VaultHealth:
        """Get Vault server health status.

        Returns:
            VaultHealth status information

        Raises:
            VaultConnectionError: If Vault is unreachable
        """
        client = self._get_client()
        with _translate_errors("read", "sys/health"):
            status = client.sys.read_health_status(method="GET")
        if not isinstance(status, dict):
            try:
                status = status.json()
            except ValueError:
                status = {}
        return VaultHealth.model_validate(
            {name: status.get(name) for name in VaultHealth.model_fields if status.get(name) is not None}
        )

    def list_secrets_engines(self) -> dict[str, dict[str, Any]]:
        """List mounted secret engines keyed by mount path (with trailing slash)."""
        client = self._get_client()
        with _translate_errors("list", "sys/mounts"):
            response = client.sys.list_mounted_secrets_engines()
        return _mount_table(response)

    def enable_secrets_engine(
        self,
        path: str,
        engine_type: str,
        description: str = "",
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """Mount a secret engine at ``path``."""
        client = self._get_client()
        path = path.rstrip("/")
        with _translate_errors("mount", f"sys/mounts/{path}"):
            client.sys.enable_secrets_engine(
                backend_type=engine_type,
                path=path,
                description=description or None,
                options=_stringify_options(options) or None,
            )
        logger.debug(f"Mounted {engine_type} engine at {path}/")

    def list_auth_methods(self) -> dict[str, dict[str, Any]]:
        """List enabled auth methods keyed by mount path (with trailing slash)."""
        client = self._get_client()
        with _translate_errors("list", "sys/auth"):
            response = client.sys.list_auth_methods()
        return _mount_table(response)

    def enable_auth_method(
        self,
        path: str,
        auth_type: str,
        description: str = "",
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """Enable an auth method at ``path``."""
        client = self._get_client()
        path = path.rstrip("/")
        with _translate_errors("enable", f"sys/auth/{path}"):
            client.sys.enable_auth_method(
                method_type=auth_type,
                path=path,
                description=description or None,
                options=_stringify_options(options) or None,
            )
        logger.debug(f"Enabled {auth_type} auth at {path}/")

    def list_policies(self) -> list[str]:
        """List ACL policy names."""
        client = self._get_client()
        with _translate_errors("list", "sys/policy"):
            response = client.sys.list_policies()
        data = response.get("data", response) if isinstance(response, dict) else {}
        return list(data.get("policies") or data.get("keys") or [])

    def read_policy(self, name: str) -> str:
        """Read the raw text of an ACL policy."""
        client = self._get_client()
        with _translate_errors("read", f"sys/policy/{name}"):
            response = client.sys.read_policy(name=name)
        data = response.get("data", response) if isinstance(response, dict) else {}
        return data.get("rules") or data.get("policy") or ""

    def write_policy(self, name: str, policy: str) -> None:
        """Create or replace an ACL policy."""
        client = self._get_client()
        with _translate_errors("write", f"sys/policy/{name}"):
            client.sys.create_or_update_policy(name=name, policy=policy)

    def list_keys(self, path: str) -> list[str]:
        """List the child keys of a logical path.

        Keys ending in ``/`` are collections. A path with no children yields
        an empty list.

        Raises:
            VaultError: If the listing fails
        """
        client = self._get_client()
        with _translate_errors("list", path):
            response = client.list(path)
        if not response:
            return []
        return list((response.get("data") or {}).get("keys") or [])

    def read_path(self, path: str, version: Optional[int] = None) -> dict[str, Any]:
        """Read a logical path and return the ``data`` block of the response.

        Args:
            path: Full logical path including the mount
            version: Explicit KV v2 version to request

        Raises:
            VaultSecretNotFoundError: If nothing is stored at the path
            VaultError: If the read fails
        """
        client = self._get_client()
        with _translate_errors("read", path):
            if version is None:
                response = client.read(path)
            else:
                response = client.adapter.get(
                    f"/v1/{path}",
                    params={"version": version},
                )
        if not isinstance(response, dict) or response.get("data") is None:
            raise VaultSecretNotFoundError(path=path)
        return response["data"]

    def write_path(self, path: str, data: dict[str, Any]) -> None:
        """Write ``data`` to a logical path.

        Raises:
            VaultError: If the write fails
        """
        client = self._get_client()
        with _translate_errors("write", path):
            client.write_data(path, data=data)

    def close(self) -> None:
        """Release the underlying hvac client."""
        if self._client is not None:
            self._client.adapter.close()
            self._client = None

    def __enter__(self) -> "VaultClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
