"""Connection settings for the migrator.

Flags win over environment variables. A ``.env`` file in the working
directory is loaded first so ``VAULT_ADDR`` / ``VAULT_TOKEN`` can live there.
"""

import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

from vault_migrator.vault.exceptions import VaultValidationError
from vault_migrator.vault.models import VaultConnectionConfig

VAULT_ADDR_ENV = "VAULT_ADDR"
VAULT_TOKEN_ENV = "VAULT_TOKEN"
VAULT_NAMESPACE_ENV = "VAULT_NAMESPACE"
VAULT_SKIP_VERIFY_ENV = "VAULT_SKIP_VERIFY"

DEFAULT_BACKUP_FILE = "vault-backup.json"
DEFAULT_TIMEOUT = 30

_TRUTHY = {"1", "true", "yes", "on"}


def load_environment(dotenv_path: Optional[str] = None) -> None:
    """Load a .env file without overriding variables already set."""
    load_dotenv(dotenv_path=dotenv_path or find_dotenv(usecwd=True), override=False)


def get_env_or_flag(flag: Optional[str], env_var: str) -> Optional[str]:
    if flag:
        return flag
    return os.environ.get(env_var) or None


def build_connection_config(
    address: Optional[str] = None,
    token: Optional[str] = None,
    namespace: Optional[str] = None,
    timeout: Optional[int] = None,
    no_verify: bool = False,
) -> VaultConnectionConfig:
    """Resolve connection settings from flags and environment.

    Raises:
        VaultValidationError: If address or token is missing or invalid
    """
    vault_addr = get_env_or_flag(address, VAULT_ADDR_ENV)
    vault_token = get_env_or_flag(token, VAULT_TOKEN_ENV)
    if not vault_addr or not vault_token:
        raise VaultValidationError(
            f"vault address and token are required (--address/--token or "
            f"{VAULT_ADDR_ENV}/{VAULT_TOKEN_ENV})"
        )

    skip_verify = os.environ.get(VAULT_SKIP_VERIFY_ENV, "").strip().lower() in _TRUTHY
    try:
        return VaultConnectionConfig(
            vault_addr=vault_addr,
            token=vault_token,
            namespace=get_env_or_flag(namespace, VAULT_NAMESPACE_ENV),
            timeout=timeout or DEFAULT_TIMEOUT,
            verify=not (no_verify or skip_verify),
        )
    except ValidationError as e:
        raise VaultValidationError(
            "Invalid Vault connection settings",
            details={err["loc"][0]: err["msg"] for err in e.errors() if err.get("loc")},
        ) from e
