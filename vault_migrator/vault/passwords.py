"""Bulk password reset for userpass users.

After a restore every userpass user carries the same default password. This
module sets real passwords from a ``{"username": "password"}`` JSON file,
trying each candidate userpass mount until one accepts the user.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from vault_migrator.vault.client import VaultClient
from vault_migrator.vault.exceptions import CategoryError, SnapshotError, VaultError
from vault_migrator.vault.models import AuthKind

logger = logging.getLogger(__name__)


@dataclass
class PasswordUpdateResult:
    """Outcome of a password update run."""

    updated: dict[str, str] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)


def load_passwords(file_path: Union[str, Path]) -> dict[str, str]:
    """Read a username to password mapping.

    Raises:
        SnapshotError: If the file is unreadable or not a JSON object of strings
    """
    source = Path(file_path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(str(source), f"Failed to read users file {source}: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotError(str(source), f"Invalid JSON in {source}: {e}") from e

    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise SnapshotError(
            str(source),
            f"Users file {source} must map usernames to password strings",
        )
    return data


def userpass_mounts(client: VaultClient) -> list[str]:
    """Names of every userpass auth mount on the server.

    Raises:
        CategoryError: If auth methods cannot be listed
    """
    try:
        auths = client.list_auth_methods()
    except VaultError as e:
        raise CategoryError("auth methods", f"Failed to list auth methods: {e}") from e
    return sorted(
        path.rstrip("/")
        for path, auth in auths.items()
        if AuthKind.from_type(auth.get("type", "")) == AuthKind.USERPASS
    )


def update_passwords(
    client: VaultClient,
    passwords: dict[str, str],
    auth_paths: Optional[list[str]] = None,
) -> PasswordUpdateResult:
    """Set each user's password on the first mount that accepts it.

    Args:
        client: Connected Vault client
        passwords: Username to new password
        auth_paths: Candidate userpass mounts, in order (default: all on the server)

    Returns:
        PasswordUpdateResult mapping updated users to the mount used
    """
    candidates = [p.strip().rstrip("/") for p in auth_paths or [] if p.strip()]
    if not candidates:
        candidates = userpass_mounts(client)

    result = PasswordUpdateResult()
    for username, password in passwords.items():
        for mount in candidates:
            path = f"auth/{mount}/users/{username}/password"
            try:
                client.write_path(path, {"password": password})
            except VaultError as e:
                logger.debug(f"{username} not updated in {mount}: {e}")
                continue
            logger.info(f"Updated {username} in {mount}")
            result.updated[username] = mount
            break
        else:
            logger.warning(f"Failed to update {username} (user not found in any auth method)")
            result.failed.append(username)

    return result
