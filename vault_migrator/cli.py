"""Command line entry point for the Vault migrator.

Usage:
    vault-migrator backup  --address URL --token TOKEN --file vault-backup.json
    vault-migrator restore --address URL --token TOKEN --file vault-backup.json
    vault-migrator update-passwords --address URL --token TOKEN --users users.json

Example:
    # Back up two engines only
    vault-migrator backup -a https://old-vault:8200 -e secret -e apps

    # Restore everything except auth methods
    VAULT_ADDR=https://new-vault:8200 VAULT_TOKEN=hvs.xxx \\
        vault-migrator restore -f vault-backup.json --skip-auth
"""

import argparse
import logging
import sys
from typing import Optional

from vault_migrator.config import (
    DEFAULT_BACKUP_FILE,
    build_connection_config,
    load_environment,
)
from vault_migrator.vault.backup import VaultExporter
from vault_migrator.vault.client import VaultClient
from vault_migrator.vault.exceptions import (
    CategoryError,
    SnapshotError,
    VaultAuthenticationError,
    VaultConnectionError,
    VaultValidationError,
)
from vault_migrator.vault.models import DEFAULT_RESTORE_PASSWORD, RestoreOptions
from vault_migrator.vault.passwords import load_passwords, update_passwords
from vault_migrator.vault.restore import VaultImporter
from vault_migrator.vault.snapshot import load_snapshot, write_snapshot

logger = logging.getLogger(__name__)


def _split_list(values: Optional[list[str]]) -> list[str]:
    """Flatten repeated and comma separated flag values."""
    items = []
    for value in values or []:
        items.extend(part.strip() for part in value.split(",") if part.strip())
    return items


def _connect(args: argparse.Namespace) -> VaultClient:
    config = build_connection_config(
        address=args.address,
        token=args.token,
        namespace=args.namespace,
        timeout=args.timeout,
        no_verify=args.no_verify,
    )
    print(f"Connecting to Vault at {config.vault_addr}...")
    client = VaultClient(config)
    client.connect()
    return client


def run_backup(args: argparse.Namespace) -> int:
    engines = _split_list(args.engines)

    with _connect(args) as client:
        print("Starting backup process...")
        result = VaultExporter(client).export(engines=engines)

    if not result.ok:
        for error in result.errors:
            print(f"Error: {error}")
        print("Backup aborted, no file written")
        return 1

    write_snapshot(result.snapshot, args.file)

    snapshot = result.snapshot
    print("\nBackup completed successfully!")
    print(f"  File: {args.file}")
    print(f"  Secret Engines: {len(snapshot.secret_engines)}")
    print(f"  Total Secrets: {snapshot.secret_count}")
    print(f"  Policies: {len(snapshot.policies)}")
    print(f"  Auth Methods: {len(snapshot.auth_methods)}")
    if result.skipped:
        print(f"  Skipped items: {len(result.skipped)} (see warnings above)")
    return 0


def run_restore(args: argparse.Namespace) -> int:
    snapshot = load_snapshot(args.file)
    options = RestoreOptions(
        engines=_split_list(args.engines),
        skip_policies=args.skip_policies,
        skip_auth=args.skip_auth,
        default_password=args.default_password,
    )

    with _connect(args) as client:
        print("Starting restore process...")
        result = VaultImporter(client).restore(snapshot, options)

    if not result.ok:
        for error in result.errors:
            print(f"Error: {error}")
        print("Restore incomplete")
        return 1

    print("\nRestore completed successfully!")
    print(f"  Secret Engines: {result.engines}")
    print(f"  Total Secrets: {result.secrets}")
    if not options.skip_policies:
        print(f"  Policies: {result.policies}")
    if not options.skip_auth:
        print(f"  Auth Methods: {result.auth_methods}")
    if result.skipped:
        print(f"  Skipped items: {len(result.skipped)} (see warnings above)")
    return 0


def run_update_passwords(args: argparse.Namespace) -> int:
    passwords = load_passwords(args.users)

    with _connect(args) as client:
        print(f"Updating passwords for {len(passwords)} users...\n")
        result = update_passwords(client, passwords, _split_list(args.auth_path))

    print(f"\nSuccessfully updated: {len(result.updated)} users")
    if result.failed:
        print(f"Failed to update: {len(result.failed)} users")
        for username in result.failed:
            print(f"  {username}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    connection = argparse.ArgumentParser(add_help=False)
    connection.add_argument(
        "-a", "--address",
        default=None,
        help="Vault server address (or set VAULT_ADDR)",
    )
    connection.add_argument(
        "-t", "--token",
        default=None,
        help="Vault token (or set VAULT_TOKEN)",
    )
    connection.add_argument(
        "--namespace",
        default=None,
        help="Enterprise namespace (or set VAULT_NAMESPACE)",
    )
    connection.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Request timeout in seconds (default: 30)",
    )
    connection.add_argument(
        "--no-verify",
        action="store_true",
        help="Disable TLS certificate verification",
    )
    connection.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="vault-migrator",
        description="Migrate secrets, policies, and auth methods between Vault servers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    backup = subparsers.add_parser(
        "backup",
        parents=[connection],
        help="Backup Vault data to a file",
        description=(
            "Backup all secrets (with versions), policies, auth methods, and "
            "configurations from a Vault server to a JSON file."
        ),
    )
    backup.add_argument(
        "-f", "--file",
        default=DEFAULT_BACKUP_FILE,
        help=f"Output backup file (default: {DEFAULT_BACKUP_FILE})",
    )
    backup.add_argument(
        "-e", "--engines",
        action="append",
        default=[],
        help="Secret engine to backup, repeatable or comma separated (default: all)",
    )
    backup.set_defaults(handler=run_backup)

    restore = subparsers.add_parser(
        "restore",
        parents=[connection],
        help="Restore Vault data from a backup file",
        description=(
            "Restore all secrets (with versions), policies, auth methods, and "
            "configurations from a backup file to a Vault server."
        ),
    )
    restore.add_argument(
        "-f", "--file",
        default=DEFAULT_BACKUP_FILE,
        help=f"Input backup file (default: {DEFAULT_BACKUP_FILE})",
    )
    restore.add_argument(
        "-e", "--engines",
        action="append",
        default=[],
        help="Secret engine to restore, repeatable or comma separated (default: all)",
    )
    restore.add_argument(
        "--skip-policies",
        action="store_true",
        help="Skip restoring policies",
    )
    restore.add_argument(
        "--skip-auth",
        action="store_true",
        help="Skip restoring auth methods",
    )
    restore.add_argument(
        "-p", "--default-password",
        default=DEFAULT_RESTORE_PASSWORD,
        help="Default password for restored userpass users",
    )
    restore.set_defaults(handler=run_restore)

    passwords = subparsers.add_parser(
        "update-passwords",
        parents=[connection],
        help="Set userpass passwords from a JSON file",
        description=(
            "Set passwords for userpass users from a JSON file mapping "
            "usernames to passwords."
        ),
    )
    passwords.add_argument(
        "-u", "--users",
        required=True,
        help="JSON file mapping username to password",
    )
    passwords.add_argument(
        "--auth-path",
        action="append",
        default=[],
        help="Userpass mount to try, repeatable (default: every userpass mount)",
    )
    passwords.set_defaults(handler=run_update_passwords)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the Vault migrator."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    load_environment()

    try:
        return args.handler(args)
    except VaultValidationError as e:
        print(f"Error: {e}")
        return 1
    except VaultConnectionError as e:
        print(f"Connection error: {e}")
        return 1
    except VaultAuthenticationError as e:
        print(f"Authentication error: {e}")
        return 1
    except SnapshotError as e:
        print(f"Error: {e}")
        return 1
    except CategoryError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}")
        logger.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
