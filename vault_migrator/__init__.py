"""Backup and restore HashiCorp Vault secrets, policies and auth methods."""

__version__ = "0.1.0"
