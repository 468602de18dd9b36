"""Tests for connection settings resolution."""

import os
from unittest.mock import patch

import pytest

from vault_migrator.config import (
    DEFAULT_TIMEOUT,
    build_connection_config,
    get_env_or_flag,
    load_environment,
)
from vault_migrator.vault.exceptions import VaultValidationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start without VAULT_* variables and undo anything a .env file loads."""
    with patch.dict(os.environ):
        for name in ("VAULT_ADDR", "VAULT_TOKEN", "VAULT_NAMESPACE", "VAULT_SKIP_VERIFY"):
            monkeypatch.delenv(name, raising=False)
        yield


class TestGetEnvOrFlag:
    """Test get_env_or_flag function."""

    def test_flag_wins(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "https://env:8200")
        assert get_env_or_flag("https://flag:8200", "VAULT_ADDR") == "https://flag:8200"

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "https://env:8200")
        assert get_env_or_flag(None, "VAULT_ADDR") == "https://env:8200"

    def test_empty_environment_is_none(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "")
        assert get_env_or_flag(None, "VAULT_ADDR") is None


class TestBuildConnectionConfig:
    """Test build_connection_config function."""

    def test_from_environment(self, monkeypatch):
        """Test address, token and namespace are read from VAULT_* variables."""
        monkeypatch.setenv("VAULT_ADDR", "https://vault:8200/")
        monkeypatch.setenv("VAULT_TOKEN", "hvs.env")
        monkeypatch.setenv("VAULT_NAMESPACE", "team-a")

        config = build_connection_config()

        assert config.vault_addr == "https://vault:8200"
        assert config.token == "hvs.env"
        assert config.namespace == "team-a"
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.verify is True

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("VAULT_TOKEN", "hvs.env")

        config = build_connection_config(address="http://127.0.0.1:8200", token="hvs.flag", timeout=5)

        assert config.token == "hvs.flag"
        assert config.timeout == 5

    def test_missing_token(self):
        with pytest.raises(VaultValidationError, match="address and token are required"):
            build_connection_config(address="https://vault:8200")

    def test_invalid_address(self):
        """Test a bad address becomes a validation error naming the field."""
        with pytest.raises(VaultValidationError) as exc_info:
            build_connection_config(address="vault:8200", token="t")

        assert "vault_addr" in exc_info.value.details

    @pytest.mark.parametrize("value,verify", [("1", False), ("true", False), ("0", True), ("", True)])
    def test_skip_verify_environment(self, monkeypatch, value, verify):
        monkeypatch.setenv("VAULT_SKIP_VERIFY", value)

        config = build_connection_config(address="https://vault:8200", token="t")

        assert config.verify is verify

    def test_no_verify_flag(self):
        config = build_connection_config(address="https://vault:8200", token="t", no_verify=True)
        assert config.verify is False


class TestLoadEnvironment:
    """Test load_environment function."""

    def test_dotenv_does_not_override(self, tmp_path, monkeypatch):
        """Test .env values fill gaps but never replace set variables."""
        env_file = tmp_path / ".env"
        env_file.write_text("VAULT_ADDR=https://dotenv:8200\nVAULT_TOKEN=hvs.dotenv\n")
        monkeypatch.setenv("VAULT_TOKEN", "hvs.shell")

        load_environment(str(env_file))

        config = build_connection_config()
        assert config.vault_addr == "https://dotenv:8200"
        assert config.token == "hvs.shell"
