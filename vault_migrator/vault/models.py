"""Pydantic models for the Vault migrator.

This module defines the snapshot document written by ``backup`` and read by
``restore`` (secret engines, secrets and their versions, policies, auth
methods), plus connection configuration and restore options.

Field names follow the on-disk JSON format, so snapshot files produced by
earlier versions of the tool load unchanged.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

# Mounts that belong to Vault itself and are never exported
RESERVED_MOUNT_PREFIXES = ("sys/", "identity/", "cubbyhole/")

# Built-in policies present on every server
RESERVED_POLICY_NAMES = frozenset({"root", "default"})

# Token auth is always mounted and cannot be re-enabled
TOKEN_AUTH_PATH = "token/"

DEFAULT_RESTORE_PASSWORD = "ChangeMe123!"

_DATETIME_ADAPTER = TypeAdapter(datetime)


def coerce_int(value: Any) -> int:
    """Convert a JSON-decoded counter to ``int``.

    Vault and older snapshot files deliver counters as native ints, as
    floats or as numeric strings. Anything that is not one of those decodes
    to ``0``.

    Args:
        value: Raw decoded value

    Returns:
        Integer value, or 0 when the value cannot be converted
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return 0
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return 0
    return 0


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Vault RFC 3339 timestamp.

    Parsing is left to pydantic, which accepts Vault's nanosecond
    fractions as well as the shorter fractions Go writes when trailing
    zeros are trimmed. Empty strings, non-strings and unparseable values
    become ``None``.
    """
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return _DATETIME_ADAPTER.validate_python(value.strip())
    except ValidationError:
        return None


def engine_selected(path: str, allow_list: Optional[list[str]]) -> bool:
    """Check a mount path against an engine allow-list.

    An empty allow-list selects everything. Names are compared without the
    trailing slash Vault puts on mount paths.
    """
    if not allow_list:
        return True
    wanted = {name.strip().rstrip("/") for name in allow_list if name.strip()}
    return not wanted or path.rstrip("/") in wanted


class EngineKind(str, Enum):
    """Secret engine variants the migrator knows how to copy."""

    KV_V1 = "kv-v1"
    KV_V2 = "kv-v2"
    OTHER = "other"

    @classmethod
    def from_mount(cls, engine_type: str, options: Optional[dict[str, Any]]) -> "EngineKind":
        """Classify a mount by its type and options."""
        if engine_type not in ("kv", "generic"):
            return cls.OTHER
        if options and str(options.get("version", "")) == "2":
            return cls.KV_V2
        return cls.KV_V1


class AuthKind(str, Enum):
    """Auth method variants whose roles or users are copied."""

    USERPASS = "userpass"
    APPROLE = "approle"
    LDAP = "ldap"
    OTHER = "other"

    @classmethod
    def from_type(cls, auth_type: str) -> "AuthKind":
        try:
            return cls(auth_type)
        except ValueError:
            return cls.OTHER


class SecretVersion(BaseModel):
    """One version of a secret."""

    version: int = Field(..., description="Version number", ge=1)
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Secret data key-value pairs",
        examples=[{"username": "db_user", "password": "secret123"}],
    )
    created_time: Optional[datetime] = Field(default=None, description="Creation time")
    deletion_time: Optional[datetime] = Field(
        default=None,
        description="Soft-deletion time if the version was deleted",
    )
    destroyed: bool = Field(default=False, description="Whether the version is destroyed")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> int:
        return coerce_int(v)

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("created_time", "deletion_time", mode="before")
    @classmethod
    def validate_times(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)


class SecretMetadata(BaseModel):
    """KV v2 metadata record of a secret."""

    cas_required: bool = Field(default=False, description="Whether writes require check-and-set")
    created_time: Optional[datetime] = Field(default=None, description="Creation time")
    current_version: int = Field(default=0, description="Latest version number")
    max_versions: int = Field(default=0, description="Versions kept before pruning (0 = server default)")
    oldest_version: int = Field(default=0, description="Oldest retained version number")
    updated_time: Optional[datetime] = Field(default=None, description="Last update time")
    custom_metadata: Optional[dict[str, str]] = Field(
        default=None,
        description="User supplied metadata",
        examples=[{"owner": "platform-team"}],
    )
    delete_version_after: Optional[str] = Field(
        default=None,
        description="Auto-delete duration for new versions",
        examples=["720h"],
    )

    @field_validator("current_version", "max_versions", "oldest_version", mode="before")
    @classmethod
    def validate_counters(cls, v: Any) -> int:
        return coerce_int(v)

    @field_validator("cas_required", mode="before")
    @classmethod
    def validate_cas_required(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("created_time", "updated_time", mode="before")
    @classmethod
    def validate_times(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("custom_metadata", mode="before")
    @classmethod
    def validate_custom_metadata(cls, v: Any) -> Optional[dict[str, str]]:
        if not v or not isinstance(v, dict):
            return None
        return {str(key): str(value) for key, value in v.items()}

    @field_validator("delete_version_after", mode="before")
    @classmethod
    def validate_delete_version_after(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @classmethod
    def from_vault(cls, data: dict[str, Any]) -> "SecretMetadata":
        """Build metadata from a ``<mount>/metadata/<path>`` response body."""
        return cls.model_validate(
            {name: data.get(name) for name in cls.model_fields if name in data}
        )


class Secret(BaseModel):
    """A secret and its version history within one engine."""

    path: str = Field(
        ...,
        description="Path relative to the engine mount",
        examples=["app/database"],
    )
    versions: list[SecretVersion] = Field(
        default_factory=list,
        description="Versions in ascending order",
    )
    metadata: SecretMetadata = Field(default_factory=SecretMetadata)

    @field_validator("versions", mode="before")
    @classmethod
    def validate_versions(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def validate_metadata(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def latest_version(self) -> Optional[SecretVersion]:
        return self.versions[-1] if self.versions else None

    class Config:
        json_schema_extra = {
            "example": {
                "path": "app/database",
                "versions": [
                    {
                        "version": 1,
                        "data": {"username": "db_user", "password": "secret123"},
                        "created_time": "2026-01-10T10:00:00Z",
                        "destroyed": False,
                    }
                ],
                "metadata": {"current_version": 1, "max_versions": 0},
            }
        }


class SecretEngine(BaseModel):
    """A mounted secret engine and, for KV engines, its secrets."""

    path: str = Field(..., description="Mount path", examples=["secret/"])
    type: str = Field(..., description="Engine type", examples=["kv"])
    description: str = Field(default="", description="Mount description")
    config: dict[str, Any] = Field(default_factory=dict, description="Mount tuning config")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Mount options",
        examples=[{"version": "2"}],
    )
    secrets: list[Secret] = Field(default_factory=list, description="Secrets under the mount")

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v: Any) -> str:
        return v or ""

    @field_validator("config", "options", mode="before")
    @classmethod
    def validate_mappings(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("secrets", mode="before")
    @classmethod
    def validate_secrets(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def kind(self) -> EngineKind:
        return EngineKind.from_mount(self.type, self.options)

    @property
    def name(self) -> str:
        return self.path.rstrip("/")


class Policy(BaseModel):
    """An ACL policy, kept as raw HCL text."""

    name: str = Field(..., description="Policy name", examples=["app-readonly"])
    policy: str = Field(default="", description="Policy text")


class Role(BaseModel):
    """A role under a role-based auth method."""

    name: str
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        return {} if v is None else v


class User(BaseModel):
    """A user under a credential or directory backed auth method."""

    name: str
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Any) -> Any:
        return {} if v is None else v


class AuthMethod(BaseModel):
    """An enabled auth method with its roles or users."""

    path: str = Field(..., description="Mount path", examples=["userpass/"])
    type: str = Field(..., description="Auth method type", examples=["userpass"])
    description: str = Field(default="")
    config: dict[str, Any] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    roles: Optional[list[Role]] = Field(default=None, description="AppRole roles")
    users: Optional[list[User]] = Field(default=None, description="Userpass or LDAP users")

    @field_validator("description", mode="before")
    @classmethod
    def validate_description(cls, v: Any) -> str:
        return v or ""

    @field_validator("config", "options", mode="before")
    @classmethod
    def validate_mappings(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("roles", "users", mode="before")
    @classmethod
    def validate_members(cls, v: Any) -> Any:
        return v or None

    @property
    def kind(self) -> AuthKind:
        return AuthKind.from_type(self.type)

    @property
    def name(self) -> str:
        return self.path.rstrip("/")


class Snapshot(BaseModel):
    """Complete export of a Vault server."""

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the export was taken",
    )
    vault_version: str = Field(default="", description="Source server version", examples=["1.15.0"])
    secret_engines: list[SecretEngine] = Field(default_factory=list)
    policies: list[Policy] = Field(default_factory=list)
    auth_methods: list[AuthMethod] = Field(default_factory=list)

    @field_validator("timestamp", mode="before")
    @classmethod
    def validate_timestamp(cls, v: Any) -> Any:
        return parse_timestamp(v) if isinstance(v, str) else v

    @field_validator("vault_version", mode="before")
    @classmethod
    def validate_vault_version(cls, v: Any) -> str:
        return v or ""

    @field_validator("secret_engines", "policies", "auth_methods", mode="before")
    @classmethod
    def validate_lists(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def secret_count(self) -> int:
        return sum(len(engine.secrets) for engine in self.secret_engines)

    def to_json(self) -> str:
        """Serialize to the snapshot file format, omitting empty optional fields."""
        return self.model_dump_json(indent=2, exclude_none=True)

    @classmethod
    def from_json(cls, text: str) -> "Snapshot":
        return cls.model_validate_json(text)


class RestoreOptions(BaseModel):
    """Options controlling what ``restore`` replays."""

    engines: list[str] = Field(
        default_factory=list,
        description="Engine allow-list (empty = all)",
    )
    skip_policies: bool = Field(default=False, description="Do not restore policies")
    skip_auth: bool = Field(default=False, description="Do not restore auth methods")
    default_password: str = Field(
        default=DEFAULT_RESTORE_PASSWORD,
        description="Password given to every restored userpass user",
    )


class VaultConnectionConfig(BaseModel):
    """Configuration for Vault client connections."""

    vault_addr: str = Field(
        ...,
        description="Vault server address (https://...)",
        examples=["https://vault.example.com:8200"],
    )
    token: Optional[str] = Field(
        default=None,
        description="Vault token",
    )
    namespace: Optional[str] = Field(
        default=None,
        description="Enterprise namespace",
    )
    timeout: int = Field(
        default=30,
        description="Request timeout in seconds",
        ge=1,
        le=300,
    )
    verify: bool = Field(
        default=True,
        description="Verify TLS certificates",
    )

    @field_validator("vault_addr")
    @classmethod
    def validate_vault_addr(cls, v: str) -> str:
        """Validate Vault address format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("vault_addr must start with http:// or https://")
        return v.rstrip("/")

    def has_credentials(self) -> bool:
        """Check that a token is configured."""
        return bool(self.token)

    class Config:
        json_schema_extra = {
            "example": {
                "vault_addr": "https://vault.example.com:8200",
                "token": "hvs.example",
                "timeout": 30,
            }
        }


class VaultHealth(BaseModel):
    """Vault server health status."""

    version: str = Field(default="", description="Vault version", examples=["1.15.0"])
    initialized: bool = Field(default=False)
    sealed: bool = Field(default=False)
    standby: bool = Field(default=False)
    cluster_name: Optional[str] = Field(
        default=None,
        description="Cluster name",
    )
    server_time_utc: Optional[datetime] = Field(default=None, description="Server time")

    @field_validator("server_time_utc", mode="before")
    @classmethod
    def validate_server_time(cls, v: Any) -> Optional[datetime]:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return datetime.fromtimestamp(v, tz=timezone.utc)
        return parse_timestamp(v)
