"""Application settings loaded from a YAML config file and environment variables.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``CHAINMON_``, nested via ``__``)
2. YAML config file (``-c path`` or ``CHAINMON_CONFIG_PATH`` env var)
3. Defaults defined here

Example::

    endpoints: ["wss://rpc.polkadot.io"]
    api_subscription: finalized
    accounts:
      - address: 15oF4uVJwmo4TdGW7VfQxNLavjCXviqxT9S1MgbjMNHr6Sp5
        label: treasury
    method_subscription:
      type: only
      only:
        - {pallet: balances, method: "*"}
    reporters:
      console: {}
      matrix:
        server: https://matrix.org
        room_id: "!room:matrix.org"
        user_id: "@bot:matrix.org"
        access_token: secret
        batch: {interval: 60, leftovers: true}
"""

from __future__ import annotations

import enum
import os
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainmon.errors.chainmon_errors import ConfigError
from chainmon.matching.accounts import is_valid_address
from chainmon.matching.subscription import AllMethods, MethodSubscription

ENV_CONFIG_PATH = "CHAINMON_CONFIG_PATH"

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class ApiSubscription(enum.StrEnum):
    """Which header stream to follow."""

    HEAD = "head"
    FINALIZED = "finalized"


# ---------------------------------------------------------------------------
# Watch-list
# ---------------------------------------------------------------------------


class AccountConfig(BaseModel):
    """A watched account as written in the config file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: str
    label: str = Field(default="", validation_alias=AliasChoices("label", "nickname"))

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not is_valid_address(value):
            msg = f"not a valid SS58 address: {value!r}"
            raise ValueError(msg)
        return value


# ---------------------------------------------------------------------------
# Reporter configs
# ---------------------------------------------------------------------------


class BatchConfig(BaseModel):
    """Durable batching around a reporter."""

    interval: float = Field(gt=0, description="Flush interval in seconds")
    misc: bool = Field(default=False, description="Deliver status reports immediately")
    leftovers: bool = Field(default=False, description="Resend reports left over from a crash")


class ConsoleConfig(BaseModel):
    """Print reports to stdout."""

    batch: BatchConfig | None = None


class FsConfig(BaseModel):
    """Append reports to a file."""

    path: str
    batch: BatchConfig | None = None


class SmtpConfig(BaseModel):
    """SMTP transport settings."""

    host: str
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = False
    start_tls: bool | None = None
    timeout: float = 30.0


class EmailConfig(BaseModel):
    """Send reports by email."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(validation_alias=AliasChoices("from", "from_"))
    to: list[str] = Field(min_length=1)
    transporter: SmtpConfig
    gpgpubkey: str | None = Field(default=None, description="Path to an armored PGP public key")
    gnupghome: str | None = None
    subject: str = "notification from chainmon"
    batch: BatchConfig | None = None


class MatrixConfig(BaseModel):
    """Post reports to a Matrix room."""

    model_config = ConfigDict(populate_by_name=True)

    server: str
    room_id: str = Field(validation_alias=AliasChoices("room_id", "roomId"))
    user_id: str = Field(default="", validation_alias=AliasChoices("user_id", "userId"))
    access_token: str = Field(
        default="", validation_alias=AliasChoices("access_token", "accessToken")
    )
    batch: BatchConfig | None = None


class TelegramConfig(BaseModel):
    """Post reports through a Telegram bot."""

    model_config = ConfigDict(populate_by_name=True)

    bot_token: str = Field(validation_alias=AliasChoices("bot_token", "botToken"))
    chat_id: str = Field(validation_alias=AliasChoices("chat_id", "chatId"))
    api_url: str = "https://api.telegram.org"
    batch: BatchConfig | None = None


class ReportersConfig(BaseModel):
    """All configured reporters; a missing section means disabled."""

    console: ConsoleConfig | None = None
    fs: FsConfig | None = None
    email: EmailConfig | None = None
    matrix: MatrixConfig | None = None
    telegram: TelegramConfig | None = None


# ---------------------------------------------------------------------------
# Process settings
# ---------------------------------------------------------------------------


class HealthConfig(BaseSettings):
    """Health probe / metrics HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHAINMON_HEALTH__",
        case_sensitive=False,
    )

    enabled: bool = False
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000


class RetryConfig(BaseSettings):
    """Supervisor restart backoff."""

    model_config = SettingsConfigDict(
        env_prefix="CHAINMON_RETRY__",
        case_sensitive=False,
    )

    initial: float = Field(default=1.0, gt=0)
    maximum: float = Field(default=60.0, gt=0)


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into *base* recursively; *override* wins at the leaves."""
    merged = dict(base)
    for key, val in override.items():
        current = merged.get(key)
        if isinstance(val, dict) and isinstance(current, dict):
            merged[key] = _deep_merge(current, val)
        elif val is not None or key not in merged:
            merged[key] = val
    return merged


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``CHAINMON_`` prefix),
    an optional YAML file, and built-in defaults. ``endpoints``,
    ``accounts``, ``method_subscription``, ``api_subscription`` and
    ``reporters`` have no defaults and must be configured.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHAINMON_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    config_path: str = ""
    log_level: str = "INFO"
    storage_dir: str = ".chainmon"

    endpoints: list[str] = Field(min_length=1)
    accounts: list[AccountConfig]
    method_subscription: MethodSubscription
    api_subscription: ApiSubscription
    reporters: ReportersConfig

    health: HealthConfig = Field(default_factory=HealthConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        return _deep_merge(yaml_data, values)

    @model_validator(mode="after")
    def _matrix_env_overrides(self) -> Self:
        """``MATRIX_USERID`` / ``MATRIX_ACCESSTOKEN`` override the Matrix section."""
        matrix = self.reporters.matrix
        if matrix is not None:
            matrix.user_id = os.environ.get("MATRIX_USERID") or matrix.user_id
            matrix.access_token = os.environ.get("MATRIX_ACCESSTOKEN") or matrix.access_token
        return self

    @property
    def wildcard(self) -> bool:
        """True when no accounts are watched and everything matches."""
        return not self.accounts

    @property
    def matches_all_methods(self) -> bool:
        return isinstance(self.method_subscription, AllMethods)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading values from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the config file at *path*.

    Raises:
        ConfigError: Naming the first offending field.
    """
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"config file not found: {p}", field="config_path")
    try:
        return AppConfig.from_yaml(p)
    except yaml.YAMLError as exc:
        raise ConfigError(f"config file {p} is not valid YAML: {exc}", field="config_path") from exc
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "<root>"
        if first["type"] == "missing":
            message = f"aborting due to missing config field {field}"
        else:
            message = f"invalid config field {field}: {first['msg']}"
        raise ConfigError(message, field=field) from exc
