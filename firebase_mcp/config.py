"""MCP configuration loader - reads from firebase-mcp.toml with ENV overrides."""  # noqa: I001

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from pathlib import Path
import tomllib
from typing import Any, cast

_TRUTHY = ("1", "true", "yes")


@dataclass
class McpServerConfig:
    """Server transport settings."""

    name: str = "firebase-mcp"
    transport: str = "stdio"
    log_level: str = "info"

    def validate(self) -> None:
        if self.transport != "stdio":
            raise ValueError(f"Invalid transport: {self.transport}")
        if self.log_level.lower() not in ("debug", "info", "warning", "error"):
            raise ValueError(f"Invalid log_level: {self.log_level}")


@dataclass
class FirebaseConfig:
    """Project credentials and bucket override."""

    service_account_key_path: str | None = None
    project_id: str | None = None  # overrides project_id from the key file
    storage_bucket: str | None = None

    def validate(self) -> None:
        if self.service_account_key_path is not None and not self.service_account_key_path:
            raise ValueError("service_account_key_path must not be empty")


@dataclass
class EmulatorConfig:
    """Local emulator suite endpoints (host:port)."""

    enabled: bool = False
    firestore_host: str | None = None
    auth_host: str | None = None
    storage_host: str | None = None
    bucket_suffix: str = "firebasestorage.app"

    def validate(self) -> None:
        for label, host in (
            ("firestore_host", self.firestore_host),
            ("auth_host", self.auth_host),
            ("storage_host", self.storage_host),
        ):
            if host and ":" not in host:
                raise ValueError(f"{label} must be host:port, got {host!r}")
        if not self.bucket_suffix:
            raise ValueError("bucket_suffix must not be empty")

    @property
    def active(self) -> bool:
        return self.enabled or bool(self.firestore_host or self.auth_host or self.storage_host)


@dataclass
class StorageConfig:
    """Storage client policy."""

    # None = follow emulator mode; resolved once in load_config()
    strict_not_found: bool | None = None
    signed_url_ttl_seconds: int = 3600
    verify_bucket_exists: bool = False

    def validate(self) -> None:
        if self.signed_url_ttl_seconds <= 0:
            raise ValueError("signed_url_ttl_seconds must be positive")
        # V4 signed URLs are capped at 7 days
        if self.signed_url_ttl_seconds > 604800:
            raise ValueError("signed_url_ttl_seconds must not exceed 604800")


@dataclass
class McpObservabilityConfig:
    """Observability settings."""

    enabled: bool = False
    log_format: str = "json"  # "json" | "text"
    log_level: str = "info"
    include_correlation_id: bool = True

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {self.log_format}")


@dataclass
class McpConfig:
    """Root MCP configuration."""

    enabled: bool = True
    config_version: str = "v0"
    server: McpServerConfig = field(default_factory=McpServerConfig)
    firebase: FirebaseConfig = field(default_factory=FirebaseConfig)
    emulator: EmulatorConfig = field(default_factory=EmulatorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    observability: McpObservabilityConfig = field(default_factory=McpObservabilityConfig)

    def validate(self) -> None:
        self.server.validate()
        self.firebase.validate()
        self.emulator.validate()
        self.storage.validate()
        self.observability.validate()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in _TRUTHY


def _apply_env_overrides(cfg: McpConfig) -> McpConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    # Credentials / project
    if os.getenv("SERVICE_ACCOUNT_KEY_PATH"):
        cfg.firebase.service_account_key_path = os.getenv("SERVICE_ACCOUNT_KEY_PATH")
    if os.getenv("FIREBASE_PROJECT_ID"):
        cfg.firebase.project_id = os.getenv("FIREBASE_PROJECT_ID")
    if os.getenv("FIREBASE_STORAGE_BUCKET"):
        cfg.firebase.storage_bucket = os.getenv("FIREBASE_STORAGE_BUCKET")

    # Emulator suite
    if os.getenv("USE_FIREBASE_EMULATOR"):
        cfg.emulator.enabled = _env_flag("USE_FIREBASE_EMULATOR")
    if os.getenv("FIRESTORE_EMULATOR_HOST"):
        cfg.emulator.firestore_host = os.getenv("FIRESTORE_EMULATOR_HOST")
    if os.getenv("FIREBASE_AUTH_EMULATOR_HOST"):
        cfg.emulator.auth_host = os.getenv("FIREBASE_AUTH_EMULATOR_HOST")
    if os.getenv("FIREBASE_STORAGE_EMULATOR_HOST"):
        cfg.emulator.storage_host = os.getenv("FIREBASE_STORAGE_EMULATOR_HOST")

    # Storage policy
    if os.getenv("FIREBASE_MCP_STRICT_NOT_FOUND"):
        cfg.storage.strict_not_found = _env_flag("FIREBASE_MCP_STRICT_NOT_FOUND")

    # Logging
    if os.getenv("FIREBASE_MCP_LOG_LEVEL"):
        cfg.server.log_level = os.getenv("FIREBASE_MCP_LOG_LEVEL", cfg.server.log_level)
    if os.getenv("FIREBASE_MCP_OBS_ENABLED"):
        cfg.observability.enabled = _env_flag("FIREBASE_MCP_OBS_ENABLED")
    if os.getenv("FIREBASE_MCP_OBS_LOG_FORMAT"):
        cfg.observability.log_format = os.getenv(
            "FIREBASE_MCP_OBS_LOG_FORMAT", cfg.observability.log_format
        )

    return cfg


_SECTIONS = ("server", "firebase", "emulator", "storage", "observability")


def _merge_table(section: Any, table: dict[str, Any]) -> None:
    """Copy the keys of one [mcp.<section>] table onto its dataclass; unknown keys are ignored."""
    for f in fields(section):
        if f.name in table:
            setattr(section, f.name, table[f.name])


def _apply_toml(cfg: McpConfig, data: dict[str, Any]) -> McpConfig:
    mcp_data = data.get("mcp", {})

    cfg.enabled = mcp_data.get("enabled", cfg.enabled)
    cfg.config_version = mcp_data.get("config_version", cfg.config_version)

    for name in _SECTIONS:
        _merge_table(getattr(cfg, name), mcp_data.get(name, {}))
    return cfg


def load_config(config_path: str | Path | None = None) -> McpConfig:
    """
    Load MCP config from firebase-mcp.toml with ENV overrides.

    Precedence: ENV → TOML → defaults

    Args:
        config_path: Path to firebase-mcp.toml. If None, searches:
            1. FIREBASE_MCP_CONFIG env var
            2. ./firebase-mcp.toml

    Returns:
        McpConfig dataclass with merged settings. `storage.strict_not_found`
        is always a bool on return.
    """
    if config_path is None:
        if os.getenv("FIREBASE_MCP_CONFIG"):
            config_path = Path(cast(str, os.getenv("FIREBASE_MCP_CONFIG")))
        else:
            config_path = Path("firebase-mcp.toml")
    else:
        config_path = Path(config_path)

    # Start with defaults
    cfg = McpConfig()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        cfg = _apply_toml(cfg, data)

    # Apply ENV overrides (highest precedence)
    cfg = _apply_env_overrides(cfg)

    # Decided once, here; clients never look at the environment themselves
    if cfg.storage.strict_not_found is None:
        cfg.storage.strict_not_found = cfg.emulator.active

    cfg.validate()

    return cfg
