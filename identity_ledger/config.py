"""
IdentityLedger — Configuration System

All configuration is Pydantic-validated and loaded from:
1. default.yaml (defaults)
2. Environment variables (overrides)

Every tunable parameter of the ledger lives here.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from identity_ledger.primitives.common import MAX_NAME_LENGTH

# ─── Sub-configs ──────────────────────────────────────────────────


class LedgerConfig(BaseModel):
    # Actor that deploys the ledger; gates oracles, registry and fee.
    contract_owner: str = "ledger-owner"
    default_platform_fee: int = 100
    endorsement_reputation_threshold: int = 50
    initial_oracle_reputation: int = 100
    max_name_length: int = 50
    # Where save_snapshot() writes when the host does not pass a path
    snapshot_path: str = "data/ledger/snapshot.json"

    @model_validator(mode="after")
    def _check_bounds(self) -> LedgerConfig:
        if not self.contract_owner.strip():
            raise ValueError("contract_owner must not be empty")
        for name in (
            "default_platform_fee",
            "endorsement_reputation_threshold",
            "initial_oracle_reputation",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if not 1 <= self.max_name_length <= MAX_NAME_LENGTH:
            raise ValueError(f"max_name_length must be between 1 and {MAX_NAME_LENGTH}")
        object.__setattr__(self, "contract_owner", self.contract_owner.strip())
        return self


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


class IdentityLedgerConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_LEDGER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> IdentityLedgerConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    if owner := os.environ.get("IDENTITY_LEDGER_OWNER"):
        raw.setdefault("ledger", {})["contract_owner"] = owner
    if fee := os.environ.get("IDENTITY_LEDGER_PLATFORM_FEE"):
        raw.setdefault("ledger", {})["default_platform_fee"] = int(fee)
    if snapshot := os.environ.get("IDENTITY_LEDGER_SNAPSHOT_PATH"):
        raw.setdefault("ledger", {})["snapshot_path"] = snapshot
    if level := os.environ.get("IDENTITY_LEDGER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = level
    if fmt := os.environ.get("IDENTITY_LEDGER_LOG_FORMAT"):
        raw.setdefault("logging", {})["format"] = fmt

    if overrides:
        raw = _deep_merge(raw, overrides)

    return IdentityLedgerConfig(**raw)
