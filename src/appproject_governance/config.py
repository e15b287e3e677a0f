"""Governance configuration loader with Pydantic v2 validation.

Loads a ``governance.yaml`` file into a typed :class:`GovernanceConfig`.
Every section is optional; unknown keys are allowed.

Example
-------
::

    loader = ConfigLoader()
    config = loader.load(Path("governance.yaml"))
    config.controller_namespace   # "argocd"
    config.retry.strategy().next_retry_at(last_failure, attempt=0)
"""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from appproject_governance.errors import RetryConfigError, WindowParseError
from appproject_governance.retry.backoff import Backoff, RetryStrategy, parse_retry_duration
from appproject_governance.windows.schedule import load_timezone


class AuditConfig(BaseModel):
    """Configuration for the decision audit trail."""

    model_config = {"extra": "allow"}

    enabled: bool = Field(default=False)
    log_path: Path = Field(default=Path("./governance_decisions.jsonl"))


class RetryConfig(BaseModel):
    """Default backoff applied when an application sets no retry strategy."""

    model_config = {"extra": "allow"}

    limit: int = Field(default=5)
    duration: str = Field(default="5s")
    factor: int = Field(default=2, ge=1)
    max_duration: str = Field(default="3m")

    @field_validator("duration", "max_duration")
    @classmethod
    def validate_duration(cls, value: str) -> str:
        try:
            parse_retry_duration(value)
        except RetryConfigError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("duration")
    @classmethod
    def validate_duration_positive(cls, value: str) -> str:
        if parse_retry_duration(value) <= timedelta(0):
            raise ValueError(f"backoff duration must be positive, got {value}")
        return value

    def strategy(self) -> RetryStrategy:
        """Return the configured defaults as a :class:`RetryStrategy`."""
        return RetryStrategy(
            limit=self.limit,
            backoff=Backoff(
                duration=self.duration,
                factor=self.factor,
                max_duration=self.max_duration,
            ),
        )


class WindowsConfig(BaseModel):
    """Configuration for sync window evaluation."""

    model_config = {"extra": "allow"}

    default_time_zone: str = Field(default="")

    @field_validator("default_time_zone")
    @classmethod
    def validate_time_zone(cls, value: str) -> str:
        try:
            load_timezone(value)
        except WindowParseError as exc:
            raise ValueError(str(exc)) from exc
        return value


class GovernanceConfig(BaseModel):
    """Top-level configuration schema.

    Loaded from ``governance.yaml``.  All sections are optional and fall
    back to defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    controller_namespace: str = Field(default="argocd")
    default_project: str = Field(default="default")
    audit: AuditConfig = Field(default_factory=AuditConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    windows: WindowsConfig = Field(default_factory=WindowsConfig)


class ConfigLoader:
    """Loads and validates governance YAML configuration."""

    def load(self, config_path: Path) -> GovernanceConfig:
        """Load and validate a governance YAML file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Governance config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return GovernanceConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> GovernanceConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return GovernanceConfig.model_validate(raw)

    def defaults(self) -> GovernanceConfig:
        """Return a configuration with every default applied."""
        return GovernanceConfig()
