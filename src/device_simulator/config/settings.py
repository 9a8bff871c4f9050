"""Pydantic settings model for the device simulator."""

from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source that loads values from the YAML file at CONFIG_PATH."""

    def get_field_value(
        self, field: Any, field_name: str
    ) -> Tuple[Any, str, bool]:
        yaml_config = self._load_yaml_config()
        return yaml_config.get(field_name), field_name, False

    def _load_yaml_config(self) -> Dict[str, Any]:
        config_path = os.environ.get("CONFIG_PATH")
        if not config_path:
            return {}

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, yaml.YAMLError, PermissionError):
            # Reported with a friendly message by loader.py
            return {}

    def __call__(self) -> Dict[str, Any]:
        return self._load_yaml_config()


class DeviceSettings(BaseSettings):
    """Device simulator configuration settings.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Environment variables (DEVICE_ prefix)
    2. Docker secrets (_FILE pattern, applied via env)
    3. YAML configuration file (via CONFIG_PATH)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Identity
    device_id: str = Field(
        default="simulated-device-1",
        description="Device identity reported with every event",
    )
    firmware_version: str = Field(
        default="1.0.0",
        description="Firmware version the device boots with",
    )

    # Hub connection
    hub_url: Optional[str] = Field(
        default=None,
        description="Hub WebSocket URL (ws:// or wss://); required unless running offline",
    )
    hub_token: Optional[str] = Field(
        default=None,
        description="Bearer token presented to the hub",
    )
    connect_timeout: float = Field(
        default=10.0,
        description="Connection timeout in seconds",
        gt=0,
    )
    max_retries: int = Field(
        default=5,
        description="Maximum number of connect attempts",
        ge=1,
    )

    # Timing
    telemetry_interval_seconds: int = Field(
        default=5,
        description="Initial seconds between telemetry ticks",
        ge=1,
    )
    send_backoff_seconds: float = Field(
        default=5.0,
        description="Seconds to wait after a failed telemetry send",
        gt=0,
    )
    reboot_duration_seconds: float = Field(
        default=2.0,
        description="Simulated reboot duration",
        ge=0,
    )
    firmware_update_duration_seconds: float = Field(
        default=5.0,
        description="Simulated firmware update duration",
        ge=0,
    )
    maintenance_window_seconds: float = Field(
        default=10.0,
        description="How long PerformMaintenance keeps the device in Maintenance",
        ge=0,
    )

    # Cellular link
    carrier: str = Field(default="T-Mobile", description="Cellular carrier name")
    plan_limit_mb: float = Field(
        default=1024.0,
        description="Cellular data plan limit in MB",
        gt=0,
    )

    # Logging and health
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: json (production) or text (development)",
    )
    health_file: Optional[str] = Field(
        default="/tmp/device-simulator-health",
        description="Health status file for container checks (empty to disable)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Order sources: init, environment, .env, YAML."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR"
            )
        return normalized

    @field_validator("device_id", "firmware_version")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()

    @field_validator("hub_url")
    @classmethod
    def validate_hub_url(cls, v: Optional[str]) -> Optional[str]:
        """Require a WebSocket scheme when a hub URL is set."""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not v.startswith(("ws://", "wss://")):
            raise ValueError(f"Hub URL must start with ws:// or wss://, got '{v}'")
        return v

    @field_validator("health_file")
    @classmethod
    def validate_health_file(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()
