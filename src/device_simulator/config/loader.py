"""Configuration loading with YAML, environment override, and Docker secrets support."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError

from device_simulator.config.settings import DeviceSettings

log = structlog.get_logger()

ENV_PREFIX = "DEVICE_"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    exit_code = 1


def resolve_file_secrets() -> Dict[str, str]:
    """Resolve Docker secrets (_FILE suffix) from the environment.

    Example:
        DEVICE_HUB_TOKEN_FILE=/run/secrets/hub_token
        -> Returns {"HUB_TOKEN": "<file contents>"}
    """
    secrets: Dict[str, str] = {}
    suffix = "_FILE"

    for key, filepath in os.environ.items():
        if not (key.startswith(ENV_PREFIX) and key.endswith(suffix)):
            continue
        base_name = key[len(ENV_PREFIX) : -len(suffix)]
        # DEVICE_HEALTH_FILE is a setting, not a secret reference
        if not base_name or key[len(ENV_PREFIX) :].lower() in DeviceSettings.model_fields:
            continue
        path = Path(filepath)
        if not path.exists():
            log.warning("secret_file_not_found", env_var=key, path=filepath)
            continue
        try:
            secrets[base_name] = path.read_text().strip()
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read secret file '{filepath}' specified by {key}: permission denied"
            )
        except OSError as e:
            raise ConfigurationError(
                f"Error reading secret file '{filepath}' specified by {key}: {e}"
            )

    return secrets


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file if specified.

    Args:
        config_path: Path to YAML config file. If None, checks CONFIG_PATH env var.

    Returns:
        Dict of configuration values from YAML, or empty dict if no file.
    """
    path = config_path or os.environ.get("CONFIG_PATH")

    if not path:
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            "Ensure CONFIG_PATH points to a valid YAML file, or remove it to use environment variables only."
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")
    except PermissionError:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied")


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Format Pydantic validation errors into user-friendly messages."""
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        input_val = error.get("input")

        if "missing" in msg.lower() or "required" in msg.lower():
            hint = f"Set {ENV_PREFIX}{loc.upper()} environment variable or add '{loc}:' to config file."
            messages.append(f"Configuration error: '{loc}' is required. {hint}")
        elif input_val is not None:
            messages.append(f"Configuration error: '{loc}' {msg}, got: {input_val}")
        else:
            messages.append(f"Configuration error: '{loc}' {msg}")

    return messages


def load_config(config_path: Optional[str] = None) -> DeviceSettings:
    """Load and validate configuration.

    Precedence: environment variables, then Docker secrets, then the YAML
    file, then defaults.

    Args:
        config_path: Optional path to YAML config file (sets CONFIG_PATH env).

    Returns:
        Validated DeviceSettings instance.

    Raises:
        ConfigurationError: If the configuration file or a secret cannot be read.
        SystemExit: If validation fails (exits with code 1 after printing errors).
    """
    if config_path:
        os.environ["CONFIG_PATH"] = config_path

    # Fail early with a readable error; the settings source does the real load
    load_yaml_config()

    for key, value in resolve_file_secrets().items():
        env_key = f"{ENV_PREFIX}{key}"
        if env_key not in os.environ:
            os.environ[env_key] = value

    try:
        return DeviceSettings()
    except ValidationError as e:
        for msg in format_validation_errors(e.errors()):
            print(msg, file=sys.stderr)
        sys.exit(1)
