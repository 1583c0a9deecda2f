# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader — reads YAML from disk and produces a validated, frozen
ReleaseToolConfig.

The loading pipeline is linear:
  1. Read the file as text
  2. Parse as YAML into a plain dict
  3. Hand the dict to pydantic for schema validation
  4. Return the frozen config object

Any failure stops here with a clear error. A release run with a half-right
config would patch files the wrong way, and there is no rollback.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from bindrel.config.exceptions import ConfigLoadError, ConfigValidationError
from bindrel.config.schema import ReleaseToolConfig, default_config


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Read a YAML file and return the parsed dict.

    Raises:
        ConfigLoadError: If the file doesn't exist, isn't readable, or isn't a YAML mapping.
    """
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")

    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    try:
        parsed = yaml.safe_load(raw_text)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(parsed, dict):
        raise ConfigLoadError(
            f"Config file must contain a YAML mapping (dict), got {type(parsed).__name__}"
        )

    return parsed


def load_config(config_path: Path) -> ReleaseToolConfig:
    """
    Load, validate, and freeze a config file into a ReleaseToolConfig.

    Args:
        config_path: Path to a YAML config file.

    Returns:
        A fully validated, frozen ReleaseToolConfig instance.

    Raises:
        ConfigLoadError: File I/O or YAML parse failures.
        ConfigValidationError: Schema violations (missing fields, wrong types,
            unknown keys, rule patterns that don't compile).
    """
    raw_data = _read_yaml_file(config_path)

    try:
        config = ReleaseToolConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(
            f"Config validation failed for {config_path}:\n{err}"
        ) from err

    return config


def load_config_or_default(config_path: Optional[Path]) -> ReleaseToolConfig:
    """Load the given config file, or fall back to the built-in defaults when none is given."""
    if config_path is None:
        return default_config()
    return load_config(config_path)
