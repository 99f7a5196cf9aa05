# SPDX-License-Identifier: Apache-2.0
"""YAML configuration loader with version validation."""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import ValidationError

from ledgerpipe.errors import InvalidConfigurationError

from .streamer import CURRENT_CONFIG_VERSION, MIN_SUPPORTED_VERSION, StreamerConfig

PathLike = Union[str, Path]


class ConfigVersionError(RuntimeError):
    """Error when configuration version is incompatible."""


def load_config(path: PathLike) -> StreamerConfig:
    """Load and validate a streamer configuration file.

    ``${VAR}`` references are expanded from the environment before parsing,
    so API keys can stay out of the file.

    Raises:
        ConfigVersionError: If config version is missing or too old
        FileNotFoundError: If the YAML file doesn't exist
        InvalidConfigurationError: If the YAML is invalid or fails validation
    """
    yaml_path = Path(path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    expanded_content = os.path.expandvars(yaml_path.read_text())
    try:
        cfg_dict = yaml.safe_load(expanded_content)
    except yaml.YAMLError as e:
        raise InvalidConfigurationError(f"Invalid YAML in {path}: {e}", cause=e) from e

    if not isinstance(cfg_dict, dict):
        raise InvalidConfigurationError("YAML file must contain a mapping at the root level")

    normalized_data = _normalize_yaml_keys(cfg_dict)

    ver = str(normalized_data.get("config_version", ""))
    if not ver:
        raise ConfigVersionError(
            'config_version missing. Add `config_version: "1"` to your YAML.'
        )
    try:
        number = int(ver)
    except ValueError as e:
        raise ConfigVersionError(f"config_version must be a whole number, got {ver!r}") from e

    if number < int(MIN_SUPPORTED_VERSION):
        raise ConfigVersionError(
            f"Config version {ver} is too old. "
            f"Minimum supported is {MIN_SUPPORTED_VERSION}. "
            "Please upgrade your configuration."
        )
    if number > int(CURRENT_CONFIG_VERSION):
        warnings.warn(
            f"This binary understands config_version {CURRENT_CONFIG_VERSION}, "
            f"but file is {ver}. Attempting best-effort parse.",
            UserWarning,
            stacklevel=2,
        )
    normalized_data["config_version"] = ver

    try:
        return StreamerConfig(**normalized_data)
    except ValidationError as e:
        raise InvalidConfigurationError(_summarize(e), cause=e) from e


def _normalize_yaml_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert kebab-case keys to snake_case, including inside filter entries."""
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        normalized_key = str(key).replace("-", "_")
        if normalized_key == "filters" and isinstance(value, list):
            value = [
                {str(k).replace("-", "_"): v for k, v in item.items()}
                if isinstance(item, dict)
                else item
                for item in value
            ]
        normalized[normalized_key] = value
    return normalized


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "config"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


__all__ = ["ConfigVersionError", "load_config"]
