"""
YAML configuration loader and saver for neutralturf.

This module provides functions to load and save PipelineConfig
objects from/to YAML files, with relative paths resolved against the
config file location and environment variable expansion.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from neutralturf.config.schema import PipelineConfig

# Keys whose string values are filesystem paths
PATH_KEYS = {
    "cover",
    "metadata",
    "traits",
    "parameters",
    "directory",
    "seed_summary",
    "summary",
    "extended",
    "observed",
    "report",
    "checkpoint",
}


def _expand_paths(data: Dict[str, Any], base_path: Path) -> Dict[str, Any]:
    """Recursively expand relative paths in configuration data.

    Converts relative paths to absolute paths based on the config file location.
    Also expands environment variables in path strings. The top-level
    ``traits`` list holds trait names, not a path, and is left alone.

    Args:
        data: Configuration dictionary
        base_path: Directory containing the config file

    Returns:
        Configuration with expanded paths
    """

    def expand_value(key: str, value: Any) -> Any:
        if key in PATH_KEYS and isinstance(value, str):
            path = Path(os.path.expandvars(value)).expanduser()
            if not path.is_absolute():
                path = base_path / path
            return str(path)
        elif isinstance(value, dict):
            return {k: expand_value(k, v) for k, v in value.items()}
        return value

    return {k: (v if k == "traits" else expand_value(k, v)) for k, v in data.items()}


def _convert_paths_to_relative(data: Dict[str, Any], base_path: Path) -> Dict[str, Any]:
    """Convert absolute paths to relative paths for saving."""

    def relativize_value(key: str, value: Any) -> Any:
        if key in PATH_KEYS and isinstance(value, str):
            path = Path(value)
            if path.is_absolute():
                try:
                    return str(path.relative_to(base_path))
                except ValueError:
                    # Path is not relative to base_path, keep absolute
                    return value
            return value
        elif isinstance(value, dict):
            return {k: relativize_value(k, v) for k, v in value.items()}
        return value

    return {k: (v if k == "traits" else relativize_value(k, v)) for k, v in data.items()}


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load a PipelineConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Validated PipelineConfig instance

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML is malformed
        pydantic.ValidationError: If the configuration is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    return load_config_dict(data, path.parent.absolute())


def load_config_dict(data: Dict[str, Any], base_path: Path | None = None) -> PipelineConfig:
    """Create a PipelineConfig from a dictionary.

    Args:
        data: Configuration dictionary
        base_path: Base path for resolving relative paths (default: cwd)

    Returns:
        Validated PipelineConfig instance
    """
    base_path = Path.cwd() if base_path is None else base_path
    config = PipelineConfig.model_validate(_expand_paths(data, base_path))

    # Default output locations are relative to the config file too
    for name, value in config.output:
        if isinstance(value, Path) and not value.is_absolute():
            setattr(config.output, name, base_path / value)
    return config


def save_config(
    config: PipelineConfig, path: Union[str, Path], relative_paths: bool = True
) -> None:
    """Save a PipelineConfig to a YAML file.

    Args:
        config: Configuration to save
        path: Destination path for the YAML file
        relative_paths: Whether to convert paths to relative (default: True)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    if relative_paths:
        data = _convert_paths_to_relative(data, path.parent.absolute())

    with open(path, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, width=100)
