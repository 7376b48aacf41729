"""
Helper utilities for Stream Terminal.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Dict, Any, Union

import yaml

from .exceptions import ConfigurationError


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_config(config_path: Union[str, Path], config_type: str = "auto") -> Dict[str, Any]:
    """
    Load configuration from file.

    Args:
        config_path: Path to configuration file
        config_type: Type of config file ('json', 'yaml', 'auto')

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If configuration cannot be loaded
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if config_type == "auto":
        config_type = config_path.suffix.lower().lstrip(".")

    if config_type not in ["json", "yaml", "yml"]:
        raise ConfigurationError(f"Unsupported config type: {config_type}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_type == "json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {str(e)}")

    # An empty YAML document loads as None
    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration in {config_path} must be a mapping, got {type(data).__name__}"
        )

    return data


def format_line(*parts: str) -> str:
    """
    Join text parts with single spaces and terminate with a newline.

    Args:
        parts: Text fragments

    Returns:
        The joined line
    """
    return f"{' '.join(parts)}\n"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging to stderr.

    Standard output belongs to the terminal, so log records never go there.

    Args:
        level: Logging level name
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))
