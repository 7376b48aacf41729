"""
Configuration model for Stream Terminal.
"""

import codecs
from pathlib import Path
from typing import Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .utils.exceptions import ConfigurationError
from .utils.helpers import load_config


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class TerminalConfig(BaseModel):
    """Settings shared by the terminal's text adapters and stdio endpoints."""

    encoding: str = Field("utf-8", description="Text codec for input decoding and output encoding")
    errors: str = Field("replace", description="Codec error handler (strict, replace, ignore, ...)")
    chunk_size: int = Field(65536, gt=0, description="Maximum bytes per read from file and stream endpoints")
    drain_timeout: float = Field(1.0, ge=0, description="Seconds destroy() waits for unawaited writes")
    log_level: str = Field("WARNING", description="Logging level")

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError:
            raise ValueError(f"Unknown encoding: {value}")
        return value

    @field_validator("errors")
    @classmethod
    def _known_error_handler(cls, value: str) -> str:
        try:
            codecs.lookup_error(value)
        except LookupError:
            raise ValueError(f"Unknown codec error handler: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "TerminalConfig":
        """
        Load and validate configuration from a JSON or YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If the file cannot be loaded or is invalid
        """
        data = load_config(config_path)
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid terminal configuration in {config_path}: {str(e)}")
