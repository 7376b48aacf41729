"""
Tests for terminal configuration loading.
"""

import json

import pytest
import yaml
from pydantic import ValidationError

from stream_terminal.config import TerminalConfig
from stream_terminal.utils.exceptions import ConfigurationError
from stream_terminal.utils.helpers import format_line, load_config


@pytest.fixture
def yaml_config(tmp_path):
    """Create a YAML configuration file."""
    path = tmp_path / "terminal.yaml"
    path.write_text(
        yaml.safe_dump({"encoding": "latin-1", "errors": "strict", "log_level": "debug"})
    )
    return path


class TestTerminalConfig:
    """Test the configuration model."""

    def test_defaults(self):
        """Test default settings."""
        config = TerminalConfig()

        assert config.encoding == "utf-8"
        assert config.errors == "replace"
        assert config.chunk_size == 65536
        assert config.log_level == "WARNING"
        assert config.drain_timeout == 1.0

    def test_from_yaml(self, yaml_config):
        """Test loading a YAML file."""
        config = TerminalConfig.from_file(yaml_config)

        assert config.encoding == "latin-1"
        assert config.errors == "strict"
        assert config.log_level == "DEBUG"

    def test_from_json(self, tmp_path):
        """Test loading a JSON file."""
        path = tmp_path / "terminal.json"
        path.write_text(json.dumps({"chunk_size": 1024}))

        config = TerminalConfig.from_file(str(path))

        assert config.chunk_size == 1024
        assert config.encoding == "utf-8"

    def test_empty_yaml(self, tmp_path):
        """Test an empty YAML file gives the defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert TerminalConfig.from_file(path) == TerminalConfig()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("encoding", "no-such-codec"),
            ("errors", "no-such-handler"),
            ("chunk_size", 0),
            ("drain_timeout", -1),
            ("log_level", "LOUD"),
        ],
    )
    def test_invalid_values(self, field, value):
        """Test invalid settings are rejected."""
        with pytest.raises(ValidationError):
            TerminalConfig(**{field: value})

    def test_invalid_file_contents(self, tmp_path):
        """Test invalid settings in a file raise ConfigurationError."""
        path = tmp_path / "terminal.yaml"
        path.write_text("encoding: no-such-codec\n")

        with pytest.raises(ConfigurationError) as exc_info:
            TerminalConfig.from_file(path)

        assert "no-such-codec" in str(exc_info.value)


class TestLoadConfig:
    """Test raw configuration loading."""

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.yaml")

    def test_unsupported_type(self, tmp_path):
        """Test unknown file types are rejected."""
        path = tmp_path / "terminal.ini"
        path.write_text("[terminal]\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "Unsupported config type" in str(exc_info.value)

    def test_explicit_type(self, tmp_path):
        """Test the file type can be given explicitly."""
        path = tmp_path / "terminal.conf"
        path.write_text("encoding: ascii\n")

        assert load_config(path, config_type="yaml") == {"encoding": "ascii"}

    def test_malformed_json(self, tmp_path):
        """Test unparsable JSON raises ConfigurationError."""
        path = tmp_path / "terminal.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        """Test a top-level list is rejected."""
        path = tmp_path / "terminal.yaml"
        path.write_text("- utf-8\n")

        with pytest.raises(ConfigurationError):
            load_config(path)


class TestFormatLine:
    """Test line formatting."""

    def test_joins_with_spaces(self):
        assert format_line("a", "b") == "a b\n"

    def test_no_parts(self):
        assert format_line() == "\n"
