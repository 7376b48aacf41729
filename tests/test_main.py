"""
Tests for the command line interface.
"""

import pytest
from click.testing import CliRunner

from stream_terminal.main import EXIT_CONFIG_ERROR, cli


@pytest.fixture
def runner():
    return CliRunner()


class TestCli:
    """Test the stream-terminal commands."""

    def test_echo(self, runner):
        """Test echo writes one line to standard output."""
        result = runner.invoke(cli, ["echo", "hello", "world"])

        assert result.exit_code == 0
        assert "hello world\n" in result.output

    def test_echo_to_stderr(self, runner):
        """Test echo can write to the error channel."""
        result = runner.invoke(cli, ["echo", "--stderr", "oops"])

        assert result.exit_code == 0
        assert "oops" in result.output

    def test_cat(self, runner):
        """Test cat copies decoded input to output."""
        result = runner.invoke(cli, ["cat"], input="line one\nline two\n")

        assert result.exit_code == 0
        assert "line one\nline two\n" in result.output

    def test_cat_binary(self, runner):
        """Test cat copies raw bytes."""
        result = runner.invoke(cli, ["cat", "--binary"], input="café\n")

        assert result.exit_code == 0
        assert "café\n" in result.output

    def test_cat_with_config(self, runner, tmp_path):
        """Test a configuration file is applied."""
        path = tmp_path / "terminal.yaml"
        path.write_text("chunk_size: 2\nlog_level: error\n")

        result = runner.invoke(cli, ["--config", str(path), "cat"], input="abcdef")

        assert result.exit_code == 0
        assert "abcdef" in result.output

    def test_invalid_config(self, runner, tmp_path):
        """Test an invalid configuration exits with the configuration error code."""
        path = tmp_path / "terminal.yaml"
        path.write_text("encoding: no-such-codec\n")

        result = runner.invoke(cli, ["--config", str(path), "echo", "hi"])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Configuration error" in result.output
