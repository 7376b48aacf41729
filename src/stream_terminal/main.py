"""
Main entry point for Stream Terminal.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .config import TerminalConfig
from .io_controller.terminal import connect_stdio
from .utils.exceptions import ConfigurationError, LifecycleError, StreamFault
from .utils.helpers import configure_logging


logger = logging.getLogger(__name__)

EXIT_STREAM_ERROR = 1
EXIT_CONFIG_ERROR = 2


async def copy_input(config: TerminalConfig, binary: bool = False) -> int:
    """
    Copy standard input to standard output through a terminal.

    Args:
        config: Terminal configuration
        binary: Copy raw bytes instead of decoded text

    Returns:
        Number of chunks copied
    """
    chunks = 0
    async with await connect_stdio(config) as terminal:
        while True:
            if binary:
                data = await terminal.read_input()
            else:
                data = await terminal.read_input_text()
            if data is None:
                break
            await terminal.write_output(data)
            chunks += 1

    logger.debug(f"Copied {chunks} chunks")
    return chunks


async def echo_words(config: TerminalConfig, words: Tuple[str, ...], to_stderr: bool = False) -> None:
    """Write one line of words to the output or error channel."""
    async with await connect_stdio(config) as terminal:
        if to_stderr:
            await terminal.write_error_line(*words)
        else:
            await terminal.write_output_line(*words)


def run_terminal_command(coro) -> None:
    """Run a terminal coroutine and map its errors to exit codes."""
    try:
        asyncio.run(coro)
    except (LifecycleError, StreamFault) as e:
        logger.error(f"Terminal error: {str(e)}")
        sys.exit(EXIT_STREAM_ERROR)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


# CLI Commands

@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Terminal configuration file (JSON or YAML)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
              default=None, help="Logging level")
@click.pass_context
def cli(ctx, config_path: Optional[Path], log_level: Optional[str]):
    """Stream Terminal - binary and text channels over standard streams."""
    try:
        config = TerminalConfig.from_file(config_path) if config_path else TerminalConfig()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {str(e)}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    if log_level:
        config = config.model_copy(update={"log_level": log_level})

    configure_logging(config.log_level)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.option("--binary", is_flag=True, help="Copy raw bytes instead of decoded text")
@click.pass_context
def cat(ctx, binary: bool):
    """Copy standard input to standard output."""
    run_terminal_command(copy_input(ctx.obj["config"], binary=binary))


@cli.command()
@click.argument("words", nargs=-1)
@click.option("--stderr", "to_stderr", is_flag=True, help="Write to standard error instead")
@click.pass_context
def echo(ctx, words: Tuple[str, ...], to_stderr: bool):
    """Write WORDS as one line."""
    run_terminal_command(echo_words(ctx.obj["config"], words, to_stderr=to_stderr))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
