"""
Stream terminal binding input, output and error channels.
"""

import asyncio
import functools
import logging
import sys
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from ..config import TerminalConfig
from ..utils.exceptions import (
    AcquisitionError,
    LifecycleError,
    NotInitializedError,
    StreamFault,
)
from ..utils.helpers import format_line
from .codec import TextDecoderAdapter, TextEncoderAdapter, TextReader, TextWriter
from .endpoints import (
    ByteSink,
    ByteSource,
    BytesLike,
    FileSink,
    FileSource,
    SinkWriter,
    SourceReader,
)
from .pipe import CancellationContext, Pipe


logger = logging.getLogger(__name__)

WriteData = Union[str, BytesLike, None]


class Channel(str, Enum):
    """Terminal communication channel."""

    INPUT = "input"
    OUTPUT = "output"
    ERROR = "error"


class TerminalState(str, Enum):
    """Terminal lifecycle state."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    DESTROYED = "destroyed"


class StreamTerminal:
    """
    Binds an input source and output/error sinks into binary and text channels.

    While initialized the terminal holds the exclusive reader on the input
    and the exclusive writers on output and error. ``destroy()`` gives them
    back without closing the endpoints, which stay usable by their owner.
    """

    def __init__(self, config: Optional[TerminalConfig] = None) -> None:
        self._config = config or TerminalConfig()
        self._state = TerminalState.UNINITIALIZED
        self._signal = CancellationContext()

        self._input_reader: Optional[SourceReader] = None
        self._output_writer: Optional[SinkWriter] = None
        self._error_writer: Optional[SinkWriter] = None

        self._input_decoder: Optional[TextDecoderAdapter] = None
        self._output_encoder: Optional[TextEncoderAdapter] = None
        self._error_encoder: Optional[TextEncoderAdapter] = None

        self._input_text_reader: Optional[TextReader] = None
        self._output_text_writer: Optional[TextWriter] = None
        self._error_text_writer: Optional[TextWriter] = None

        self._pipes: List[Pipe] = []
        self._pending_writes: Set[asyncio.Task] = set()
        # Last reserved write per channel; each write starts after it resolves
        self._write_turns: Dict[Channel, asyncio.Future] = {}

    @property
    def state(self) -> TerminalState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_initialized(self) -> bool:
        """Whether the terminal is initialized."""
        return self._state is TerminalState.INITIALIZED

    async def initialize(
        self,
        input_stream: ByteSource,
        output_stream: ByteSink,
        error_stream: ByteSink,
    ) -> None:
        """
        Take the stream handles and link the text adapters.

        Args:
            input_stream: Source for the input channel
            output_stream: Sink for the output channel
            error_stream: Sink for the error channel

        Raises:
            AcquisitionError: If any handle cannot be acquired
            LifecycleError: If the terminal has already been destroyed
        """
        if self._state is TerminalState.INITIALIZED:
            logger.warning("Terminal already initialized")
            return

        if self._state is TerminalState.DESTROYED:
            raise LifecycleError(
                "Terminal instance has been destroyed", {"operation": "initialize"}
            )

        encoding = self._config.encoding
        errors = self._config.errors
        acquired: List[Any] = []

        try:
            input_reader = input_stream.get_reader()
            acquired.append(input_reader)
            output_writer = output_stream.get_writer()
            acquired.append(output_writer)
            error_writer = error_stream.get_writer()
            acquired.append(error_writer)

            input_decoder = TextDecoderAdapter(encoding, errors)
            output_encoder = TextEncoderAdapter(encoding, errors)
            error_encoder = TextEncoderAdapter(encoding, errors)

            input_text_reader = input_decoder.get_reader()
            acquired.append(input_text_reader)
            output_text_writer = output_encoder.get_writer()
            acquired.append(output_text_writer)
            error_text_writer = error_encoder.get_writer()
            acquired.append(error_text_writer)
        except AcquisitionError:
            self._release_handles(reversed(acquired))
            raise
        except Exception as e:
            self._release_handles(reversed(acquired))
            raise AcquisitionError(f"Failed to acquire stream handles: {str(e)}") from e

        # The source must survive a failing decoder
        input_pipe = Pipe(
            input_reader,
            input_decoder,
            signal=self._signal,
            prevent_cancel=True,
            name=Channel.INPUT.value,
        )
        input_decoder.bind_upstream(input_pipe.step)

        # The sinks are never aborted or closed by their pipes
        output_pipe = Pipe(
            output_encoder,
            output_writer,
            signal=self._signal,
            prevent_cancel=True,
            prevent_abort=True,
            prevent_close=True,
            name=Channel.OUTPUT.value,
        )
        output_encoder.bind_downstream(output_pipe.step)

        error_pipe = Pipe(
            error_encoder,
            error_writer,
            signal=self._signal,
            prevent_cancel=True,
            prevent_abort=True,
            prevent_close=True,
            name=Channel.ERROR.value,
        )
        error_encoder.bind_downstream(error_pipe.step)

        self._input_reader = input_reader
        self._output_writer = output_writer
        self._error_writer = error_writer
        self._input_decoder = input_decoder
        self._output_encoder = output_encoder
        self._error_encoder = error_encoder
        self._input_text_reader = input_text_reader
        self._output_text_writer = output_text_writer
        self._error_text_writer = error_text_writer
        self._pipes = [input_pipe, output_pipe, error_pipe]

        self._state = TerminalState.INITIALIZED
        logger.info(
            f"Terminal initialized ({input_stream.name} -> "
            f"{output_stream.name}, {error_stream.name}; {encoding})"
        )

    async def destroy(self) -> None:
        """
        Stop the pipes and release every handle.

        The endpoints passed to ``initialize()`` are left open. Never raises.
        """
        if self._state is not TerminalState.INITIALIZED:
            return

        self._state = TerminalState.DESTROYED
        logger.info("Destroying terminal")

        self._signal.cancel()
        await asyncio.gather(*(pipe.wait_finished() for pipe in self._pipes))

        if self._pending_writes:
            _, unfinished = await asyncio.wait(
                list(self._pending_writes), timeout=self._config.drain_timeout
            )
            if unfinished:
                logger.warning(
                    f"Dropping {len(unfinished)} unawaited writes still pending at destroy"
                )
                for task in unfinished:
                    task.cancel()
                await asyncio.gather(*unfinished, return_exceptions=True)

        self._release_handles(
            [self._input_text_reader, self._output_text_writer, self._error_text_writer]
        )

        for adapter in (self._input_decoder, self._output_encoder, self._error_encoder):
            try:
                await adapter.close()
            except Exception as e:
                logger.error(f"Error closing text adapter: {str(e)}")

        self._release_handles(
            [self._input_reader, self._output_writer, self._error_writer]
        )

        self._input_text_reader = None
        self._output_text_writer = None
        self._error_text_writer = None
        self._input_decoder = None
        self._output_encoder = None
        self._error_encoder = None
        self._input_reader = None
        self._output_writer = None
        self._error_writer = None
        self._pipes = []
        self._write_turns = {}

        logger.info("Terminal destroyed")

    async def write_output(self, data: WriteData = None) -> None:
        """
        Write text or bytes to the output channel.

        Args:
            data: Text is encoded, bytes are written as-is, None writes nothing
        """
        self._ensure_initialized("write_output")
        await self._write(Channel.OUTPUT, data)

    async def write_output_line(self, *data: str) -> None:
        """Write the space-joined text parts and a newline to the output channel."""
        self._ensure_initialized("write_output_line")
        await self._write(Channel.OUTPUT, format_line(*data))

    def write_output_sync(self, data: WriteData = None) -> None:
        """
        Schedule a write to the output channel without waiting for it.

        Failures are logged, not raised. Requires a running event loop.
        """
        self._ensure_initialized("write_output_sync")
        self._write_sync(Channel.OUTPUT, data)

    def write_output_line_sync(self, *data: str) -> None:
        """Schedule a line write to the output channel without waiting for it."""
        self._ensure_initialized("write_output_line_sync")
        self._write_sync(Channel.OUTPUT, format_line(*data))

    async def write_error(self, data: WriteData = None) -> None:
        """
        Write text or bytes to the error channel.

        Args:
            data: Text is encoded, bytes are written as-is, None writes nothing
        """
        self._ensure_initialized("write_error")
        await self._write(Channel.ERROR, data)

    async def write_error_line(self, *data: str) -> None:
        """Write the space-joined text parts and a newline to the error channel."""
        self._ensure_initialized("write_error_line")
        await self._write(Channel.ERROR, format_line(*data))

    def write_error_sync(self, data: WriteData = None) -> None:
        """
        Schedule a write to the error channel without waiting for it.

        Failures are logged, not raised. Requires a running event loop.
        """
        self._ensure_initialized("write_error_sync")
        self._write_sync(Channel.ERROR, data)

    def write_error_line_sync(self, *data: str) -> None:
        """Schedule a line write to the error channel without waiting for it."""
        self._ensure_initialized("write_error_line_sync")
        self._write_sync(Channel.ERROR, format_line(*data))

    async def read_input(self) -> Optional[bytes]:
        """
        Read the next raw chunk from the input channel.

        Returns:
            Bytes, or None at end of stream or once the terminal is destroyed
        """
        self._ensure_initialized("read_input")
        return await self._signal.guard(self._input_reader.read())

    async def read_input_text(self) -> Optional[str]:
        """
        Read the next decoded text chunk from the input channel.

        Returns:
            Text, or None at end of stream or once the terminal is destroyed
        """
        self._ensure_initialized("read_input_text")
        return await self._signal.guard(self._input_text_reader.read())

    async def __aenter__(self) -> "StreamTerminal":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.destroy()

    def _ensure_initialized(self, operation: str) -> None:
        if self._state is not TerminalState.INITIALIZED:
            raise NotInitializedError(operation)

    def _channel_handles(self, channel: Channel) -> Tuple[TextWriter, SinkWriter]:
        if channel is Channel.OUTPUT:
            return self._output_text_writer, self._output_writer
        return self._error_text_writer, self._error_writer

    def _take_turn(self, channel: Channel) -> Tuple[Optional[asyncio.Future], asyncio.Future]:
        previous = self._write_turns.get(channel)
        turn = asyncio.get_running_loop().create_future()
        self._write_turns[channel] = turn
        return previous, turn

    @staticmethod
    def _pass_turn(previous: Optional[asyncio.Future], turn: asyncio.Future) -> None:
        def resolve(_=None) -> None:
            if not turn.done():
                turn.set_result(None)

        # A write abandoned early still hands over only after its predecessor
        if previous is None or previous.done():
            resolve()
        else:
            previous.add_done_callback(resolve)

    async def _write_in_turn(
        self,
        previous: Optional[asyncio.Future],
        turn: asyncio.Future,
        write: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            if previous is not None:
                await asyncio.shield(previous)
            await write()
        finally:
            self._pass_turn(previous, turn)

    async def _write(self, channel: Channel, data: WriteData) -> None:
        text_writer, writer = self._channel_handles(channel)

        if isinstance(data, str):
            write = functools.partial(text_writer.write, data)
        elif data is None or isinstance(data, (bytes, bytearray, memoryview)):
            write = functools.partial(writer.write, data)
        else:
            raise TypeError(
                f"Cannot write {type(data).__name__} to {channel.value}; expected str or bytes"
            )

        previous, turn = self._take_turn(channel)
        await self._write_in_turn(previous, turn, write)

    def _write_sync(self, channel: Channel, data: WriteData) -> None:
        if isinstance(data, str):
            try:
                payload = data.encode(self._config.encoding, self._config.errors)
            except UnicodeEncodeError as e:
                raise StreamFault(
                    f"Failed to encode {channel.value} as {self._config.encoding}: {str(e)}",
                    {"channel": channel.value},
                ) from e
        elif data is None or isinstance(data, (bytes, bytearray, memoryview)):
            payload = data
        else:
            raise TypeError(
                f"Cannot write {type(data).__name__} to {channel.value}; expected str or bytes"
            )

        if not payload:
            return

        loop = asyncio.get_running_loop()
        _, writer = self._channel_handles(channel)
        # The turn is reserved now, so later writes on the channel queue behind it
        previous, turn = self._take_turn(channel)
        task = loop.create_task(
            self._write_in_turn(previous, turn, functools.partial(writer.write, bytes(payload)))
        )
        self._pending_writes.add(task)
        task.add_done_callback(
            functools.partial(self._on_sync_write_done, channel, previous, turn)
        )

    def _on_sync_write_done(
        self,
        channel: Channel,
        previous: Optional[asyncio.Future],
        turn: asyncio.Future,
        task: asyncio.Task,
    ) -> None:
        self._pending_writes.discard(task)
        # Covers a task cancelled before it ever ran
        self._pass_turn(previous, turn)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Unawaited write to {channel.value} failed: {str(exc)}")

    def _release_handles(self, handles) -> None:
        for handle in handles:
            if handle is None:
                continue
            try:
                handle.release()
            except Exception as e:
                logger.error(f"Error releasing {type(handle).__name__}: {str(e)}")


async def connect_stdio(config: Optional[TerminalConfig] = None) -> StreamTerminal:
    """
    Create a terminal over the process's standard streams and initialize it.

    Args:
        config: Terminal configuration

    Returns:
        An initialized terminal
    """
    config = config or TerminalConfig()

    # Text written through print() must land before terminal output
    sys.stdout.flush()
    sys.stderr.flush()

    terminal = StreamTerminal(config)
    await terminal.initialize(
        FileSource(sys.stdin.buffer, chunk_size=config.chunk_size, name="stdin"),
        FileSink(sys.stdout.buffer, name="stdout"),
        FileSink(sys.stderr.buffer, name="stderr"),
    )
    return terminal
