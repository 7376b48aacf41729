"""
I/O Controller module for terminal input/output streams.
"""

from .codec import TextDecoderAdapter, TextEncoderAdapter, TextReader, TextWriter
from .endpoints import (
    ByteSink,
    ByteSource,
    FileSink,
    FileSource,
    MemorySink,
    MemorySource,
    SinkWriter,
    SourceReader,
    StreamReaderSource,
    StreamWriterSink,
)
from .pipe import CancellationContext, Pipe
from .terminal import Channel, StreamTerminal, TerminalState, connect_stdio

__all__ = [
    "ByteSink",
    "ByteSource",
    "CancellationContext",
    "Channel",
    "FileSink",
    "FileSource",
    "MemorySink",
    "MemorySource",
    "Pipe",
    "SinkWriter",
    "SourceReader",
    "StreamReaderSource",
    "StreamTerminal",
    "StreamWriterSink",
    "TerminalState",
    "TextDecoderAdapter",
    "TextEncoderAdapter",
    "TextReader",
    "TextWriter",
    "connect_stdio",
]
