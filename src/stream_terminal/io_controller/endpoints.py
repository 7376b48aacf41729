"""
Binary stream endpoints and their exclusive reader/writer handles.

A ``ByteSource`` hands out at most one ``SourceReader`` at a time and a
``ByteSink`` at most one ``SinkWriter``. Releasing a handle unlocks the
endpoint without closing it, so the same endpoint can be borrowed again.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import BinaryIO, Deque, List, Optional, Union

from ..utils.exceptions import (
    EndpointLockedError,
    HandleReleasedError,
    StreamFault,
    StreamTerminalError,
)


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536

BytesLike = Union[bytes, bytearray, memoryview]


class ByteSource(ABC):
    """Readable byte stream that supports one exclusive reader."""

    def __init__(self, name: str = "source") -> None:
        self.name = name
        self._reader: Optional["SourceReader"] = None
        self._cancelled = False

    @property
    def locked(self) -> bool:
        return self._reader is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def get_reader(self) -> "SourceReader":
        """
        Acquire the exclusive reader for this source.

        Raises:
            EndpointLockedError: If another reader holds the source
        """
        if self._reader is not None:
            raise EndpointLockedError(self.name)

        self._reader = SourceReader(self)
        logger.debug(f"Acquired reader on {self.name}")
        return self._reader

    async def cancel(self) -> None:
        """Cancel the source. Subsequent reads report end of stream."""
        if self._cancelled:
            return

        self._cancelled = True
        await self._cancel()
        logger.debug(f"Cancelled source {self.name}")

    @abstractmethod
    async def _pull(self) -> Optional[bytes]:
        """Return the next non-empty chunk, or None at end of stream."""

    async def _cancel(self) -> None:
        pass

    def _release(self, reader: "SourceReader") -> None:
        if self._reader is reader:
            self._reader = None
            logger.debug(f"Released reader on {self.name}")


class ByteSink(ABC):
    """Writable byte stream that supports one exclusive writer."""

    def __init__(self, name: str = "sink") -> None:
        self.name = name
        self._writer: Optional["SinkWriter"] = None
        self._closed = False
        self._aborted = False

    @property
    def locked(self) -> bool:
        return self._writer is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted

    def get_writer(self) -> "SinkWriter":
        """
        Acquire the exclusive writer for this sink.

        Raises:
            EndpointLockedError: If another writer holds the sink
        """
        if self._writer is not None:
            raise EndpointLockedError(self.name)

        self._writer = SinkWriter(self)
        logger.debug(f"Acquired writer on {self.name}")
        return self._writer

    async def close(self) -> None:
        """Close the sink after all written data."""
        if self._closed or self._aborted:
            return

        self._closed = True
        await self._close()
        logger.debug(f"Closed sink {self.name}")

    async def abort(self, reason: Optional[BaseException] = None) -> None:
        """Abort the sink, discarding anything not yet written."""
        if self._closed or self._aborted:
            return

        self._aborted = True
        await self._abort(reason)
        logger.debug(f"Aborted sink {self.name}: {reason}")

    @abstractmethod
    async def _push(self, data: bytes) -> None:
        """Write one chunk to the underlying stream."""

    async def _close(self) -> None:
        pass

    async def _abort(self, reason: Optional[BaseException]) -> None:
        pass

    def _release(self, writer: "SinkWriter") -> None:
        if self._writer is writer:
            self._writer = None
            logger.debug(f"Released writer on {self.name}")


class SourceReader:
    """Exclusive read handle on a ByteSource."""

    def __init__(self, source: ByteSource) -> None:
        self._source = source
        self._released = False
        self._lock = asyncio.Lock()

    @property
    def released(self) -> bool:
        return self._released

    async def read(self) -> Optional[bytes]:
        """
        Read the next chunk from the source.

        Returns:
            The next chunk of bytes, or None at end of stream

        Raises:
            HandleReleasedError: If the reader has been released
            StreamFault: If the underlying read fails
        """
        async with self._lock:
            if self._released:
                raise HandleReleasedError(f"{self._source.name} reader")

            if self._source.cancelled:
                return None

            try:
                chunk = await self._source._pull()
            except StreamTerminalError:
                raise
            except Exception as e:
                raise StreamFault(
                    f"Read from {self._source.name} failed: {str(e)}",
                    {"endpoint": self._source.name},
                ) from e

            if chunk is not None:
                logger.debug(f"Read {len(chunk)} bytes from {self._source.name}")
            return chunk

    async def cancel(self) -> None:
        """Cancel the underlying source."""
        if self._released:
            raise HandleReleasedError(f"{self._source.name} reader")
        await self._source.cancel()

    def release(self) -> None:
        """Release the lock on the source. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        self._source._release(self)


class SinkWriter:
    """Exclusive write handle on a ByteSink. Writes are serialized in issue order."""

    def __init__(self, sink: ByteSink) -> None:
        self._sink = sink
        self._released = False
        self._lock = asyncio.Lock()

    @property
    def released(self) -> bool:
        return self._released

    async def write(self, data: Optional[BytesLike]) -> None:
        """
        Write a chunk to the sink.

        Args:
            data: Bytes to write; None or empty data is a no-op

        Raises:
            HandleReleasedError: If the writer has been released
            StreamFault: If the sink is closed or the underlying write fails
        """
        async with self._lock:
            if self._released:
                raise HandleReleasedError(f"{self._sink.name} writer")

            if self._sink.closed or self._sink.aborted:
                raise StreamFault(
                    f"Sink {self._sink.name} is no longer writable",
                    {"endpoint": self._sink.name},
                )

            if not data:
                return

            try:
                await self._sink._push(bytes(data))
            except StreamTerminalError:
                raise
            except Exception as e:
                raise StreamFault(
                    f"Write to {self._sink.name} failed: {str(e)}",
                    {"endpoint": self._sink.name},
                ) from e

            logger.debug(f"Wrote {len(data)} bytes to {self._sink.name}")

    async def close(self) -> None:
        """Close the underlying sink once pending writes are done."""
        async with self._lock:
            if self._released:
                raise HandleReleasedError(f"{self._sink.name} writer")
            await self._sink.close()

    async def abort(self, reason: Optional[BaseException] = None) -> None:
        """Abort the underlying sink."""
        if self._released:
            raise HandleReleasedError(f"{self._sink.name} writer")
        await self._sink.abort(reason)

    def release(self) -> None:
        """Release the lock on the sink. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        self._sink._release(self)


class MemorySource(ByteSource):
    """In-memory byte source fed from chunks."""

    def __init__(self, *chunks: BytesLike, eof: bool = True, name: str = "memory-source") -> None:
        super().__init__(name)
        self._chunks: Deque[bytes] = deque(bytes(chunk) for chunk in chunks if chunk)
        self._eof = eof
        self._ready = asyncio.Event()

    @property
    def eof(self) -> bool:
        return self._eof

    def feed(self, data: BytesLike) -> None:
        """Append data to the source."""
        if self._eof:
            raise StreamFault(f"Cannot feed {self.name} after end of stream")
        if data:
            self._chunks.append(bytes(data))
            self._ready.set()

    def feed_eof(self) -> None:
        """Mark the end of the stream."""
        self._eof = True
        self._ready.set()

    async def _pull(self) -> Optional[bytes]:
        while not self._chunks:
            if self._eof or self._cancelled:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._chunks.popleft()

    async def _cancel(self) -> None:
        self._chunks.clear()
        self._ready.set()


class MemorySink(ByteSink):
    """In-memory byte sink that records every chunk written."""

    def __init__(self, name: str = "memory-sink") -> None:
        super().__init__(name)
        self.chunks: List[bytes] = []

    def getvalue(self) -> bytes:
        return b"".join(self.chunks)

    async def _push(self, data: bytes) -> None:
        self.chunks.append(data)


class StreamReaderSource(ByteSource):
    """ByteSource over an ``asyncio.StreamReader``."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        name: str = "stream-reader",
    ) -> None:
        super().__init__(name)
        self._stream = reader
        self._chunk_size = chunk_size

    async def _pull(self) -> Optional[bytes]:
        data = await self._stream.read(self._chunk_size)
        return data or None


class StreamWriterSink(ByteSink):
    """ByteSink over an ``asyncio.StreamWriter``. Each write waits for drain."""

    def __init__(self, writer: asyncio.StreamWriter, name: str = "stream-writer") -> None:
        super().__init__(name)
        self._stream = writer

    async def _push(self, data: bytes) -> None:
        self._stream.write(data)
        await self._stream.drain()

    async def _close(self) -> None:
        self._stream.close()
        await self._stream.wait_closed()

    async def _abort(self, reason: Optional[BaseException]) -> None:
        self._stream.transport.abort()


class FileSource(ByteSource):
    """
    ByteSource over a blocking binary file object such as ``sys.stdin.buffer``.

    Reads run in a worker thread. A read abandoned by cancellation keeps
    its thread until the blocking call returns, and that chunk is lost.
    Cancelling stops reads but leaves the file open; the caller owns it.
    """

    def __init__(
        self,
        file: BinaryIO,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        name: str = "file-source",
    ) -> None:
        super().__init__(name)
        self._file = file
        self._chunk_size = chunk_size

    async def _pull(self) -> Optional[bytes]:
        read = getattr(self._file, "read1", self._file.read)
        data = await asyncio.to_thread(read, self._chunk_size)
        return data or None


class FileSink(ByteSink):
    """ByteSink over a blocking binary file object such as ``sys.stdout.buffer``."""

    def __init__(self, file: BinaryIO, name: str = "file-sink") -> None:
        super().__init__(name)
        self._file = file

    def _write_all(self, data: bytes) -> None:
        self._file.write(data)
        self._file.flush()

    async def _push(self, data: bytes) -> None:
        await asyncio.to_thread(self._write_all, data)

    async def _close(self) -> None:
        await asyncio.to_thread(self._file.close)
