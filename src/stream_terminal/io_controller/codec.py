"""
Text adapters layered over binary stream handles.

``TextDecoderAdapter`` turns bytes arriving on its writable side into text
chunks read through an exclusive ``TextReader``. ``TextEncoderAdapter``
turns text written through an exclusive ``TextWriter`` into bytes read
from its readable side. Both use incremental codecs, so multi-byte
sequences split across chunks survive.
"""

import asyncio
import codecs
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from ..utils.exceptions import (
    EndpointLockedError,
    HandleReleasedError,
    StreamFault,
)


logger = logging.getLogger(__name__)

Transfer = Callable[[], Awaitable[bool]]


class TextDecoderAdapter:
    """Decodes bytes into text. Reads pull more bytes from the upstream pipe on demand."""

    def __init__(self, encoding: str = "utf-8", errors: str = "replace") -> None:
        self.encoding = encoding
        self.errors = errors
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self._pending: Deque[str] = deque()
        self._closed = False
        self._error: Optional[BaseException] = None
        self._reader: Optional["TextReader"] = None
        self._upstream: Optional[Transfer] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def bind_upstream(self, pull: Transfer) -> None:
        """Set the callable that moves one more chunk into this decoder."""
        self._upstream = pull

    def get_reader(self) -> "TextReader":
        if self._reader is not None:
            raise EndpointLockedError(f"{self.encoding} decoder")
        self._reader = TextReader(self)
        return self._reader

    async def write(self, data: bytes) -> None:
        """Feed bytes into the decoder."""
        if self._closed:
            raise StreamFault("Text decoder is closed")

        try:
            text = self._decoder.decode(data)
        except UnicodeDecodeError as e:
            raise StreamFault(
                f"Failed to decode input as {self.encoding}: {str(e)}",
                {"encoding": self.encoding},
            ) from e

        if text:
            self._pending.append(text)

    async def close(self) -> None:
        """Close the writable side, flushing any buffered partial sequence."""
        if self._closed:
            return

        self._closed = True
        try:
            tail = self._decoder.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise StreamFault(
                f"Input ended inside a {self.encoding} sequence: {str(e)}",
                {"encoding": self.encoding},
            ) from e

        if tail:
            self._pending.append(tail)

    async def abort(self, reason: Optional[BaseException] = None) -> None:
        self._closed = True
        self._error = reason or StreamFault("Text decoder aborted")

    async def _read(self) -> Optional[str]:
        while not self._pending:
            if self._error is not None:
                raise StreamFault(f"Text decoder aborted: {str(self._error)}")
            if self._closed or self._upstream is None or not await self._upstream():
                break

        if self._pending:
            return self._pending.popleft()
        return None

    def _release(self, reader: "TextReader") -> None:
        if self._reader is reader:
            self._reader = None


class TextEncoderAdapter:
    """Encodes text into bytes. Each write pushes its bytes through the downstream pipe."""

    def __init__(self, encoding: str = "utf-8", errors: str = "strict") -> None:
        self.encoding = encoding
        self.errors = errors
        self._encoder = codecs.getincrementalencoder(encoding)(errors=errors)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._writer: Optional["TextWriter"] = None
        self._downstream: Optional[Transfer] = None
        self._write_lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def bind_downstream(self, push: Transfer) -> None:
        """Set the callable that moves one encoded chunk out of this encoder."""
        self._downstream = push

    def get_writer(self) -> "TextWriter":
        if self._writer is not None:
            raise EndpointLockedError(f"{self.encoding} encoder")
        self._writer = TextWriter(self)
        return self._writer

    async def read(self) -> Optional[bytes]:
        """Next encoded chunk, or None once the encoder is closed."""
        return await self._queue.get()

    async def cancel(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def close(self) -> None:
        """Close the writable side, flushing any encoder state."""
        if self._closed:
            return

        self._closed = True
        tail = self._encoder.encode("", final=True)
        if tail:
            self._queue.put_nowait(tail)
        self._queue.put_nowait(None)

    async def _write(self, text: str) -> None:
        async with self._write_lock:
            if self._closed:
                raise StreamFault("Text encoder is closed")

            try:
                data = self._encoder.encode(text)
            except UnicodeEncodeError as e:
                raise StreamFault(
                    f"Failed to encode output as {self.encoding}: {str(e)}",
                    {"encoding": self.encoding},
                ) from e

            if not data:
                return

            self._queue.put_nowait(data)
            if self._downstream is not None and not await self._downstream():
                raise StreamFault("Text encoder pipe has finished")

    def _release(self, writer: "TextWriter") -> None:
        if self._writer is writer:
            self._writer = None


class TextReader:
    """Exclusive read handle on a TextDecoderAdapter."""

    def __init__(self, adapter: TextDecoderAdapter) -> None:
        self._adapter = adapter
        self._released = False
        self._lock = asyncio.Lock()

    @property
    def released(self) -> bool:
        return self._released

    async def read(self) -> Optional[str]:
        """Next decoded text chunk, or None at end of stream."""
        async with self._lock:
            if self._released:
                raise HandleReleasedError(f"{self._adapter.encoding} text reader")
            return await self._adapter._read()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._adapter._release(self)


class TextWriter:
    """Exclusive write handle on a TextEncoderAdapter."""

    def __init__(self, adapter: TextEncoderAdapter) -> None:
        self._adapter = adapter
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def write(self, text: str) -> None:
        """Encode *text* and wait until its bytes reach the sink."""
        if self._released:
            raise HandleReleasedError(f"{self._adapter.encoding} text writer")
        await self._adapter._write(text)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._adapter._release(self)
