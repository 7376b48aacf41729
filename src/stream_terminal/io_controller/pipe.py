"""
Cancellation context and pipe relationships between stream handles.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol


logger = logging.getLogger(__name__)


class PipeSource(Protocol):
    """Readable side of a pipe."""

    async def read(self) -> Optional[Any]:
        ...

    async def cancel(self) -> None:
        ...


class PipeDestination(Protocol):
    """Writable side of a pipe."""

    async def write(self, chunk: Any) -> None:
        ...

    async def close(self) -> None:
        ...

    async def abort(self, reason: Optional[BaseException] = None) -> None:
        ...


class CancellationContext:
    """One-shot cancellation signal shared by several pipes."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback run once when the context is cancelled."""
        if self.cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> bool:
        """
        Fire the signal.

        Returns:
            True if this call fired it, False if it had already fired
        """
        if self.cancelled:
            return False

        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in cancellation callback: {str(e)}")
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[Any], default: Any = None) -> Any:
        """
        Await *awaitable* unless the context fires first.

        Args:
            awaitable: Operation to run
            default: Value returned when cancellation wins

        Returns:
            The operation's result, or *default* if cancelled
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return default

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return default


class Pipe:
    """
    A standing forwarding link from a source to a destination.

    The pipe moves one chunk per ``step()`` call and stays usable until the
    source is exhausted or the shared cancellation context fires. Errors
    while moving a chunk are raised to the caller of ``step()``.

    The ``prevent_*`` options keep the pipe from touching the endpoints it
    borrows:

    - ``prevent_cancel``: cancellation, or a failed destination write,
      does not cancel the source.
    - ``prevent_abort``: cancellation, or a failed source read, does not
      abort the destination.
    - ``prevent_close``: exhausting the source does not close the
      destination.
    """

    def __init__(
        self,
        source: PipeSource,
        destination: PipeDestination,
        *,
        signal: CancellationContext,
        prevent_cancel: bool = False,
        prevent_abort: bool = False,
        prevent_close: bool = False,
        name: str = "pipe",
    ) -> None:
        self.name = name
        self._source = source
        self._destination = destination
        self._signal = signal
        self._prevent_cancel = prevent_cancel
        self._prevent_abort = prevent_abort
        self._prevent_close = prevent_close
        self._lock = asyncio.Lock()
        self._finished = False
        self._teardown: Optional[asyncio.Task] = None

        signal.add_callback(self._on_cancel)

    @property
    def finished(self) -> bool:
        return self._finished

    async def step(self) -> bool:
        """
        Move one chunk from the source to the destination.

        Returns:
            True if a chunk was moved, False once the pipe has finished
        """
        async with self._lock:
            if self._finished:
                return False

            try:
                chunk = await self._signal.guard(self._source.read())
            except Exception as e:
                if not self._prevent_abort:
                    self._finished = True
                    await self._abort_destination(e)
                raise

            if self._finished:
                # Cancelled while waiting for the source
                return False

            if chunk is None:
                self._finished = True
                logger.debug(f"Source exhausted for pipe {self.name}")
                if not self._prevent_close:
                    await self._destination.close()
                return False

            try:
                await self._destination.write(chunk)
            except Exception:
                if not self._prevent_cancel:
                    self._finished = True
                    await self._cancel_source()
                raise

            return True

    async def wait_finished(self) -> None:
        """Wait for teardown work scheduled by cancellation to complete."""
        if self._teardown is not None:
            await asyncio.gather(self._teardown, return_exceptions=True)

    def _on_cancel(self) -> None:
        if self._finished:
            return

        self._finished = True
        logger.debug(f"Pipe {self.name} cancelled")

        if self._prevent_cancel and self._prevent_abort:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop to tear down pipe {self.name}")
            return
        self._teardown = loop.create_task(self._tear_down())

    async def _tear_down(self) -> None:
        if not self._prevent_cancel:
            await self._cancel_source()
        if not self._prevent_abort:
            await self._abort_destination(None)

    async def _cancel_source(self) -> None:
        try:
            await self._source.cancel()
        except Exception as e:
            logger.error(f"Failed to cancel source of pipe {self.name}: {str(e)}")

    async def _abort_destination(self, reason: Optional[BaseException]) -> None:
        try:
            await self._destination.abort(reason)
        except Exception as e:
            logger.error(f"Failed to abort destination of pipe {self.name}: {str(e)}")
