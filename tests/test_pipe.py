"""
Tests for the cancellation context and pipes.
"""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from stream_terminal.io_controller import (
    CancellationContext,
    MemorySink,
    MemorySource,
    Pipe,
)
from stream_terminal.utils.exceptions import StreamFault


class BrokenSink(MemorySink):
    """Sink whose writes always fail."""

    async def _push(self, data: bytes) -> None:
        raise BrokenPipeError("broken pipe")


class BrokenSource(MemorySource):
    """Source whose reads always fail."""

    async def _pull(self):
        raise OSError("read failed")


@pytest.fixture
def signal():
    return CancellationContext()


class TestCancellationContext:
    """Test the one-shot cancellation signal."""

    def test_cancel_is_idempotent(self, signal):
        """Test only the first cancel fires callbacks."""
        callback = Mock()
        signal.add_callback(callback)

        assert signal.cancel() is True
        assert signal.cancel() is False

        assert signal.cancelled
        callback.assert_called_once_with()

    def test_callback_after_cancel_runs_immediately(self, signal):
        """Test late callbacks still run."""
        signal.cancel()
        callback = Mock()

        signal.add_callback(callback)

        callback.assert_called_once_with()

    def test_callback_errors_are_logged(self, signal, caplog):
        """Test a failing callback does not stop the others."""
        failing = Mock(side_effect=RuntimeError("boom"))
        other = Mock()
        signal.add_callback(failing)
        signal.add_callback(other)

        with caplog.at_level(logging.ERROR):
            assert signal.cancel() is True

        other.assert_called_once_with()
        assert "boom" in caplog.text

    async def test_guard_returns_result(self, signal):
        """Test guard passes results through."""
        async def answer():
            return 42

        assert await signal.guard(answer()) == 42

    async def test_guard_propagates_errors(self, signal):
        """Test guard passes errors through."""
        async def fail():
            raise StreamFault("failed")

        with pytest.raises(StreamFault):
            await signal.guard(fail())

    async def test_guard_returns_default_on_cancel(self, signal):
        """Test cancellation resolves a pending operation with the default."""
        never = asyncio.Event()
        pending = asyncio.create_task(signal.guard(never.wait(), default="cancelled"))
        await asyncio.sleep(0)

        signal.cancel()

        assert await asyncio.wait_for(pending, timeout=1.0) == "cancelled"

    async def test_guard_after_cancel(self, signal):
        """Test guard skips the operation once cancelled."""
        signal.cancel()
        ran = []

        async def operation():
            ran.append(True)

        assert await signal.guard(operation()) is None
        assert ran == []

    async def test_wait(self, signal):
        """Test waiting for the signal."""
        waiter = asyncio.create_task(signal.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        signal.cancel()

        await asyncio.wait_for(waiter, timeout=1.0)


class TestPipe:
    """Test moving chunks between handles."""

    async def test_step_moves_one_chunk(self, signal):
        """Test each step moves exactly one chunk."""
        sink = MemorySink()
        pipe = Pipe(MemorySource(b"a", b"b").get_reader(), sink.get_writer(), signal=signal)

        assert await pipe.step() is True
        assert sink.chunks == [b"a"]
        assert await pipe.step() is True
        assert sink.chunks == [b"a", b"b"]

    async def test_end_of_source_closes_destination(self, signal):
        """Test an exhausted source closes the destination."""
        sink = MemorySink()
        pipe = Pipe(MemorySource().get_reader(), sink.get_writer(), signal=signal)

        assert await pipe.step() is False
        assert pipe.finished
        assert sink.closed
        assert await pipe.step() is False

    async def test_prevent_close(self, signal):
        """Test prevent_close keeps the destination open."""
        sink = MemorySink()
        pipe = Pipe(
            MemorySource().get_reader(), sink.get_writer(), signal=signal, prevent_close=True
        )

        assert await pipe.step() is False
        assert not sink.closed

    async def test_cancel_tears_down_endpoints(self, signal):
        """Test cancellation cancels the source and aborts the destination."""
        source = MemorySource(eof=False)
        sink = MemorySink()
        pipe = Pipe(source.get_reader(), sink.get_writer(), signal=signal)

        signal.cancel()
        await pipe.wait_finished()

        assert pipe.finished
        assert source.cancelled
        assert sink.aborted
        assert await pipe.step() is False

    async def test_cancel_with_prevent_flags(self, signal):
        """Test prevent flags leave both endpoints alone on cancellation."""
        source = MemorySource(eof=False)
        sink = MemorySink()
        pipe = Pipe(
            source.get_reader(),
            sink.get_writer(),
            signal=signal,
            prevent_cancel=True,
            prevent_abort=True,
        )

        signal.cancel()
        await pipe.wait_finished()

        assert pipe.finished
        assert not source.cancelled
        assert not sink.aborted

    async def test_cancel_during_step(self, signal):
        """Test cancellation ends a step waiting on the source."""
        source = MemorySource(eof=False)
        sink = MemorySink()
        pipe = Pipe(
            source.get_reader(),
            sink.get_writer(),
            signal=signal,
            prevent_cancel=True,
            prevent_abort=True,
        )

        pending = asyncio.create_task(pipe.step())
        await asyncio.sleep(0)
        signal.cancel()

        assert await asyncio.wait_for(pending, timeout=1.0) is False
        assert sink.chunks == []

    async def test_destination_failure_cancels_source(self, signal):
        """Test a failed write cancels the source and finishes the pipe."""
        source = MemorySource(b"data", eof=False)
        pipe = Pipe(source.get_reader(), BrokenSink().get_writer(), signal=signal)

        with pytest.raises(StreamFault):
            await pipe.step()

        assert pipe.finished
        assert source.cancelled

    async def test_destination_failure_with_prevent_cancel(self, signal):
        """Test prevent_cancel keeps the pipe usable after a failed write."""
        source = MemorySource(b"one", b"two")
        pipe = Pipe(
            source.get_reader(), BrokenSink().get_writer(), signal=signal, prevent_cancel=True
        )

        with pytest.raises(StreamFault):
            await pipe.step()

        assert not pipe.finished
        assert not source.cancelled

    async def test_source_failure_aborts_destination(self, signal):
        """Test a failed read aborts the destination."""
        sink = MemorySink()
        pipe = Pipe(BrokenSource().get_reader(), sink.get_writer(), signal=signal)

        with pytest.raises(StreamFault):
            await pipe.step()

        assert pipe.finished
        assert sink.aborted

    async def test_source_failure_with_prevent_abort(self, signal):
        """Test prevent_abort leaves the destination writable after a failed read."""
        sink = MemorySink()
        pipe = Pipe(
            BrokenSource().get_reader(), sink.get_writer(), signal=signal, prevent_abort=True
        )

        with pytest.raises(StreamFault):
            await pipe.step()

        assert not pipe.finished
        assert not sink.aborted
