"""
Stream Terminal - binary and text channels over standard streams.
"""

from .config import TerminalConfig
from .io_controller import (
    ByteSink,
    ByteSource,
    Channel,
    MemorySink,
    MemorySource,
    StreamTerminal,
    TerminalState,
    connect_stdio,
)
from .utils.exceptions import (
    AcquisitionError,
    ConfigurationError,
    LifecycleError,
    StreamFault,
    StreamTerminalError,
)

__version__ = "0.1.0"

__all__ = [
    "AcquisitionError",
    "ByteSink",
    "ByteSource",
    "Channel",
    "ConfigurationError",
    "LifecycleError",
    "MemorySink",
    "MemorySource",
    "StreamFault",
    "StreamTerminal",
    "StreamTerminalError",
    "TerminalConfig",
    "TerminalState",
    "connect_stdio",
]
