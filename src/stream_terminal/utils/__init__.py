"""
Utility modules for Stream Terminal.
"""

from .exceptions import (
    StreamTerminalError,
    LifecycleError,
    AcquisitionError,
    StreamFault,
    ConfigurationError,
    NotInitializedError,
    EndpointLockedError,
    HandleReleasedError,
)
from .helpers import (
    load_config,
    format_line,
    configure_logging,
)

__all__ = [
    "StreamTerminalError",
    "LifecycleError",
    "AcquisitionError",
    "StreamFault",
    "ConfigurationError",
    "NotInitializedError",
    "EndpointLockedError",
    "HandleReleasedError",
    "load_config",
    "format_line",
    "configure_logging",
]
