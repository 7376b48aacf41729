"""
Custom exceptions for Stream Terminal.
"""

from typing import Optional


class StreamTerminalError(Exception):
    """Base exception for all Stream Terminal errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class LifecycleError(StreamTerminalError):
    """Exception raised when an operation is invalid in the current terminal state."""

    pass


class AcquisitionError(StreamTerminalError):
    """Exception raised when a stream handle cannot be acquired."""

    pass


class StreamFault(StreamTerminalError):
    """Exception raised when an underlying read or write primitive fails."""

    pass


class ConfigurationError(StreamTerminalError):
    """Exception raised for configuration-related errors."""

    pass


class NotInitializedError(LifecycleError):
    """Exception raised when a terminal operation runs outside the initialized state."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            "Terminal instance is not initialized", {"operation": operation}
        )
        self.operation = operation


class EndpointLockedError(AcquisitionError):
    """Exception raised when an endpoint is already held by another handle."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Endpoint '{endpoint}' is already locked")
        self.endpoint = endpoint


class HandleReleasedError(StreamFault):
    """Exception raised when a released reader or writer handle is used."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Handle '{handle}' has been released")
        self.handle = handle
