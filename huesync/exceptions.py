"""
huesync library exceptions.

This module defines all custom exceptions used throughout the library.
"""

from typing import Optional


class HueError(Exception):
    """Base exception for Hue bridge errors"""
    pass


class HueTransportError(HueError):
    """Raised when the bridge cannot be reached (timeout, refused, ...)"""
    pass


class HueResponseError(HueTransportError):
    """Raised when a 200 response body is not valid JSON or not the expected shape"""
    pass


class HueHTTPStatusError(HueError):
    """Raised when the bridge answers with a non-200 HTTP status"""
    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"http status {status}")


class HueResourceError(HueError):
    """Raised when a 200 response carries an embedded error object"""
    def __init__(self, type: int, description: str, address: Optional[str] = None):
        self.type = type
        self.description = description
        self.address = address
        super().__init__(f"bridge error {type}: {description}")


class HueAuthorizationPending(HueResourceError):
    """Raised while the bridge waits for its link button to be pressed"""
    pass


class HueConfigurationError(HueError):
    """Raised when configuration is invalid"""
    pass


class HueStateError(HueError):
    """Raised when an operation is not allowed in the current session state"""
    pass


class HueUnknownModelWarning(UserWarning):
    """Emitted when a light or sensor model is not in the capability table"""
    pass
