"""Exception types shared across the weather core."""

from enum import Enum


class InvalidUnitError(ValueError):
    """Raised when a measurement is asked for a unit it does not support.

    This is always a programming or configuration error and is never
    expected from user input.
    """

    pass


class UserInputError(ValueError):
    """Raised when user-entered data (location name, coordinates) is malformed."""

    pass


class LocationResolutionError(Exception):
    """Raised when the current location ("here") cannot be resolved."""

    pass


class NoLocationServiceError(LocationResolutionError):
    """Raised when the system location service is unavailable or denies access.

    Callers can catch this separately to point the user at their location
    permissions instead of showing a generic failure.
    """

    def __init__(self, message: str = "System location service is unavailable"):
        super().__init__(message)


class TransportErrorKind(Enum):
    """Classification of a failed HTTP exchange."""

    RESOLVER = "resolver"
    TIMEOUT = "timeout"
    CONNECT = "connect"
    DECODE = "decode"
    EMPTY = "empty"
    OTHER = "other"


class TransportError(Exception):
    """Raised by the HTTP client when a request produced no usable JSON body.

    The ``kind`` tag tells callers which failures are worth retrying.

    Example:
        >>> err = TransportError(TransportErrorKind.RESOLVER, "no such host")
        >>> err.kind is TransportErrorKind.RESOLVER
        True
    """

    def __init__(self, kind: TransportErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


class WeatherProviderError(Exception):
    """Raised when a weather provider returns an error status or unusable payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
