"""Error taxonomy for drive operations and gateway calls."""

from __future__ import annotations


class DriveError(Exception):
    """Base class for every failure raised by sandbox_drive.

    The ``message`` attribute is human-readable and safe to show to end users.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(DriveError):
    """Raised when the gateway endpoint or root folder is missing or invalid.

    Always raised before any network call is attempted.
    """


class SandboxViolation(DriveError):
    """Raised when navigation would move above the sandbox root."""


class SizeError(DriveError):
    """Raised when a file exceeds the configured upload limit."""

    def __init__(self, filename: str, size: int, limit: int) -> None:
        super().__init__(
            f"File '{filename}' is {size} bytes; the upload limit is {limit} bytes"
        )
        self.filename = filename
        self.size = size
        self.limit = limit


class GatewayError(DriveError):
    """Base class for failures of a single gateway action."""

    def __init__(self, action: str, message: str) -> None:
        super().__init__(message)
        self.action = action


class TransportError(GatewayError):
    """The request never produced a response (DNS, refused connection, timeout).

    Retryable by the caller; this package never retries.
    """


class ProtocolError(GatewayError):
    """The gateway answered with markup or a non-JSON body.

    Usually means the endpoint URL is wrong or the gateway is not published for
    anonymous access. Never transient.
    """


class RemoteError(GatewayError):
    """The gateway reported a business-level failure; ``message`` is verbatim."""


class CompatibilityError(GatewayError):
    """The response had neither a status nor a message.

    The deployed gateway predates the invoked action; callers should disable
    the dependent feature instead of crashing.
    """
