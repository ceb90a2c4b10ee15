"""Exception hierarchy for the Nacos client."""

from __future__ import annotations


class NacosError(Exception):
    """Base exception for Nacos client errors."""
    pass


class TransportError(NacosError):
    """Network, connection or timeout failure talking to the server."""

    def __init__(self, message: str, method: str | None = None, endpoint: str | None = None):
        super().__init__(message)
        self.method = method
        self.endpoint = endpoint


class ClientClosedError(TransportError):
    """The client (or its transport) has been closed."""
    pass


class DecodeError(NacosError):
    """Server payload could not be decoded into the expected shape."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class AuthError(NacosError):
    """Authentication failed or the server kept rejecting the token."""
    pass


class ValidationError(NacosError, ValueError):
    """Caller-supplied parameters violate a documented constraint."""
    pass


class ServerError(NacosError):
    """Server answered with a non-success status or envelope code."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: int | None = None,
        endpoint: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.endpoint = endpoint


class UnsupportedOperationError(NacosError):
    """Operation is not available on the selected Open API version."""
    pass
