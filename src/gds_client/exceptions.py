"""
Exception classes for the GDS client.

All exceptions inherit from GDSClientError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class GDSClientError(Exception):
    """Base exception for all GDS client errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class GDSConnectionError(GDSClientError):
    """Raised when the endpoint is malformed or the session cannot be established."""

    pass


class RemoteInvocationFault(GDSClientError):
    """
    Raised when the server rejects a method call.

    The OPC UA status code reported by the server is kept in ``status_code``
    (``None`` when the fault was detected client-side, e.g. missing outputs).
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.status_code = status_code


class EnumerationInvalidated(GDSClientError):
    """Raised when the server reset its discovery index during pagination."""

    pass


class PrivilegedOperationUnavailable(GDSClientError):
    """Raised when admin credentials are required but missing or rejected."""

    pass


class TransferDecodeError(GDSClientError):
    """Raised when transferred trust list bytes cannot be decoded."""

    pass
