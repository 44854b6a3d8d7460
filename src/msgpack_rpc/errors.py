"""
Error types for the MessagePack-RPC endpoint.

Two families of errors end a serve cycle:

- ``RequestDecodeError`` and its subclasses: the message was valid
  MessagePack but not a well-formed request.
- ``TransportError``: reading, writing, or (de)serializing bytes failed.
  The original exception is kept as the cause.

``HandlerError`` is different: application handlers raise it to answer a
request with an error value, and it never ends a cycle.
"""

from __future__ import annotations

from typing import Any


class RequestDecodeError(Exception):
    """
    Base exception for messages that are not valid requests.

    Attributes:
        error_code: Internal error code string (e.g., "type_mismatch").
        message: Human-readable error message.
        details: Optional structured details (e.g., offending position).
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize a RequestDecodeError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for logging.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidMessageTypeError(RequestDecodeError):
    """Raised when the message type tag is not the request tag (0)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidMessageTypeError."""
        super().__init__(
            error_code="invalid_message_type", message=message, details=details
        )


class TypeMismatchError(RequestDecodeError):
    """
    Raised when the message or one of its fields has the wrong shape.

    Covers both a message that is not an array at all and a four element
    array with a field of the wrong type.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a TypeMismatchError."""
        super().__init__(error_code="type_mismatch", message=message, details=details)


class InvalidLengthError(RequestDecodeError):
    """Raised when the request array does not have exactly four elements."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an InvalidLengthError."""
        super().__init__(
            error_code="invalid_length", message=message, details=details
        )


class TransportError(Exception):
    """
    Raised when the byte stream or the MessagePack layer fails.

    Wraps connection resets, truncated input, invalid framing and encoding
    failures alike. The underlying exception is available as ``cause``
    (and ``__cause__`` when raised with ``from``).
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        """Initialize a TransportError."""
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return f"TransportError(message={self.message!r}, cause={self.cause!r})"


class ConnectionClosed(Exception):
    """Raised when the peer closes the stream between two messages."""

    pass


class HandlerError(Exception):
    """
    Exception raised by handlers to answer a request with an error.

    The ``error`` value is sent back verbatim in the response's error field.

    Attributes:
        error: Application-defined error value (any MessagePack value).

    Example:
        >>> raise HandlerError({"code": 404, "reason": "no such key"})
    """

    def __init__(self, error: Any) -> None:
        """Initialize a handler error."""
        super().__init__(error)
        self.error = error
