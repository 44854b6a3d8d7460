"""
MessagePack-RPC request/response codec.

This module converts between generic MessagePack values and the structured
Request/Response messages of the MessagePack-RPC protocol. Both directions
are pure transformations; reading and writing bytes lives in
``msgpack_rpc.stream``.

Wire Format:
- Request: [0, msgid: int, method: str, params: array]
- Response: [1, msgid: int, error: any, result: any]

Decode Precedence:
1. Message is not an array -> TypeMismatchError
2. Array length is not 4 -> InvalidLengthError (whatever the element types)
3. A field has the wrong type -> TypeMismatchError
4. Type tag is not 0 -> InvalidMessageTypeError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from msgpack_rpc.errors import (
    InvalidLengthError,
    InvalidMessageTypeError,
    TypeMismatchError,
)
from msgpack_rpc.values import MessageType, Value, is_array, is_integer, is_string

REQUEST_LENGTH = 4

# (position, field name, predicate, expected type name)
_REQUEST_FIELDS = (
    (0, "type", is_integer, "integer"),
    (1, "msgid", is_integer, "integer"),
    (2, "method", is_string, "string"),
    (3, "params", is_array, "array"),
)


def _check_field(position: int, value: Value) -> None:
    """Raise TypeMismatchError if a request field has the wrong type."""
    _, name, predicate, expected = _REQUEST_FIELDS[position]
    if not predicate(value):
        raise TypeMismatchError(
            message=(
                f"Request field '{name}' must be {expected}, "
                f"got {type(value).__name__}"
            ),
            details={"position": position, "field": name},
        )


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class Request:
    """
    A decoded MessagePack-RPC request.

    Instances are normally produced by ``Request.decode``. Direct
    construction runs the same field type checks, so a Request never holds
    a non-integer msgid, a non-string method or non-array params.

    Attributes:
        msgid: Request identifier, echoed verbatim in the response.
        method: Name of the method to invoke.
        params: Positional arguments, passed through untouched.
    """

    msgid: int
    method: str
    params: list[Value]

    def __post_init__(self) -> None:
        """Validate field types and normalize tuple params to a list."""
        for position, item in ((1, self.msgid), (2, self.method), (3, self.params)):
            _check_field(position, item)

        if isinstance(self.params, tuple):
            self.params = list(self.params)

    @classmethod
    def decode(cls, value: Value) -> Request:
        """
        Decode a generic MessagePack value into a Request.

        Args:
            value: Any value, typically one message read from the stream.

        Returns:
            The decoded Request.

        Raises:
            TypeMismatchError: If the value is not an array, or a field has
                the wrong type.
            InvalidLengthError: If the array does not have four elements.
            InvalidMessageTypeError: If the type tag is not 0.

        Example:
            >>> Request.decode([0, 42, "foo", [1, 2, 3]])
            Request(msgid=42, method='foo', params=[1, 2, 3])
        """
        if not is_array(value):
            raise TypeMismatchError(
                message=f"Request must be an array, got {type(value).__name__}",
                details={"type": type(value).__name__},
            )

        if len(value) != REQUEST_LENGTH:
            raise InvalidLengthError(
                message=(
                    f"Request must have {REQUEST_LENGTH} elements, "
                    f"got {len(value)}"
                ),
                details={"length": len(value)},
            )

        for position, item in enumerate(value):
            _check_field(position, item)

        message_type, msgid, method, params = value

        if message_type != MessageType.REQUEST:
            raise InvalidMessageTypeError(
                message=(
                    f"Expected message type {int(MessageType.REQUEST)} (request), "
                    f"got {message_type}"
                ),
                details={"message_type": message_type},
            )

        return cls(msgid=msgid, method=method, params=params)


@dataclass
class Response:
    """
    A MessagePack-RPC response.

    By convention exactly one of ``error`` and ``result`` is meaningful and
    the other is None (nil on the wire).

    Attributes:
        msgid: Identifier copied from the originating request.
        error: Error value, or None if the call succeeded.
        result: Result value, or None if the call failed.
    """

    msgid: int
    error: Value = None
    result: Value = None

    def encode(self) -> list[Any]:
        """
        Encode the response as a generic MessagePack array.

        Returns:
            ``[1, msgid, error, result]``.

        Example:
            >>> Response(msgid=7, result="pong").encode()
            [1, 7, None, 'pong']
        """
        return [int(MessageType.RESPONSE), self.msgid, self.error, self.result]


# =============================================================================
# Response Formatting
# =============================================================================


def format_success_response(msgid: int, result: Value) -> Response:
    """
    Format a successful response.

    Args:
        msgid: The request ID to include in the response.
        result: The result value returned by the handler.

    Returns:
        Response with ``error`` set to None.
    """
    return Response(msgid=msgid, error=None, result=result)


def format_error_response(msgid: int, error: Value) -> Response:
    """
    Format an error response.

    Args:
        msgid: The request ID to include in the response.
        error: The error value reported by the handler.

    Returns:
        Response with ``result`` set to None.
    """
    return Response(msgid=msgid, error=error, result=None)
