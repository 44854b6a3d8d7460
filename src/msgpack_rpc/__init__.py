"""
MessagePack-RPC endpoint.

This package decodes MessagePack-RPC requests from a byte stream, dispatches
them to an application-supplied handler, and writes the responses back.
"""

from msgpack_rpc.errors import (
    ConnectionClosed,
    HandlerError,
    InvalidLengthError,
    InvalidMessageTypeError,
    RequestDecodeError,
    TransportError,
    TypeMismatchError,
)
from msgpack_rpc.protocol import Request, Response
from msgpack_rpc.server import (
    CycleOutcome,
    CycleState,
    ErrorPolicy,
    Handler,
    Server,
    create_server,
)
from msgpack_rpc.stream import MessageStream

__version__ = "0.1.0"

__all__ = [
    "ConnectionClosed",
    "CycleOutcome",
    "CycleState",
    "ErrorPolicy",
    "Handler",
    "HandlerError",
    "InvalidLengthError",
    "InvalidMessageTypeError",
    "MessageStream",
    "Request",
    "RequestDecodeError",
    "Response",
    "Server",
    "TransportError",
    "TypeMismatchError",
    "create_server",
]
