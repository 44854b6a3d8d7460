"""
Connection server for the MessagePack-RPC endpoint.

This module implements the Server class that owns one application handler
and serves one byte stream: read a request, dispatch it, write the response,
repeat. Everything is synchronous and strictly sequential; the next request
is not read until the previous response has been written.

Cycle States:
- CONTINUE: a response was written, the stream can serve the next request
- CLOSED: the peer closed the stream between two messages
- FAILED: decoding or the transport failed; no response was written
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, BinaryIO, Protocol

from msgpack_rpc.config import AppConfig, ServerConfig
from msgpack_rpc.errors import (
    ConnectionClosed,
    HandlerError,
    RequestDecodeError,
    TransportError,
)
from msgpack_rpc.logging import get_logger
from msgpack_rpc.protocol import (
    Request,
    Response,
    format_error_response,
    format_success_response,
)
from msgpack_rpc.stream import MessageStream
from msgpack_rpc.values import Value

logger = get_logger(__name__)


class Handler(Protocol):
    """
    Application capability that answers requests.

    Return the result value on success; raise ``HandlerError(value)`` to
    answer with an error value instead. The server calls ``request`` from a
    single thread, one request at a time, so implementations may keep
    mutable state without locking.
    """

    def request(self, method: str, params: list[Value]) -> Value:
        """Handle one request and return its result."""
        ...


class CycleState(str, Enum):
    """Outcome of one serve cycle."""

    CONTINUE = "continue"
    CLOSED = "closed"
    FAILED = "failed"


class ErrorPolicy(str, Enum):
    """What ``Server.serve`` does when a cycle fails."""

    RAISE = "raise"
    CLOSE = "close"
    SKIP = "skip"


@dataclass(frozen=True)
class CycleOutcome:
    """
    Result of ``Server.serve_one``.

    Attributes:
        state: The cycle state.
        stream: The stream to reuse for the next cycle (CONTINUE only).
        error: The error that ended the cycle (FAILED only).
    """

    state: CycleState
    stream: MessageStream | None = None
    error: RequestDecodeError | TransportError | None = None

    @classmethod
    def proceed(cls, stream: MessageStream) -> CycleOutcome:
        """Create a CONTINUE outcome."""
        return cls(state=CycleState.CONTINUE, stream=stream)

    @classmethod
    def closed(cls) -> CycleOutcome:
        """Create a CLOSED outcome."""
        return cls(state=CycleState.CLOSED)

    @classmethod
    def failed(cls, error: RequestDecodeError | TransportError) -> CycleOutcome:
        """Create a FAILED outcome."""
        return cls(state=CycleState.FAILED, error=error)


def dispatch(handler: Handler, request: Request) -> Response:
    """
    Invoke the handler for a request and build the response.

    ``HandlerError`` becomes an error response carrying its value. Any other
    exception escaping the handler is logged and answered with an internal
    error string, so a buggy handler does not take the connection down.

    Args:
        handler: The application handler.
        request: The decoded request.

    Returns:
        The response to send back.
    """
    start = time.monotonic()

    try:
        result = handler.request(request.method, request.params)
    except HandlerError as e:
        logger.info(
            "Handler returned an error",
            extra={"msgid": request.msgid, "method": request.method, "error": e.error},
        )
        return format_error_response(request.msgid, e.error)
    except Exception as e:
        logger.exception(
            "Unexpected error in handler",
            extra={"msgid": request.msgid, "method": request.method, "error": str(e)},
        )
        return format_error_response(
            request.msgid, f"Internal server error: {type(e).__name__}"
        )

    logger.debug(
        "Request handled",
        extra={
            "msgid": request.msgid,
            "method": request.method,
            "duration_ms": round((time.monotonic() - start) * 1000, 3),
        },
    )
    return format_success_response(request.msgid, result)


class Server:
    """
    Serves MessagePack-RPC requests from one byte stream.

    One Server owns exactly one handler for its whole lifetime; build one
    Server per connection.

    Example:
        >>> class Ping:
        ...     def request(self, method, params):
        ...         return "pong"
        >>> server = Server(Ping())
        >>> server.serve(sock.makefile("rwb", buffering=0))

    Attributes:
        handler: The application handler.
        config: Server settings.
    """

    def __init__(self, handler: Handler, config: ServerConfig | None = None) -> None:
        """
        Initialize the server.

        Args:
            handler: The application handler.
            config: Optional ServerConfig. Uses defaults if not provided.
        """
        self.handler = handler
        self.config = config if config is not None else ServerConfig()

    def connect(self, stream: BinaryIO | Any) -> MessageStream:
        """
        Wrap a raw byte stream for use with ``serve_one``.

        A MessageStream keeps bytes read past the current message, so the
        same wrapper must be reused for every cycle on a connection.

        Args:
            stream: Blocking binary stream, or an existing MessageStream.

        Returns:
            A MessageStream configured from this server's settings.
        """
        if isinstance(stream, MessageStream):
            return stream
        return MessageStream.from_config(stream, self.config)

    def serve_one(self, stream: MessageStream) -> CycleOutcome:
        """
        Perform one read, dispatch, write cycle.

        Decode failures end the cycle before the handler runs and nothing is
        written back.

        Args:
            stream: The connection's MessageStream.

        Returns:
            CONTINUE with the stream, CLOSED, or FAILED with the error.
        """
        try:
            value = stream.read_value()
        except ConnectionClosed:
            return CycleOutcome.closed()
        except TransportError as e:
            return CycleOutcome.failed(e)

        try:
            request = Request.decode(value)
        except RequestDecodeError as e:
            return CycleOutcome.failed(e)

        logger.debug(
            "Request received",
            extra={
                "msgid": request.msgid,
                "method": request.method,
                "params_count": len(request.params),
            },
        )

        response = dispatch(self.handler, request)

        try:
            stream.write_value(response.encode())
        except TransportError as e:
            return CycleOutcome.failed(e)

        return CycleOutcome.proceed(stream)

    def serve(
        self,
        stream: BinaryIO | Any,
        policy: ErrorPolicy | str | None = None,
    ) -> int:
        """
        Serve requests until the stream closes.

        On a failed cycle the error policy decides:
        - RAISE: re-raise the error to the caller
        - CLOSE: log the error and return
        - SKIP: log a decode error and read the next message; transport
          errors still return since the stream position is unknown

        Args:
            stream: Blocking binary stream, or a MessageStream.
            policy: Error policy. Defaults to the configured ``on_error``.

        Returns:
            Number of requests answered.

        Raises:
            RequestDecodeError: On a malformed request under RAISE.
            TransportError: On a stream failure under RAISE.
        """
        policy = ErrorPolicy(policy if policy is not None else self.config.on_error)
        message_stream = self.connect(stream)
        served = 0

        logger.info("Serving connection", extra={"policy": policy.value})

        while True:
            outcome = self.serve_one(message_stream)

            if outcome.state is CycleState.CONTINUE:
                served += 1
                continue

            if outcome.state is CycleState.CLOSED:
                logger.info("Connection closed by peer", extra={"served": served})
                return served

            error = outcome.error
            if isinstance(error, RequestDecodeError):
                logger.warning(
                    "Malformed request",
                    extra={
                        "policy": policy.value,
                        "error_code": error.error_code,
                        "error": error.message,
                        "details": error.details,
                    },
                )
            else:
                logger.error(
                    "Transport failure",
                    extra={"policy": policy.value, "error": str(error)},
                )

            if policy is ErrorPolicy.RAISE:
                raise error

            if policy is ErrorPolicy.SKIP and isinstance(error, RequestDecodeError):
                continue

            logger.info("Closing connection", extra={"served": served})
            return served


def create_server(handler: Handler, config: AppConfig | None = None) -> Server:
    """
    Create a Server for one connection.

    Args:
        handler: The application handler.
        config: Optional AppConfig; only its ``server`` section is used.

    Returns:
        Configured Server instance.
    """
    return Server(handler, config=config.server if config is not None else None)
