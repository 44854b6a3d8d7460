"""
MessagePack value stream over a blocking byte stream.

This module binds the generic ``msgpack`` encoder/decoder to a bidirectional
byte stream (a socket file, a pipe, stdin/stdout buffers, ``io.BytesIO``...).
It reads exactly one value at a time and writes one value at a time; the
stream itself carries no framing beyond what MessagePack provides.

Bytes received past the end of one message stay buffered for the next
``read_value`` call, so a client that pipelines requests loses nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO

import msgpack

from msgpack_rpc.errors import ConnectionClosed, TransportError
from msgpack_rpc.logging import get_logger
from msgpack_rpc.values import Value

if TYPE_CHECKING:
    from msgpack_rpc.config import ServerConfig

logger = get_logger(__name__)

DEFAULT_READ_SIZE = 64 * 1024

# Upper bound on bytes buffered for a single message (100 MiB)
DEFAULT_MAX_BUFFER_SIZE = 100 * 1024 * 1024


class MessageStream:
    """
    Reads and writes MessagePack values on a blocking byte stream.

    The wrapped object needs ``read`` (or ``read1``) and ``write``; ``flush``
    is called after each write when present. ``read1`` is preferred because a
    buffered ``read(n)`` blocks until ``n`` bytes arrive, which would stall a
    request/response exchange.

    Attributes:
        stream: The wrapped byte stream.

    Example:
        >>> import io
        >>> stream = MessageStream(io.BytesIO(msgpack.packb([0, 1, "ping", []])))
        >>> stream.read_value()
        [0, 1, 'ping', []]
    """

    def __init__(
        self,
        stream: BinaryIO | Any,
        read_size: int = DEFAULT_READ_SIZE,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
    ) -> None:
        """
        Initialize the message stream.

        Args:
            stream: Blocking binary stream to read from and write to.
            read_size: Maximum number of bytes requested per read call.
            max_buffer_size: Maximum number of bytes buffered for one message.
        """
        self.stream = stream
        self._read = getattr(stream, "read1", None) or stream.read
        self._read_size = read_size
        self._unpacker = msgpack.Unpacker(
            raw=False,
            use_list=True,
            strict_map_key=False,
            max_buffer_size=max_buffer_size,
        )
        self._packer = msgpack.Packer(use_bin_type=True)
        self._bytes_fed = 0
        self._boundary = 0

    @classmethod
    def from_config(cls, stream: BinaryIO | Any, config: ServerConfig) -> MessageStream:
        """
        Create a message stream from server configuration.

        Args:
            stream: Blocking binary stream.
            config: Server configuration from AppConfig.

        Returns:
            Configured MessageStream instance.
        """
        return cls(
            stream,
            read_size=config.read_size,
            max_buffer_size=config.max_buffer_size,
        )

    @property
    def has_pending_data(self) -> bool:
        """Check if bytes of a not yet decoded message are buffered."""
        return self._bytes_fed > self._boundary

    def read_value(self) -> Value:
        """
        Read exactly one MessagePack value, blocking until it is complete.

        Returns:
            The decoded value.

        Raises:
            ConnectionClosed: If the stream ends cleanly between messages.
            TransportError: If reading fails, the stream ends mid-message, or
                the bytes are not valid MessagePack.
        """
        while True:
            try:
                value = self._unpacker.unpack()
            except msgpack.OutOfData:
                self._fill()
                continue
            except (ValueError, TypeError) as e:
                # FormatError, StackError and UnicodeDecodeError are ValueErrors;
                # array or map keys in a map raise TypeError (unhashable)
                raise TransportError(
                    f"Invalid MessagePack data: {e}", cause=e
                ) from e

            self._boundary = self._unpacker.tell()
            return value

    def write_value(self, value: Value) -> None:
        """
        Encode one value and write it fully to the stream.

        Args:
            value: Any MessagePack-serializable value.

        Raises:
            TransportError: If the value cannot be encoded or writing fails.
        """
        try:
            data = self._packer.pack(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise TransportError(f"Cannot encode value: {e}", cause=e) from e

        try:
            view = memoryview(data)
            while view:
                written = self.stream.write(view)
                if not written:
                    raise TransportError("Stream accepted no bytes")
                view = view[written:]

            flush = getattr(self.stream, "flush", None)
            if flush is not None:
                flush()
        except OSError as e:
            raise TransportError(f"Write failed: {e}", cause=e) from e

        logger.debug("Value written", extra={"size": len(data)})

    def _fill(self) -> None:
        """Read one chunk from the stream into the unpacker."""
        try:
            chunk = self._read(self._read_size)
        except OSError as e:
            raise TransportError(f"Read failed: {e}", cause=e) from e

        if not chunk:
            if self.has_pending_data:
                raise TransportError(
                    "Stream ended in the middle of a message",
                )
            raise ConnectionClosed("Stream closed by peer")

        try:
            self._unpacker.feed(chunk)
        except msgpack.BufferFull as e:
            raise TransportError(
                "Message exceeds the maximum buffer size", cause=e
            ) from e

        self._bytes_fed += len(chunk)
