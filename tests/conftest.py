"""
Pytest configuration for the MessagePack-RPC endpoint tests.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Iterator
from typing import Any

import msgpack
import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


class DuplexStream:
    """In-memory bidirectional byte stream.

    Reads come from a fixed input buffer; writes are collected separately.
    """

    def __init__(self, incoming: bytes = b"") -> None:
        self.incoming = io.BytesIO(incoming)
        self.outgoing = io.BytesIO()
        self.flushes = 0

    def read1(self, size: int = -1) -> bytes:
        return self.incoming.read1(size)

    def write(self, data: bytes | memoryview) -> int:
        return self.outgoing.write(data)

    def flush(self) -> None:
        self.flushes += 1

    @property
    def written(self) -> bytes:
        return self.outgoing.getvalue()

    def responses(self) -> list[Any]:
        """Decode every value written to the stream."""
        return unpack_all(self.written)


def pack(*values: Any) -> bytes:
    """Encode values back to back, as a client would send them."""
    return b"".join(msgpack.packb(value, use_bin_type=True) for value in values)


def unpack_all(data: bytes) -> list[Any]:
    """Decode all values from a byte string."""
    unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
    unpacker.feed(data)
    return list(unpacker)


@pytest.fixture
def make_stream() -> Callable[..., DuplexStream]:
    """Factory for duplex streams preloaded with encoded values."""

    def _make(*values: Any, raw: bytes | None = None) -> DuplexStream:
        return DuplexStream(raw if raw is not None else pack(*values))

    return _make


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Undo setup_logging() changes between tests (autouse fixture)."""
    yield
    logger = logging.getLogger("msgpack_rpc")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
