"""
Value model for the MessagePack-RPC endpoint.

Generic MessagePack values are represented by the native Python objects
produced by the ``msgpack`` library:

- nil -> ``None``
- boolean -> ``bool``
- integer (signed or unsigned) -> ``int``
- float -> ``float``
- string -> ``str``
- binary -> ``bytes``
- array -> ``list``
- map -> ``dict``
- extension -> ``msgpack.ExtType`` / ``msgpack.Timestamp``

The codec only inspects integers, strings and arrays; everything else is
passed through untouched.

Maps decode into a plain ``dict``, so a repeated key keeps its last value
and keys that compare equal in Python (``1``, ``1.0`` and ``True``) share one
entry. An array or map used as a map key cannot be hashed; the stream reports
such a message as a ``TransportError``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, TypeAlias

Value: TypeAlias = Any


class MessageType(IntEnum):
    """MessagePack-RPC message type tags."""

    REQUEST = 0
    RESPONSE = 1
    NOTIFICATION = 2


def is_integer(value: Value) -> bool:
    """
    Check whether a value is a MessagePack integer.

    Python ints carry no signedness, so a zero decoded from a uint64 and a
    zero decoded from an int64 are the same value here. Booleans are a
    separate MessagePack type and are rejected.
    """
    return isinstance(value, int) and not isinstance(value, bool)


def is_string(value: Value) -> bool:
    """Check whether a value is a MessagePack string."""
    return isinstance(value, str)


def is_array(value: Value) -> bool:
    """Check whether a value is a MessagePack array."""
    return isinstance(value, (list, tuple))
