"""Exception hierarchy for framed stream reads.

Every exception derives from ``TcpSubError`` and from the builtin a
caller would naturally catch for the same failure, so
``except ConnectionError`` or ``except EOFError`` keep working.
"""

from __future__ import annotations

__all__ = [
    "ConnectError",
    "DecodeError",
    "NotSerializableError",
    "ReaderClosedError",
    "StreamClosedError",
    "TcpSubError",
    "TransportError",
]


class TcpSubError(Exception):
    """Base class for all errors raised by ``tcpsub``."""


class ConnectError(TcpSubError, ConnectionError):
    """The reader could not connect to ``host:port``.

    Parameters
    ----------
    host : str
        Address the reader tried to reach.
    port : int
        Port the reader tried to reach.
    reason : str
        Human-readable cause, usually the underlying ``OSError`` text.

    Examples
    --------
    >>> err = ConnectError("127.0.0.1", 9000, "connection refused")
    >>> str(err)
    'cannot connect to 127.0.0.1:9000: connection refused'
    """

    def __init__(self, host: str, port: int, reason: str) -> None:
        super().__init__(f"cannot connect to {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class StreamClosedError(TcpSubError, EOFError):
    """The peer closed the connection before a read completed.

    Parameters
    ----------
    expected : int
        Number of bytes the read asked for.
    received : int
        Number of bytes that arrived before the connection closed.
    """

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"connection closed after {received} of {expected} bytes"
        )
        self.expected = expected
        self.received = received


class TransportError(TcpSubError, OSError):
    """A lower-level socket fault interrupted a read."""


class NotSerializableError(TcpSubError, TypeError):
    """The requested type cannot be produced by the configured serializer."""

    def __init__(self, cls: type) -> None:
        name = getattr(cls, "__qualname__", repr(cls))
        super().__init__(f"type {name} is not serializable")
        self.cls = cls


class DecodeError(TcpSubError, ValueError):
    """A payload does not match the structure of the requested type."""


class ReaderClosedError(TcpSubError, ValueError):
    """An operation was attempted on a closed reader."""

    def __init__(self) -> None:
        super().__init__("I/O operation on closed reader")
