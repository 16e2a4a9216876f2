"""Subscriber-side reader for length-prefixed TCP streams.

``FramedReader`` owns one connected socket and reads frames from it
either blocking the calling thread or suspending the calling coroutine.
Both conventions drive the same read plans from ``tcpsub.framing``.

Wire protocol: ``[length:2][payload]``, little-endian length. See
``read_exact`` for streams whose frame sizes are known out of band.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import TYPE_CHECKING, Any, NoReturn, Self

from tcpsub.errors import (
    ConnectError,
    DecodeError,
    NotSerializableError,
    ReaderClosedError,
    StreamClosedError,
    TcpSubError,
    TransportError,
)
from tcpsub.framing import exact_plan, frame_plan
from tcpsub.serialization import JsonSerializer, Serializer, get_serializer

if TYPE_CHECKING:
    from tcpsub.config import ReaderConfig
    from tcpsub.framing import ReadPlan

__all__ = ["FramedReader", "connect"]

logger = logging.getLogger("tcpsub.reader")

# Wildcard bind addresses mean "this machine" when used as a connect target.
_LOOPBACK_FOR: dict[str, str] = {
    "": "127.0.0.1",
    "0.0.0.0": "127.0.0.1",
    "::": "::1",
}

_PEEK_LIMIT = 256 * 1024


class FramedReader:
    """Read discrete frames from a connected TCP stream.

    The constructor connects synchronously. Every read has a blocking
    form and an ``async`` form with the same semantics. At most one read
    may be outstanding at a time; concurrent reads interleave bytes and
    corrupt frame boundaries.

    Parameters
    ----------
    address : str
        Host name or IP address of the publisher. ``""``, ``"0.0.0.0"``
        and ``"::"`` connect to the local machine.
    port : int
        Publisher port.
    serializer : Serializer | None
        Codec for ``read_decoded``. Defaults to ``JsonSerializer``.
    connect_timeout : float | None
        Seconds to wait for the connection to be established.

    Raises
    ------
    ConnectError
        If the publisher is unreachable, refuses the connection, or the
        address or port is invalid.

    Examples
    --------
    >>> with FramedReader("127.0.0.1", 9000) as reader:  # doctest: +SKIP
    ...     payload = reader.read_frame()
    ...     quote = reader.read_decoded(Quote)
    """

    def __init__(
        self,
        address: str,
        port: int,
        *,
        serializer: Serializer | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        self._serializer: Serializer = serializer or JsonSerializer()
        self._sock = _open_socket(address, port, connect_timeout)
        self._closed = False
        self._peer: tuple[Any, ...] = self._sock.getpeername()
        logger.debug("Connected to %s", self._peer)

    @classmethod
    def from_config(cls, config: ReaderConfig) -> Self:
        """Connect using the endpoint and codec from *config*."""
        return cls(
            config.host,
            config.port,
            serializer=get_serializer(config.serializer),
            connect_timeout=config.connect_timeout,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    @property
    def available(self) -> int:
        """Bytes already buffered locally that a read would not block on.

        Data still in flight is not counted.
        """
        self._ensure_open()
        with self._nonblocking():
            try:
                return len(self._sock.recv(_PEEK_LIMIT, socket.MSG_PEEK))
            except BlockingIOError:
                return 0
            except OSError as e:
                raise TransportError(f"probe of {self._peer} failed: {e}") from e

    # -- blocking reads ------------------------------------------------------

    def read_frame(self) -> bytes:
        """Read one frame: the 2-byte length header, then the payload.

        Raises
        ------
        StreamClosedError
            If the peer closes the connection mid-frame.
        TransportError
            On a socket fault.
        ReaderClosedError
            If the reader was closed.
        """
        return self._run(frame_plan())

    def read_exact(self, length: int) -> bytes:
        """Read exactly *length* bytes with no header.

        The peer must be sending exactly *length* unprefixed bytes next.
        """
        return self._run(exact_plan(length))

    def read_decoded[T](self, cls: type[T]) -> T:
        """Read one frame and decode it into an instance of *cls*.

        Raises
        ------
        NotSerializableError
            If the serializer cannot build *cls*. Nothing is read.
        DecodeError
            If the payload does not fit *cls*. The frame is consumed.
        """
        self._check_decodable(cls)
        return self._decode(self.read_frame(), cls)

    # -- async reads ---------------------------------------------------------

    async def read_frame_async(self) -> bytes:
        """Async form of ``read_frame``."""
        return await self._run_async(frame_plan())

    async def read_exact_async(self, length: int) -> bytes:
        """Async form of ``read_exact``."""
        return await self._run_async(exact_plan(length))

    async def read_decoded_async[T](self, cls: type[T]) -> T:
        """Async form of ``read_decoded``."""
        self._check_decodable(cls)
        return self._decode(await self.read_frame_async(), cls)

    # -- lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Release the socket. Later reads raise ``ReaderClosedError``."""
        if self._closed:
            return
        self._closed = True
        self._sock.close()
        logger.debug("Closed connection to %s", self._peer)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<FramedReader peer={self._peer!r} {state}>"

    # -- internals -----------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise ReaderClosedError()

    def _check_decodable(self, cls: type) -> None:
        if not self._serializer.supports(cls):
            raise NotSerializableError(cls)

    def _decode[T](self, data: bytes, cls: type[T]) -> T:
        try:
            return self._serializer.deserialize(data, cls)
        except DecodeError:
            raise
        except (TypeError, ValueError, RecursionError) as e:
            raise DecodeError(f"cannot decode {len(data)} bytes as {cls!r}: {e}") from e

    def _run[T](self, plan: ReadPlan[T]) -> T:
        self._ensure_open()
        try:
            size = next(plan)
            while True:
                size = plan.send(self._recv_exactly(size))
        except StopIteration as stop:
            return stop.value

    async def _run_async[T](self, plan: ReadPlan[T]) -> T:
        self._ensure_open()
        try:
            size = next(plan)
            with self._nonblocking():
                while True:
                    size = plan.send(await self._recv_exactly_async(size))
        except StopIteration as stop:
            return stop.value

    def _recv_exactly(self, size: int) -> bytes:
        buf = bytearray(size)
        view = memoryview(buf)
        received = 0
        while received < size:
            try:
                count = self._sock.recv_into(view[received:])
            except OSError as e:
                raise self._transport_error(e) from e
            if count == 0:
                self._on_peer_closed(size, received)
            received += count
        return bytes(buf)

    async def _recv_exactly_async(self, size: int) -> bytes:
        loop = asyncio.get_running_loop()
        buf = bytearray(size)
        view = memoryview(buf)
        received = 0
        while received < size:
            try:
                count = await loop.sock_recv_into(self._sock, view[received:])
            except OSError as e:
                raise self._transport_error(e) from e
            if count == 0:
                self._on_peer_closed(size, received)
            received += count
        return bytes(buf)

    def _on_peer_closed(self, expected: int, received: int) -> NoReturn:
        logger.debug(
            "Peer %s closed the connection after %d of %d bytes",
            self._peer, received, expected,
        )
        raise StreamClosedError(expected, received)

    def _transport_error(self, exc: OSError) -> TcpSubError:
        if self._closed:
            return ReaderClosedError()
        return TransportError(f"read from {self._peer} failed: {exc}")

    @contextmanager
    def _nonblocking(self) -> Iterator[None]:
        self._sock.setblocking(False)
        try:
            yield
        finally:
            if self._sock.fileno() != -1:
                self._sock.setblocking(True)


def _open_socket(address: str, port: int, timeout: float | None) -> socket.socket:
    host = _LOOPBACK_FOR.get(address, address)
    if not isinstance(port, int) or not 0 < port <= 0xFFFF:
        raise ConnectError(host, port, "port must be 1-65535")
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        logger.debug("Connection to %s:%s failed: %s", host, port, e)
        raise ConnectError(host, port, str(e)) from e
    # Reads block until data arrives; only the connect honours the timeout.
    sock.settimeout(None)
    return sock


def connect(
    address: str,
    port: int,
    *,
    serializer: Serializer | None = None,
    connect_timeout: float | None = None,
) -> FramedReader:
    """Connect to a publisher and return a ``FramedReader``.

    Examples
    --------
    >>> reader = connect("127.0.0.1", 9000)  # doctest: +SKIP
    >>> reader.read_frame()  # doctest: +SKIP
    b'HELLO'
    """
    return FramedReader(
        address, port, serializer=serializer, connect_timeout=connect_timeout
    )
