"""Shared socket fixtures for tcpsub tests."""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from tcpsub import FramedReader


@pytest.fixture
def listener() -> Iterator[socket.socket]:
    """A loopback socket listening on an OS-assigned port."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server
    server.close()


@pytest.fixture
def port(listener: socket.socket) -> int:
    return listener.getsockname()[1]


@pytest.fixture
def connection(
    listener: socket.socket, port: int
) -> Iterator[tuple[FramedReader, socket.socket]]:
    """A connected ``(reader, peer)`` pair; the peer plays the publisher."""
    reader = FramedReader("127.0.0.1", port)
    peer, _ = listener.accept()
    yield reader, peer
    reader.close()
    peer.close()

