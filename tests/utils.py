"""Test utilities for tcpsub tests."""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable


def wait_until(
    condition: Callable[[], bool],
    *,
    timeout: float = 2.0,
    interval: float = 0.01,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until a condition is met, with timeout.

    Args:
        condition: A callable that returns True when the condition is met
        timeout: Maximum time to wait in seconds
        interval: Time between checks in seconds
        message: Error message if timeout is reached

    Raises:
        TimeoutError: If condition is not met within timeout

    Example:
        wait_until(lambda: reader.available == 16, message="bytes not delivered")
    """
    start = time.time()
    while time.time() - start < timeout:
        if condition():
            return
        time.sleep(interval)
    raise TimeoutError(message)


def send_in_background(
    peer: socket.socket, data: bytes, *, delay: float = 0.0
) -> threading.Thread:
    """Send from a thread so large writes cannot deadlock against the reader."""

    def run() -> None:
        if delay:
            time.sleep(delay)
        peer.sendall(data)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread
