"""TOML-based configuration for framed readers.

Provides ``load_config`` / ``discover_config`` for loading
``tcpsub.toml`` into a frozen ``ReaderConfig``.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, get_args

from tcpsub.serialization import SerializerKind

__all__ = [
    "CONFIG_FILENAME",
    "ReaderConfig",
    "discover_config",
    "load_config",
]

logger = logging.getLogger("tcpsub.config")

CONFIG_FILENAME = "tcpsub.toml"


@dataclass(frozen=True)
class ReaderConfig:
    """Connection and decoding settings for a ``FramedReader``.

    Parameters
    ----------
    host : str
        Publisher address. Wildcard addresses mean this machine.
    port : int
        Publisher port.
    connect_timeout : float | None
        Seconds to wait for the connection. ``None`` blocks until the
        operating system gives up. Reads never time out.
    serializer : SerializerKind
        Codec for decoded reads: ``"json"`` or ``"msgpack"``.

    Examples
    --------
    >>> ReaderConfig(port=7000, serializer="msgpack")
    ReaderConfig(host='127.0.0.1', port=7000, connect_timeout=None, serializer='msgpack')
    """

    host: str = "127.0.0.1"
    port: int = 9000
    connect_timeout: float | None = None
    serializer: SerializerKind = "json"

    def __post_init__(self) -> None:
        if self.serializer not in get_args(SerializerKind.__value__):
            msg = f"Unknown serializer: {self.serializer!r}"
            raise ValueError(msg)


def discover_config(start: Path | None = None) -> Path | None:
    """Find the ``tcpsub.toml`` closest to *start*.

    The subscriber's own directory (default: cwd) is checked first, then
    each parent up to the filesystem root, so a host application can keep
    one reader config at its project root.

    Examples
    --------
    >>> discover_config(Path("/srv/feed/worker"))  # doctest: +SKIP
    PosixPath('/srv/feed/tcpsub.toml')
    """
    base = (start or Path.cwd()).resolve()
    for directory in (base, *base.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> ReaderConfig:
    """Load a ``ReaderConfig`` from the ``[reader]`` table of a TOML file.

    If *path* is ``None``, auto-discovers ``tcpsub.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If the file names an unknown serializer.

    Examples
    --------
    >>> config = load_config()
    >>> config = load_config(Path("tcpsub.toml"))
    >>> config.serializer
    'json'
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return ReaderConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    reader_raw: dict[str, Any] = raw.get("reader", {})
    logger.debug("Loaded reader config from %s", path)
    return ReaderConfig(**reader_raw)
