"""TOML-based configuration for OSC sockets.

Provides ``load_config`` / ``discover_config`` for loading ``asyncosc.toml``
and the frozen dataclasses the socket layer reads its settings from.

Example ``asyncosc.toml``::

    [socket]
    max_datagram_size = 8192
    reject_truncated = true
    reuse_address = false
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_MAX_DATAGRAM_SIZE",
    "OscConfig",
    "SocketConfig",
    "discover_config",
    "load_config",
]

logger = logging.getLogger("asyncosc.config")

CONFIG_FILENAME: str = "asyncosc.toml"

# Practical maximum UDP payload.
DEFAULT_MAX_DATAGRAM_SIZE: int = 64 * 1024


@dataclass(frozen=True)
class SocketConfig:
    """Receive and bind settings for ``OscSocket``.

    Parameters
    ----------
    max_datagram_size : int
        Capacity of the receive buffer in bytes. Larger datagrams are
        truncated by the OS.
    reject_truncated : bool
        When ``True``, a truncated datagram is reported as
        ``DecodeFailed(TruncatedDatagramError)``. When ``False`` the
        truncated bytes are decoded anyway and a warning is logged.
    reuse_address : bool
        Set ``SO_REUSEADDR`` before binding.

    Examples
    --------
    >>> SocketConfig(max_datagram_size=1500)
    SocketConfig(max_datagram_size=1500, reject_truncated=True, reuse_address=False)
    """

    max_datagram_size: int = DEFAULT_MAX_DATAGRAM_SIZE
    reject_truncated: bool = True
    reuse_address: bool = False

    def __post_init__(self) -> None:
        if self.max_datagram_size <= 0:
            msg = f"max_datagram_size must be positive, got {self.max_datagram_size}"
            raise ValueError(msg)


@dataclass(frozen=True)
class OscConfig:
    """Top-level configuration container.

    Parameters
    ----------
    socket : SocketConfig
        Settings applied to every socket created with this config.

    Examples
    --------
    >>> OscConfig().socket.max_datagram_size
    65536
    """

    socket: SocketConfig = field(default_factory=SocketConfig)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``asyncosc.toml``.

    Parameters
    ----------
    start : Path | None
        Directory to start searching from.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> OscConfig:
    """Load an ``OscConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``asyncosc.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If a setting is invalid or unknown.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return OscConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    logger.debug("Loaded config from %s", path)
    socket_raw = raw.get("socket", {})
    known = {item.name for item in fields(SocketConfig)}
    unknown = sorted(set(socket_raw) - known)
    if unknown:
        msg = f"Unknown [socket] settings in {path}: {', '.join(unknown)}"
        raise ValueError(msg)
    return OscConfig(socket=SocketConfig(**socket_raw))
