"""Point-to-point TCP connections exchanging length-prefixed messages."""

from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

logger = logging.getLogger(__name__)

_LENGTH = struct.Struct(">I")
_CONNECT_TIMEOUT_S = 10.0


class TcpError(ConnectionError):
    """Raised when a TCP connection cannot be made or used."""


class TcpMode(Enum):
    """Whether the endpoint dials out or waits for a peer."""

    CLIENT = "client"
    SERVER = "server"


_DEFAULT_HOSTS = {TcpMode.CLIENT: "localhost", TcpMode.SERVER: "0.0.0.0"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _param(
    parameters: Mapping[str, Any], key: str, default: Any, accepts: Callable[[Any], bool]
) -> Any:
    value = parameters.get(key, default)
    return value if accepts(value) else default


@dataclass
class TcpConfig:
    """Settings of a TCP endpoint."""

    mode: TcpMode = TcpMode.CLIENT
    host: str = "localhost"
    port: int = 8080
    reconnect: bool = True
    reconnect_interval_ms: int = 5000

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]]) -> "TcpConfig":
        """Build a configuration from stage parameters, filling in defaults.

        Raises ``ValueError`` for a mode other than ``client`` or ``server``.
        """
        params = parameters or {}
        mode_text = _param(params, "mode", "client", lambda v: isinstance(v, str))
        try:
            mode = TcpMode(mode_text)
        except ValueError:
            raise ValueError(
                f"Invalid TCP mode: {mode_text}. Must be 'client' or 'server'"
            ) from None

        return cls(
            mode=mode,
            host=_param(params, "host", _DEFAULT_HOSTS[mode], lambda v: isinstance(v, str)),
            port=_param(params, "port", 8080, lambda v: _is_int(v) and 0 <= v <= 0xFFFF),
            reconnect=_param(params, "reconnect", True, lambda v: isinstance(v, bool)),
            reconnect_interval_ms=_param(
                params, "reconnect_interval_ms", 5000, lambda v: _is_int(v) and v >= 0
            ),
        )

    def validate(self) -> None:
        """Raise ``ValueError`` if the host is empty or the port is zero."""
        if not self.host:
            raise ValueError("TCP host cannot be empty")
        if self.port == 0:
            raise ValueError("TCP port must be greater than 0")


class TcpConnection:
    """A single TCP stream, opened on demand as client or server."""

    def __init__(self, name: str, config: TcpConfig) -> None:
        self.name = name
        self.config = config
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    def is_connected(self) -> bool:
        return self._writer is not None

    async def ensure_connection(self) -> None:
        """Connect (client) or wait for one peer (server) unless already connected."""
        if self.is_connected():
            return
        if self.config.mode is TcpMode.CLIENT:
            await self._connect_client()
        else:
            await self._wait_for_client()

    async def _connect_client(self) -> None:
        host, port = self.config.host, self.config.port
        logger.info("%s: Attempting to connect to TCP server at %s:%s", self.name, host, port)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=_CONNECT_TIMEOUT_S
            )
        except asyncio.TimeoutError as exc:
            logger.error("%s: Connection to TCP server at %s:%s timed out", self.name, host, port)
            raise TcpError("Connection timeout") from exc
        except OSError as exc:
            logger.error(
                "%s: Failed to connect to TCP server at %s:%s - %s", self.name, host, port, exc
            )
            raise TcpError(f"Failed to connect to TCP server: {exc}") from exc
        self._reader, self._writer = reader, writer
        logger.info("%s: Connected to TCP server at %s:%s", self.name, host, port)

    async def _wait_for_client(self) -> None:
        host, port = self.config.host, self.config.port
        accepted: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            if accepted.done():
                writer.close()
                return
            accepted.set_result((reader, writer))

        try:
            server = await asyncio.start_server(on_connect, host, port)
        except OSError as exc:
            raise TcpError(f"Failed to listen on {host}:{port}: {exc}") from exc
        logger.info("%s: TCP server listening on %s:%s", self.name, host, port)

        try:
            reader, writer = await accepted
        finally:
            server.close()

        self._reader, self._writer = reader, writer
        logger.info(
            "%s: Accepted TCP connection from %s", self.name, writer.get_extra_info("peername")
        )

    def disconnect(self) -> None:
        """Close the stream, if any."""
        if self._writer is not None:
            self._writer.close()
        self._reader = None
        self._writer = None

    async def send_message(self, message: bytes) -> None:
        """Send ``message`` preceded by its length as a 4-byte big-endian integer."""
        if self._writer is None:
            raise TcpError("No TCP connection available")
        if len(message) > 0xFFFFFFFF:
            raise TcpError(f"Message of {len(message)} bytes is too long to frame")
        try:
            self._writer.write(_LENGTH.pack(len(message)) + bytes(message))
            await self._writer.drain()
        except OSError as exc:
            raise TcpError(f"Failed to send message: {exc}") from exc

    async def receive_message(self) -> bytes:
        """Read one length-prefixed message and return its body."""
        if self._reader is None:
            raise TcpError("No TCP connection available")
        try:
            header = await self._reader.readexactly(_LENGTH.size)
            (length,) = _LENGTH.unpack(header)
            logger.debug("%s: Expecting message of length: %d", self.name, length)
            return await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as exc:
            raise TcpError("Connection closed while reading message") from exc
        except OSError as exc:
            raise TcpError(f"Failed to receive message: {exc}") from exc

    def should_reconnect(self) -> bool:
        return self.config.reconnect

    def reconnect_interval(self) -> int:
        """Milliseconds to wait before reconnecting."""
        return self.config.reconnect_interval_ms