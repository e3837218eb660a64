"""WebSocket server: the transport adapter in front of the router.

Accepts WebSocket connections and turns each connection's lifecycle into
transport events (opened, message, closed, failed) for the router.
Uses the ``websockets`` library with asyncio.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, TYPE_CHECKING

import websockets
from websockets.asyncio.server import ServerConnection, Server as WSServer

from chatrelay.util.errors import RelayStartupError
from chatrelay.util.events import (
    ConnectionClosed,
    ConnectionFailed,
    ConnectionOpened,
    MessageReceived,
    TransportEvent,
)

if TYPE_CHECKING:
    from chatrelay.network.router import MessageRouter

log = logging.getLogger(__name__)


class Server:
    """asyncio WebSocket server feeding a :class:`MessageRouter`.

    Each connected client goes through:
    1. WebSocket handshake → ``ConnectionOpened``
    2. One ``MessageReceived`` per text frame
    3. ``ConnectionClosed`` on close, or ``ConnectionFailed`` on any
       other error

    Args:
        router: Router that consumes the transport events.
        host: Bind address.
        port: Bind port (0 picks a free port).
        bind_retries: Attempts before giving up on binding.
        bind_retry_delay: Seconds between bind attempts.
    """

    def __init__(self, router: MessageRouter, host: str = "0.0.0.0", port: int = 8887,
                 ping_interval: int = 30, ping_timeout: int = 10,
                 max_size: int = 1_048_576,
                 bind_retries: int = 3, bind_retry_delay: float = 2.0) -> None:
        self._router = router
        self._host = host
        self._port = port
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._max_size = max_size
        self._bind_retries = max(1, bind_retries)
        self._bind_retry_delay = bind_retry_delay
        self._server: Optional[WSServer] = None

    # -- Lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Bind the listening socket, retrying on failure.

        Raises:
            RelayStartupError: if every attempt failed.
        """
        for attempt in range(1, self._bind_retries + 1):
            try:
                self._server = await websockets.serve(
                    self._on_connect,
                    self._host,
                    self._port,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                    max_size=self._max_size,
                )
            except OSError as exc:
                if attempt >= self._bind_retries:
                    log.error("Failed to start relay after %d attempts: %s", attempt, exc)
                    raise RelayStartupError(self._host, self._port, attempt) from exc
                log.warning(
                    "Failed to bind %s:%d (%s), retrying in %.1f s …",
                    self._host, self._port, exc, self._bind_retry_delay,
                )
                await asyncio.sleep(self._bind_retry_delay)
            else:
                break
        log.info("Chat relay listening on ws://%s:%d", self._host, self.port)

    async def stop(self) -> None:
        """Stop the server and close all connections."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            log.info("Chat relay stopped")

    @property
    def port(self) -> int:
        """The bound port (resolves ``port=0`` once started)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return sock.getsockname()[1]
        return self._port

    @property
    def host(self) -> str:
        return self._host

    # -- Connection handler ----------------------------------------------

    async def _on_connect(self, ws: ServerConnection) -> None:
        """Drive one connection from handshake to close."""
        await self._router.handle(ConnectionOpened(ws))
        final: Optional[TransportEvent] = None
        try:
            async for raw_msg in ws:
                text = self._decode(raw_msg)
                if text is not None:
                    await self._router.handle(MessageReceived(ws, text))
        except websockets.ConnectionClosed as e:
            code = e.rcvd.code if e.rcvd is not None else None
            reason = e.rcvd.reason if e.rcvd is not None else ""
            final = ConnectionClosed(ws, code, reason)
        except Exception as e:
            log.error("Client connection error: remote=%s error=%s", ws.remote_address, e)
            final = ConnectionFailed(ws, e)
        else:
            # async for exited normally = clean close
            final = ConnectionClosed(ws, ws.close_code, ws.close_reason or "")
        finally:
            if final is None:
                # Cancelled during shutdown; still keep the registry clean
                self._router.registry.remove_connection(ws)
        await self._router.handle(final)

    @staticmethod
    def _decode(raw_msg: Any) -> Optional[str]:
        if isinstance(raw_msg, bytes):
            try:
                return raw_msg.decode("utf-8")
            except UnicodeDecodeError:
                log.warning("Dropping binary frame that is not valid UTF-8")
                return None
        return raw_msg
