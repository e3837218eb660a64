"""Message router: turns transport events into registry effects and sends.

Every transport event enters through :meth:`MessageRouter.handle`.  Text
frames are classified by :func:`parse_message` and dispatched to one
handler per command type:

- ``register:<name>``        → map the name, announce the join to everyone
- ``private:<target>:<body>`` → deliver to one user, confirm to the sender
- anything else              → broadcast verbatim

The router never raises on client input.  Each outbound frame is sent
as its own task: a failed send to one connection is logged and skipped,
and a slow one is left running in the background once ``send_timeout``
has passed, so neither affects other recipients.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

import websockets

from chatrelay.engine.registry import ConnectionRegistry
from chatrelay.models.messages import (
    BroadcastCommand,
    ChatCommand,
    DISCONNECT_NOTICE,
    PrivateCommand,
    RegisterCommand,
    UNKNOWN_SENDER,
    delivery_confirmation,
    joined_notice,
    parse_message,
    private_delivery,
    target_not_found,
)
from chatrelay.util.events import (
    ConnectionClosed,
    ConnectionFailed,
    ConnectionOpened,
    MessageReceived,
    TransportEvent,
)

log = logging.getLogger(__name__)

# Handler signature: async (command, sender_connection) -> None
Handler = Callable[[Any, Any], Awaitable[None]]

# Errors that mean "this one recipient is gone" rather than a relay fault
SEND_ERRORS = (websockets.ConnectionClosed, OSError)


class MessageRouter:
    """Routes chat traffic between connections.

    Args:
        registry: The shared connection registry.
        announce_disconnects: Broadcast a notice when a connection closes.
        send_timeout: Seconds to wait for a batch of sends before moving on.
            Sends still pending after that keep running in the background.
    """

    def __init__(self, registry: ConnectionRegistry, announce_disconnects: bool = True,
                 send_timeout: float = 0.5) -> None:
        self._registry = registry
        self._announce_disconnects = announce_disconnects
        self._send_timeout = send_timeout
        self._background: set[asyncio.Task] = set()
        self._handlers: dict[str, Handler] = {
            "register": self._on_register,
            "private": self._on_private,
            "broadcast": self._on_broadcast,
        }

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    # -- Entry point -----------------------------------------------------

    async def handle(self, event: TransportEvent) -> None:
        """Consume a single transport event."""
        if isinstance(event, MessageReceived):
            await self.route(event.connection, event.text)
        elif isinstance(event, ConnectionOpened):
            self._registry.add_connection(event.connection)
            log.info("Connection opened: %s", _remote(event.connection))
        elif isinstance(event, ConnectionClosed):
            self._registry.remove_connection(event.connection)
            log.info("Connection closed: %s code=%s", _remote(event.connection), event.code)
            if self._announce_disconnects:
                await self.broadcast(DISCONNECT_NOTICE)
        elif isinstance(event, ConnectionFailed):
            self._registry.remove_connection(event.connection)
            log.warning("Connection error: %s cause=%s", _remote(event.connection), event.cause)
        else:
            log.debug("Ignoring unknown event: %r", event)

    async def route(self, connection: Any, text: str) -> ChatCommand:
        """Classify one text frame and carry out its effects.

        Returns:
            The parsed command, for inspection by callers.
        """
        log.debug("Received message: %s", text)
        command = parse_message(text)
        await self._handlers[command.type](command, connection)
        return command

    # -- Sending ---------------------------------------------------------

    async def send(self, connection: Any, text: str) -> bool:
        """Send *text* to one connection.

        Returns True if the frame was handed to the transport, False if
        the connection was already gone.
        """
        try:
            await connection.send(text)
            return True
        except SEND_ERRORS as exc:
            log.debug("send to %s failed: %s", _remote(connection), exc)
            return False

    async def broadcast(self, text: str) -> int:
        """Send *text* to every open connection.

        Returns the number of connections that received it within
        ``send_timeout``.
        """
        return await self._deliver((conn, text) for conn in self._registry.all_connections())

    async def _deliver(self, frames: Iterable[tuple[Any, str]]) -> int:
        """Send each ``(connection, text)`` pair independently.

        Returns the number of sends that completed successfully in time.
        """
        tasks = [asyncio.ensure_future(self.send(conn, text)) for conn, text in frames]
        if not tasks:
            return 0
        done, pending = await asyncio.wait(tasks, timeout=self._send_timeout)
        for task in pending:
            self._background.add(task)
            task.add_done_callback(self._forget)
        if pending:
            log.debug("%d send(s) still pending after %.2f s", len(pending), self._send_timeout)
        return sum(1 for task in done if task.result())

    def _forget(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Background send failed", exc_info=task.exception())

    @property
    def pending_sends(self) -> int:
        return len(self._background)

    async def close(self) -> None:
        """Cancel sends still running in the background."""
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._background.difference_update(tasks)
            log.info("Cancelled %d pending send(s)", len(tasks))

    # -- Command handlers ------------------------------------------------

    async def _on_register(self, command: RegisterCommand, connection: Any) -> None:
        if not self._registry.register(command.username, connection):
            return
        log.info("User registered: %r (%s)", command.username, _remote(connection))
        await self.broadcast(joined_notice(command.username))

    async def _on_private(self, command: PrivateCommand, connection: Any) -> None:
        target_conn = self._registry.lookup_by_username(command.target)
        if target_conn is None:
            await self.send(connection, target_not_found(command.target))
            return

        sender = self._registry.lookup_username(connection) or UNKNOWN_SENDER
        await self._deliver([
            (target_conn, private_delivery(sender, command.body)),
            (connection, delivery_confirmation(command.target)),
        ])

    async def _on_broadcast(self, command: BroadcastCommand, connection: Any) -> None:
        await self.broadcast(command.text)


def _remote(connection: Any) -> Optional[Any]:
    return getattr(connection, "remote_address", None)
