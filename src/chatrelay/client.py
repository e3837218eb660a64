"""Interactive command-line chat client.

Connects to the relay, registers the chosen username, prints every
incoming message and sends one message per input line.

Input syntax:
    @username message   send a private message
    quit                leave the chat
    anything else       broadcast as "<username>: <line>"

Usage:
    chatrelay-client --url ws://localhost:8887 --username alice
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.asyncio.client import ClientConnection, connect

from chatrelay.models.messages import PRIVATE_PREFIX, REGISTER_PREFIX

log = logging.getLogger(__name__)

DEFAULT_URL = "ws://localhost:8887"
QUIT_COMMAND = "quit"

HELP_TEXT = """
Commands:
  @username message - Send private message to user
  quit - Exit the chat
  Any other message will be broadcast to all users
"""

PRIVATE_USAGE = "Invalid private message format. Use: @username message"


class InvalidInput(ValueError):
    """An input line could not be turned into a frame."""


def compose_outbound(username: str, line: str) -> Optional[str]:
    """Translate one input line into the frame to send.

    Returns:
        The frame text, or None when the line means "quit".

    Raises:
        InvalidInput: for a malformed ``@username message`` line.
    """
    if line.lower() == QUIT_COMMAND:
        return None

    if line.startswith("@"):
        space = line.find(" ")
        if space <= 1:
            raise InvalidInput(PRIVATE_USAGE)
        return f"{PRIVATE_PREFIX}{line[1:space]}:{line[space + 1:]}"

    return f"{username}: {line}"


async def _print_incoming(ws: ClientConnection) -> None:
    try:
        async for message in ws:
            print(message if isinstance(message, str) else message.decode("utf-8", "replace"))
    except websockets.ConnectionClosed:
        pass
    print("Disconnected from server!")


async def send_lines(
    ws: Any,
    username: str,
    read_line: Callable[[], Awaitable[str]],
    reader: Optional[asyncio.Task] = None,
) -> None:
    """Read input lines and send them until quit, end of input or close.

    Args:
        ws: Open client connection.
        username: Registered name, used to prefix broadcasts.
        read_line: Coroutine function returning the next line ("" at EOF).
        reader: Incoming-message task; the loop stops once it finishes.
    """
    while reader is None or not reader.done():
        line = await read_line()
        if not line:
            return
        try:
            frame = compose_outbound(username, line.rstrip("\n"))
        except InvalidInput as exc:
            print(exc)
            continue
        if frame is None:
            return
        log.debug("Sending frame: %s", frame)
        try:
            await ws.send(frame)
        except websockets.ConnectionClosed:
            log.info("Server closed the connection")
            return


async def run_client(url: str, username: str) -> None:
    """Run the interactive loop until ``quit`` or end of input."""
    loop = asyncio.get_running_loop()

    async def read_line() -> str:
        return await loop.run_in_executor(None, sys.stdin.readline)

    async with connect(url) as ws:
        print("Connected to server!")
        await ws.send(f"{REGISTER_PREFIX}{username}")
        reader = asyncio.create_task(_print_incoming(ws))
        print(HELP_TEXT)
        try:
            await send_lines(ws, username, read_line, reader)
        finally:
            await ws.close()
            await reader


def main() -> None:
    """Entry point for the interactive client.

    Supports command-line arguments:
        --url <url>         Relay WebSocket URL (default: ws://localhost:8887)
        --username <name>   Username to register (prompted if missing)
    """
    url = _option("--url") or DEFAULT_URL
    username = _option("--username")

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not username:
        username = input("Enter your username: ").strip()
    try:
        asyncio.run(run_client(url, username))
    except (OSError, websockets.InvalidURI, websockets.InvalidHandshake) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def _option(name: str, argv: Optional[list[str]] = None) -> str:
    """Return the value following *name* in *argv*, or ``""``."""
    argv = sys.argv[1:] if argv is None else argv
    if name in argv:
        idx = argv.index(name)
        if idx + 1 < len(argv):
            return argv[idx + 1]
        print(f"Error: {name} requires an argument", file=sys.stderr)
        sys.exit(1)
    return ""


if __name__ == "__main__":
    main()
