"""Transport events: the only inputs the relay core consumes.

The transport adapter turns its connection lifecycle into these frozen
event objects and hands each one to ``MessageRouter.handle()``.  Nothing
subclasses the router to hook into open/close/message callbacks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


# -- Lifecycle events ----------------------------------------------------

@dataclass(frozen=True)
class ConnectionOpened:
    """A client finished the transport handshake."""
    connection: Any


@dataclass(frozen=True)
class ConnectionClosed:
    """A client connection closed (cleanly or by protocol close)."""
    connection: Any
    code: Optional[int] = None
    reason: str = ""


@dataclass(frozen=True)
class ConnectionFailed:
    """The transport reported a fault on a connection."""
    connection: Any
    cause: Optional[BaseException] = None


# -- Traffic events ------------------------------------------------------

@dataclass(frozen=True)
class MessageReceived:
    """A text frame arrived from a client."""
    connection: Any
    text: str


TransportEvent = Union[ConnectionOpened, MessageReceived, ConnectionClosed, ConnectionFailed]
