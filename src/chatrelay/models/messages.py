"""Chat command models.

Inbound text frames are classified into one of three typed Pydantic
commands.  The wire format is plain colon-delimited text with no
escaping:

    register:<username>
    private:<target>:<body>
    <anything else>            (broadcast verbatim)
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

REGISTER_PREFIX = "register:"
PRIVATE_PREFIX = "private:"

# Sender name used when an unregistered connection sends a private message
UNKNOWN_SENDER = "Unknown"

DISCONNECT_NOTICE = "A user has disconnected!"


# -- Base ----------------------------------------------------------------

class ChatCommand(BaseModel):
    """Base class for all parsed chat commands."""

    type: str


# -- Commands ------------------------------------------------------------

class RegisterCommand(ChatCommand):
    type: Literal["register"] = "register"
    username: str


class PrivateCommand(ChatCommand):
    type: Literal["private"] = "private"
    target: str
    body: str


class BroadcastCommand(ChatCommand):
    type: Literal["broadcast"] = "broadcast"
    text: str


# -- Outbound notices ----------------------------------------------------

def joined_notice(username: str) -> str:
    return f"{username} has joined the chat!"


def private_delivery(sender: str, body: str) -> str:
    return f"Private message from {sender}: {body}"


def delivery_confirmation(target: str) -> str:
    return f"Message sent to {target}"


def target_not_found(target: str) -> str:
    return f"User {target} not found!"


# -- Parsing -------------------------------------------------------------

def parse_message(text: str) -> ChatCommand:
    """Classify a raw text frame into a command.

    Never raises.  A ``private:`` frame without a second colon-delimited
    part is not an error; it is treated as a plain broadcast.

    Args:
        text: Raw text received from a client.

    Returns:
        A :class:`RegisterCommand`, :class:`PrivateCommand` or
        :class:`BroadcastCommand`.
    """
    if text.startswith(REGISTER_PREFIX):
        return RegisterCommand(username=text[len(REGISTER_PREFIX):])

    if text.startswith(PRIVATE_PREFIX):
        parts = text[len(PRIVATE_PREFIX):].split(":", 1)
        if len(parts) == 2:
            return PrivateCommand(target=parts[0], body=parts[1])

    return BroadcastCommand(text=text)
