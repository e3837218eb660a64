"""Relay exception types."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay failures that should stop the process."""


class RelayStartupError(RelayError):
    """The listening endpoint could not be bound after all retries."""

    def __init__(self, host: str, port: int, attempts: int) -> None:
        super().__init__(f"Could not bind {host}:{port} after {attempts} attempt(s)")
        self.host = host
        self.port = port
        self.attempts = attempts
