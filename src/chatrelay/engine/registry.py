"""Connection registry: who is connected and which connection owns which name.

Holds the set of live connections plus a ``username -> connection``
mapping.  The reverse lookup (connection -> username) is a linear scan
of the forward mapping; the relay serves a handful of users, so no
second index is kept.

A connection may end up registered under several usernames if it sends
several ``register:`` messages.  Re-registering a taken username silently
moves it to the newer connection.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Hashable, Optional

log = logging.getLogger(__name__)

# Opaque transport handle: anything hashable with ``send()`` and ``remote_address``
Connection = Hashable


class ConnectionRegistry:
    """Thread-safe store of live connections and registered usernames.

    Every mutation and every snapshot read takes the same lock, so a
    concurrent close and register can never leave a username pointing at
    a connection that is no longer in the connection set.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._connections: set[Connection] = set()
        self._users: dict[str, Connection] = {}

    # -- Mutations -------------------------------------------------------

    def add_connection(self, connection: Connection) -> None:
        """Track a newly opened connection."""
        with self._lock:
            self._connections.add(connection)

    def remove_connection(self, connection: Connection) -> list[str]:
        """Forget a connection and every username mapped to it.

        Idempotent: removing an unknown connection is a no-op.

        Returns:
            The usernames that were released (usually zero or one).
        """
        with self._lock:
            self._connections.discard(connection)
            released = [name for name, conn in self._users.items() if conn == connection]
            for name in released:
                del self._users[name]
        if released:
            log.debug("Released usernames %s", released)
        return released

    def register(self, username: str, connection: Connection) -> bool:
        """Map *username* to *connection*, overwriting any previous holder.

        A connection that is not (or no longer) open is not registered.

        Returns:
            True if the mapping was stored.
        """
        with self._lock:
            if connection not in self._connections:
                log.debug("Ignoring register of %r for a closed connection", username)
                return False
            previous = self._users.get(username)
            self._users[username] = connection
        if previous is not None and previous != connection:
            log.info("Username %r moved to a new connection", username)
        return True

    # -- Lookups ---------------------------------------------------------

    def lookup_by_username(self, username: str) -> Optional[Connection]:
        with self._lock:
            return self._users.get(username)

    def lookup_username(self, connection: Connection) -> Optional[str]:
        """Return the first username owned by *connection*, or None."""
        with self._lock:
            for name, conn in self._users.items():
                if conn == connection:
                    return name
        return None

    # -- Snapshots -------------------------------------------------------

    def all_connections(self) -> frozenset[Connection]:
        """Snapshot of all open connections."""
        with self._lock:
            return frozenset(self._connections)

    def registered_users(self) -> list[tuple[str, Any]]:
        """Snapshot of ``(username, connection)`` pairs."""
        with self._lock:
            return list(self._users.items())

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        with self._lock:
            return connection in self._connections
