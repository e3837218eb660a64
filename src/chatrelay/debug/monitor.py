"""Connection reporter: periodically logs who is connected.

Only reads registry snapshots, so it never holds the registry lock
across logging and never stalls message routing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from chatrelay.engine.registry import ConnectionRegistry

log = logging.getLogger(__name__)


def collect_snapshot(registry: ConnectionRegistry) -> dict[str, Any]:
    """Build a plain-dict snapshot of the registry.

    Returns:
        ``{"connections": int, "users": [{"username", "remote"}, ...]}``
    """
    users = [
        {"username": name, "remote": _fmt_remote(getattr(conn, "remote_address", None))}
        for name, conn in registry.registered_users()
    ]
    return {
        "connections": registry.connection_count,
        "users": users,
    }


def format_report(snapshot: dict[str, Any]) -> str:
    lines = [
        "=== Active Connections ===",
        f"Total connections: {snapshot['connections']}",
        "Connected users:",
    ]
    lines.extend(f"- {u['username']} ({u['remote']})" for u in snapshot["users"])
    lines.append("==========================")
    return "\n".join(lines)


class ConnectionReporter:
    """Logs a connection report immediately and then every *interval* seconds.

    Args:
        registry: Registry to report on.
        interval: Seconds between reports.
    """

    def __init__(self, registry: ConnectionRegistry, interval: float = 30.0) -> None:
        self._registry = registry
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.report_count: int = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def report(self) -> str:
        text = format_report(collect_snapshot(self._registry))
        log.info("\n%s", text)
        self.report_count += 1
        return text

    async def _run(self) -> None:
        while True:
            self.report()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        log.info("Connection reporter started (every %.0f s)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


def _fmt_remote(remote: Any) -> str:
    if isinstance(remote, tuple) and len(remote) >= 2:
        return f"{remote[0]}:{remote[1]}"
    return str(remote) if remote is not None else "unknown"
