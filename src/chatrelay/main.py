"""Chat relay entry point.

Initializes all components and runs until SIGINT / SIGTERM:
1. Load configuration
2. Create registry, router, server and reporter
3. Start the WebSocket server (with bind retries)
4. Start the periodic connection reporter
5. Wait for a shutdown signal, then stop everything

Usage:
    python -m chatrelay.main [port] [--config <path>]
    # or via entry point:
    chatrelay [port]
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from chatrelay.debug.monitor import ConnectionReporter
from chatrelay.engine.registry import ConnectionRegistry
from chatrelay.loaders.relay_config_loader import (
    DEFAULT_RELAY_CONFIG_PATH,
    RelayConfig,
    load_relay_config,
)
from chatrelay.network.router import MessageRouter
from chatrelay.network.server import Server
from chatrelay.util.errors import RelayError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all relay components."""

    config: RelayConfig
    registry: ConnectionRegistry
    router: MessageRouter
    server: Server
    reporter: Optional[ConnectionReporter] = None


def create_services(config: RelayConfig) -> Services:
    """Instantiate all components with proper dependency injection.

    Args:
        config: Loaded relay configuration.

    Returns:
        Populated :class:`Services` container.
    """
    log.info("Creating services …")
    registry = ConnectionRegistry()
    router = MessageRouter(registry, announce_disconnects=config.announce_disconnects,
                           send_timeout=config.send_timeout)
    server = Server(
        router,
        host=config.host,
        port=config.port,
        ping_interval=config.ws_ping_interval,
        ping_timeout=config.ws_ping_timeout,
        max_size=config.ws_max_message_size,
        bind_retries=config.bind_retries,
        bind_retry_delay=config.bind_retry_delay,
    )
    reporter = None
    if config.report_interval > 0:
        reporter = ConnectionReporter(registry, interval=config.report_interval)
    return Services(config=config, registry=registry, router=router,
                    server=server, reporter=reporter)


async def run(services: Services) -> None:
    """Start the relay and block until a shutdown signal arrives."""
    await services.server.start()
    if services.reporter is not None:
        services.reporter.start()

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received, stopping …")
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await stop.wait()
    finally:
        log.info("Shutting down …")
        if services.reporter is not None:
            await services.reporter.stop()
        await services.server.stop()
        await services.router.close()
        log.info("  goodbye")


def parse_port(argv: list[str], default: int) -> int:
    """Return the positional port argument, or *default* if absent/invalid."""
    positional = [a for i, a in enumerate(argv)
                  if not a.startswith("--") and (i == 0 or argv[i - 1] != "--config")]
    if not positional:
        return default
    try:
        port = int(positional[0])
    except ValueError:
        log.error("Invalid port number %r. Using default port %d", positional[0], default)
        return default
    if not 0 <= port <= 65535:
        log.error("Port %d out of range. Using default port %d", port, default)
        return default
    return port


def resolve_log_level(name: str) -> int:
    """Map a configured level name to a ``logging`` level (INFO if unknown)."""
    level = getattr(logging, str(name).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def main() -> None:
    """Entry point for the chat relay.

    Supports command-line arguments:
        [port]            Listen port (overrides the configured port)
        --config <path>   Relay config YAML (default: config/relay.yaml)
    """
    argv = sys.argv[1:]
    config_path = DEFAULT_RELAY_CONFIG_PATH
    if "--config" in argv:
        idx = argv.index("--config")
        if idx + 1 >= len(argv):
            print("Error: --config requires an argument", file=sys.stderr)
            sys.exit(1)
        config_path = argv[idx + 1]

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # INFO until the configured level is known, so config loading is logged
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    config = load_relay_config(config_path)
    root.setLevel(resolve_log_level(config.log_level))
    config.port = parse_port(argv, config.port)
    log.info("=== Chat Relay starting ===")

    services = create_services(config)
    try:
        asyncio.run(run(services))
    except RelayError as exc:
        log.error("%s. Exiting.", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
