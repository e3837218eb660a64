"""Relay configuration: loads tunable settings from config/relay.yaml.

Provides a single ``RelayConfig`` dataclass that is loaded once at startup
and then passed to the server, the reporter and the entry point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULT_RELAY_CONFIG_PATH = "config/relay.yaml"
DEFAULT_PORT = 8887


@dataclass
class RelayConfig:
    """All tunable relay settings.

    Every field has a sensible default so the relay can start even
    without the file.
    """

    # -- Network -----------------------------------------------------
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    ws_ping_interval: int = 30
    ws_ping_timeout: int = 10
    ws_max_message_size: int = 1_048_576

    # -- Startup -----------------------------------------------------
    bind_retries: int = 3
    bind_retry_delay: float = 2.0

    # -- Behaviour ---------------------------------------------------
    announce_disconnects: bool = True
    send_timeout: float = 0.5  # seconds before slow sends continue in the background

    # -- Reporting ---------------------------------------------------
    report_interval: float = 30.0  # seconds, 0 disables
    log_level: str = "INFO"


def load_relay_config(path: str = DEFAULT_RELAY_CONFIG_PATH) -> RelayConfig:
    """Load relay configuration from a YAML file.

    Missing keys fall back to dataclass defaults and unknown keys are
    ignored.  If the file does not exist, a warning is logged and pure
    defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Relay config not found at %s, using defaults", p)
        return RelayConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded relay config from %s (%d keys)", p, len(raw))

    unknown = sorted(k for k in raw if k not in RelayConfig.__dataclass_fields__)
    if unknown:
        log.warning("Ignoring unknown config keys: %s", ", ".join(unknown))

    return RelayConfig(**{
        k: v for k, v in raw.items()
        if k in RelayConfig.__dataclass_fields__
    })
