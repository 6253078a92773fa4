"""Entry point for the DiagRAMS bridge MCP server.

This module wires together the FastMCP app, the bridge node, and its host
channels, then registers tools, resources, and prompts.

Registered tools:
- ``send_telemetry``: relay a batch of sensor readings to the DiagRAMS project
- ``bridge_status``: report the bridge status channel
"""

import logging
import os
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

from fastmcp import Context, FastMCP

from . import prompts, resources
from .bridge import BridgeNode
from .config import BridgeConfig, env_credentials_lookup
from .credentials import CredentialsNode
from .host import LoggingHost
from .models import TelemetryReading, serialize_readings
from .tools.bridge_status import register as register_bridge_status
from .tools.send_telemetry import register as register_send_telemetry

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(name)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("diagrams_bridge.server")

_HOST = LoggingHost()
_BRIDGE: BridgeNode | None = None


async def close_bridge() -> None:
    """Drain and close the process-wide bridge if one was built."""
    global _BRIDGE  # noqa: PLW0603
    if _BRIDGE is None:
        return
    logger.info("Closing bridge with %d events in flight", _BRIDGE.pending)
    bridge, _BRIDGE = _BRIDGE, None
    await bridge.close()


@asynccontextmanager
async def _lifespan(_app: FastMCP) -> AsyncIterator[None]:
    """Close the bridge when the server shuts down."""
    try:
        yield
    finally:
        await close_bridge()


app = FastMCP(
    name="diagrams-bridge",
    instructions="Relay sensor telemetry to a DiagRAMS project and report delivery status.",
    lifespan=_lifespan,
)


def get_host() -> LoggingHost:
    """Return the host receiving the bridge's signals."""
    return _HOST


def get_bridge() -> BridgeNode:
    """Return the process-wide bridge, building it from the environment on first use."""
    global _BRIDGE  # noqa: PLW0603
    if _BRIDGE is None:
        config = BridgeConfig.from_env()
        credentials = CredentialsNode(
            config.diagrams,
            lookup=env_credentials_lookup,
            host=_HOST,
            redact=config.redact_diagnostics,
        )
        _BRIDGE = BridgeNode(config, credentials, _HOST)
        logger.info("Bridge ready for project %s/%s", config.organisation_id, config.project_code)
    return _BRIDGE


def status_payload() -> dict[str, Any]:
    """Return the status channel snapshot shared by the tool and the resource."""
    bridge = get_bridge()
    return {
        "retrieved_at": datetime.now(UTC).isoformat(),
        "status": _HOST.current_status,
        "history": _HOST.history,
        "token": "present" if bridge.token_manager.has_token else "absent",
        "pending": bridge.pending,
        "last_error": _HOST.last_error,
    }


async def send_telemetry_impl(ctx: Context, readings: list[TelemetryReading]) -> dict[str, Any]:
    """Dispatch the readings as one bridge event and acknowledge the dispatch."""
    await ctx.info(f"Relaying {len(readings)} telemetry readings to DiagRAMS.")
    bridge = get_bridge()
    payload = serialize_readings(readings)
    bridge.on_input(payload)
    return {
        "accepted": True,
        "queued_at": datetime.now(UTC).isoformat(),
        "readings": len(payload),
    }


async def bridge_status_impl(ctx: Context) -> dict[str, Any]:
    """Return the current bridge status as JSON."""
    await ctx.info("Reading DiagRAMS bridge status.")
    return status_payload()


__all__ = [
    "app",
    "bridge_status_impl",
    "close_bridge",
    "get_bridge",
    "get_host",
    "handle_interrupt",
    "main",
    "send_telemetry_impl",
    "status_payload",
]


def _register_capabilities() -> None:
    """Register tools, resources, and prompts with the app instance."""
    register_send_telemetry(app, impl=send_telemetry_impl)
    register_bridge_status(app, impl=bridge_status_impl)
    deps = SimpleNamespace(
        get_bridge=get_bridge,
        status_payload=status_payload,
    )
    resources.register(app, deps=deps)
    prompts.register(app)


# Register all capabilities with the app instance (after functions are defined)
_register_capabilities()


def handle_interrupt(signum: int, frame: object) -> None:  # noqa: ARG001
    """Handle keyboard interrupt gracefully."""
    logger.info("Received interrupt signal, shutting down...")
    sys.exit(0)


def main() -> None:
    """Entry point for the diagrams-bridge console script."""
    signal.signal(signal.SIGINT, handle_interrupt)
    signal.signal(signal.SIGTERM, handle_interrupt)
    app.run()


if __name__ == "__main__":
    main()
