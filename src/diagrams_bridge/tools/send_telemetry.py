"""MCP tool: send_telemetry.

Registers the tool with the FastMCP app. The implementation is delegated to
``server.send_telemetry_impl`` so the bridge wiring stays in one place.
"""

# pyright: reportUnusedFunction=false
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import Context, FastMCP

from ..models import TelemetryReading


def register(
    app: FastMCP,
    *,
    impl: Callable[[Context, list[TelemetryReading]], Awaitable[dict[str, Any]]],
) -> None:
    """Register the send_telemetry tool on the provided app instance.

    Args:
        app: The FastMCP application instance to add the tool to.
        impl: The implementation callable that dispatches the readings.

    """

    @app.tool(
        name="send_telemetry",
        description=(
            "Relay a batch of sensor readings to the configured DiagRAMS project. "
            "Delivery is asynchronous; check bridge_status for the outcome."
        ),
        annotations={
            "title": "Send telemetry to DiagRAMS",
            "readOnlyHint": False,
        },
    )
    async def send_telemetry(ctx: Context, readings: list[TelemetryReading]) -> dict[str, Any]:
        return await impl(ctx, readings)


__all__ = ["register"]
