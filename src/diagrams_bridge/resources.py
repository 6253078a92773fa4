"""MCP resources for the DiagRAMS bridge.

Exposes the bridge status channel and its resolved configuration as
read-only resources.
"""

# pyright: reportUnusedFunction=false

from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

from fastmcp import FastMCP


def register(app: FastMCP, *, deps: SimpleNamespace) -> None:
    """Register resources on the provided app instance.

    Args:
        app: The FastMCP application instance to add resources to.
        deps: Dependencies namespace containing ``get_bridge`` and
              ``status_payload``.

    """

    @app.resource(
        uri="diagrams://status",
        name="DiagRAMS Bridge Status",
        description="Return the current status, recent transitions, and last error of the bridge.",
        mime_type="application/json",
        tags={"status"},
    )
    async def get_status() -> dict[str, Any]:
        return deps.status_payload()

    @app.resource(
        uri="diagrams://config",
        name="DiagRAMS Bridge Configuration",
        description="Return the resolved bridge configuration. Credentials are never included.",
        mime_type="application/json",
        tags={"config"},
    )
    async def get_config() -> dict[str, Any]:
        config = deps.get_bridge().config
        return {
            "retrieved_at": datetime.now(UTC).isoformat(),
            "config": config.model_dump(mode="json"),
            "token_url": config.token_url,
            "data_url": config.data_url,
        }


__all__ = ["register"]
