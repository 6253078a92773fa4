"""MCP tool: bridge_status."""

# pyright: reportUnusedFunction=false
from collections.abc import Awaitable, Callable
from typing import Any

from fastmcp import Context, FastMCP


def register(app: FastMCP, *, impl: Callable[[Context], Awaitable[dict[str, Any]]]) -> None:
    """Register the bridge_status tool on the provided app instance."""

    @app.tool(
        name="bridge_status",
        description="Return the current bridge status, recent status transitions, and the last error.",
        annotations={
            "title": "Bridge status",
            "readOnlyHint": True,
        },
    )
    async def bridge_status(ctx: Context) -> dict[str, Any]:
        return await impl(ctx)


__all__ = ["register"]
