"""MCP prompts for DiagRAMS bridge operations."""

# pyright: reportUnusedFunction=false

from fastmcp import FastMCP


def register(app: FastMCP) -> None:
    """Register prompts on the provided app instance."""

    @app.prompt(
        name="Troubleshoot Bridge",
        description="Help troubleshoot telemetry that is not reaching DiagRAMS.",
        tags={"troubleshooting", "status"},
    )
    def troubleshoot_bridge(symptom: str = "") -> str:
        prompt = "Telemetry sent through the DiagRAMS bridge is not arriving."
        if symptom:
            prompt += f" Observed symptom: '{symptom}'."
        prompt += (
            " Use the bridge_status tool to read the status channel. "
            "'token:failed' points at the application credentials, 'token:invalid' at a revoked token "
            "(the next batch re-acquires one), 'data:failing' at the organisation or project code, "
            "and 'node:erroring' at network problems. Suggest the most likely fix."
        )
        return prompt


__all__ = ["register"]
