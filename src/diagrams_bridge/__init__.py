"""DiagRAMS bridge package.

This package relays sensor telemetry to the DiagRAMS ingestion API and exposes
the bridge through a FastMCP server.
"""

# Intentionally do not re-export symbols from submodules to avoid loading
# environment configuration at package import time. Individual modules
# (e.g., ``bridge``, ``server``) should be imported directly as needed.

__all__: list[str] = []
