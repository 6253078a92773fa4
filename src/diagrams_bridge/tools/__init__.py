"""Tools package for the MCP server.

Contains MCP tool registration modules:
- ``send_telemetry``: Relay a batch of readings through the bridge
- ``bridge_status``: Report the bridge status channel
"""
