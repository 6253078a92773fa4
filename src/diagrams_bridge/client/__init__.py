"""Client package for the DiagRAMS bridge.

Provides HTTP client setup and token management for the DiagRAMS API:
- ``http_client``: Factory for configured ``httpx.AsyncClient`` instances and request dumps
- ``token_manager``: Bearer token slot and request builders
"""
