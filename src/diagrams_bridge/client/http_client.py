"""HTTP client setup for the DiagRAMS API.

Provides the factory that builds an ``httpx.AsyncClient`` with the shared
timeout and TLS settings, plus the diagnostic formatter for outbound requests.
"""

import json

import httpx

from ..config import BridgeConfig

_REDACTED_HEADERS = frozenset({"authorization"})


def create_http_client(
    config: BridgeConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an HTTP client configured for the DiagRAMS API.

    No retry layer is installed: every failure is reported once and the next
    event is an independent attempt.

    Args:
        config: The configuration containing TLS verification and timeouts.
        transport: Optional transport override, used by tests.

    Returns:
        A new client. The caller owns it and must close it.

    """
    timeout = httpx.Timeout(config.timeout_ms / 1000)
    return httpx.AsyncClient(verify=config.verify_ssl, timeout=timeout, transport=transport)


def _redact(value: str) -> str:
    scheme, _, _secret = value.partition(" ")
    return f"{scheme} ***" if scheme else "***"


def describe_request(request: httpx.Request, *, redact: bool = True) -> str:
    """Return a JSON dump of an outbound request for troubleshooting.

    With ``redact`` set, the credential part of the ``authorization`` header
    is masked. Note that without it the basic-auth pair is only base64 encoded.
    """
    headers = {
        name: _redact(value) if redact and name.lower() in _REDACTED_HEADERS else value
        for name, value in request.headers.items()
    }
    return json.dumps(
        {
            "method": request.method,
            "url": str(request.url),
            "headers": headers,
            "body": request.content.decode("utf-8", errors="replace"),
        },
    )


__all__ = ["create_http_client", "describe_request"]
