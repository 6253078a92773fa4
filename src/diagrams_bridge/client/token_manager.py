"""Token management for the DiagRAMS API.

The token slot is deliberately unlocked: concurrent events that find it empty
each request their own token, and the last completion wins.
"""

import base64
import json
import logging

import httpx

from ..config import BridgeConfig
from ..credentials import CredentialsNode

logger = logging.getLogger("diagrams_bridge.token_manager")

TOKEN_GRANT = {"grant_type": "client_credentials"}


def basic_authorization(credentials: CredentialsNode) -> str:
    """Return the ``basic`` authorization value for a credentials node.

    A bad node yields an empty identifier and secret so the remote API rejects
    the acquisition instead of the bridge failing locally.
    """
    pair = f"{credentials.application_id or ''}:{credentials.application_secret or ''}"
    return "basic " + base64.b64encode(pair.encode("utf-8")).decode("ascii")


def encode_json(payload: object) -> str:
    """Serialize a request body the way the DiagRAMS API expects it."""
    return json.dumps(payload, separators=(",", ":"))


class TokenManager:
    """Hold the bearer token for one bridge and build token requests."""

    def __init__(self, config: BridgeConfig, credentials: CredentialsNode) -> None:
        """Initialize the token manager with an empty slot.

        Args:
            config: The bridge configuration providing the token endpoint.
            credentials: The credentials node used for basic authentication.

        """
        self._config = config
        self._credentials = credentials
        self._cached_token: str | None = None

    @property
    def token(self) -> str | None:
        """Return the cached bearer token, or None when pristine or invalidated."""
        return self._cached_token

    @property
    def has_token(self) -> bool:
        return bool(self._cached_token)

    def invalidate(self) -> None:
        """Forget the cached token so the next event acquires a new one."""
        if self._cached_token:
            logger.debug("Discarding rejected bearer token.")
        self._cached_token = None

    def build_token_request(self, client: httpx.AsyncClient) -> httpx.Request:
        """Build the client-credentials grant request.

        Args:
            client: The HTTP client that will send the request.

        Returns:
            The prepared ``POST {base_url}/oauth2/token`` request.

        """
        return client.build_request(
            "POST",
            self._config.token_url,
            headers={
                "authorization": basic_authorization(self._credentials),
                "content-type": "application/json",
            },
            content=encode_json(TOKEN_GRANT),
        )

    def build_data_request(self, client: httpx.AsyncClient, payload: object) -> httpx.Request:
        """Build the telemetry request carrying the current bearer token."""
        return client.build_request(
            "POST",
            self._config.data_url,
            headers={
                "authorization": f"bearer {self._cached_token}",
                "content-type": "application/json",
            },
            content=encode_json(payload),
        )

    def store_from_response(self, response: httpx.Response) -> str | None:
        """Cache the ``access_token`` of a successful token response.

        A response without an ``access_token`` leaves the slot empty rather
        than failing; the following data request then carries no usable token.

        Raises:
            json.JSONDecodeError: If the response body is not JSON.

        """
        body = response.json()
        token = body.get("access_token") if isinstance(body, dict) else None
        self._cached_token = token or None
        if self._cached_token:
            logger.debug("Fetched new bearer token from DiagRAMS API.")
        else:
            logger.warning("Token response did not include an access_token.")
        return self._cached_token


__all__ = ["TOKEN_GRANT", "TokenManager", "basic_authorization", "encode_json"]
