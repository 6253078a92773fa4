"""Bridge node relaying telemetry batches to the DiagRAMS ingestion API.

Each inbound event runs a two-step pipeline: make sure a bearer token is
cached, then post the payload. Progress is reported through the host's status
channel and failures through its error and debug channels; nothing is raised
back to the event source.

Events are processed as independent asyncio tasks sharing one token slot with
no lock. Two events arriving while the slot is empty may both acquire a token.
"""

import asyncio
import logging
import traceback
from types import TracebackType
from typing import Any, Self

import httpx

from .client.http_client import create_http_client, describe_request
from .client.token_manager import TokenManager
from .config import BridgeConfig
from .credentials import CredentialsNode
from .host import NodeHost, StatusSignal

logger = logging.getLogger("diagrams_bridge.bridge")

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_UNAUTHORIZED = 401

STATUS_PRISTINE = StatusSignal(fill="grey", shape="ring", text="token:pristine")
STATUS_TOKEN_READY = StatusSignal(fill="green", shape="dot", text="token:ready")
STATUS_TOKEN_FAILED = StatusSignal(fill="red", shape="ring", text="token:failed")
STATUS_TOKEN_INVALID = StatusSignal(fill="red", shape="ring", text="token:invalid")
STATUS_DATA_SENDING = StatusSignal(fill="green", shape="dot", text="data:sending")
STATUS_DATA_FAILING = StatusSignal(fill="red", shape="dot", text="data:failing")
STATUS_NODE_ERRORING = StatusSignal(fill="red", shape="dot", text="node:erroring")


class BridgeNode:
    """Terminal sink forwarding telemetry events to a DiagRAMS project."""

    def __init__(
        self,
        config: BridgeConfig,
        credentials: CredentialsNode,
        host: NodeHost,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the bridge and publish the pristine status.

        Args:
            config: Project coordinates and HTTP settings.
            credentials: Credentials node used for token acquisition.
            host: Host channels receiving status, error and debug signals.
            client: Optional HTTP client. When omitted the bridge creates one
                on first use and closes it in :meth:`close`.

        """
        self._config = config
        self._host = host
        self._token_manager = TokenManager(config, credentials)
        self._client = client
        self._owns_client = client is None
        self._tasks: set[asyncio.Task[None]] = set()
        self._host.status(STATUS_PRISTINE)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    @property
    def pending(self) -> int:
        """Return the number of events still in flight."""
        return len(self._tasks)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_http_client(self._config)
        return self._client

    def on_input(self, payload: Any) -> asyncio.Task[None]:
        """Schedule the pipeline for one event without waiting for it.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(self.handle(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight event to finish."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks))

    async def close(self) -> None:
        """Finish in-flight events and close the HTTP client if the bridge owns it."""
        await self.drain()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def handle(self, payload: Any) -> None:
        """Run the token and send pipeline for one event, reporting every outcome."""
        try:
            await self._process(payload)
        except Exception:  # noqa: BLE001 - reported through the host error channel
            logger.exception("Unhandled error while relaying telemetry")
            self._host.error(traceback.format_exc())
            self._host.status(STATUS_NODE_ERRORING)

    async def _process(self, payload: Any) -> None:
        client = self._get_client()

        if not self._token_manager.has_token and not await self._acquire_token(client, payload):
            return

        request = self._token_manager.build_data_request(client, payload)
        response = await client.send(request)

        if response.status_code == HTTP_UNAUTHORIZED:
            self._host.error("Unauthorized!", payload)
            self._host.status(STATUS_TOKEN_INVALID)
            self._token_manager.invalidate()
            self._host.debug(self._describe(request))
            return

        if response.status_code != HTTP_CREATED:
            self._host.error(f"Unable to send the data: {response.text}", payload)
            self._host.debug(self._describe(request))
            self._host.status(STATUS_DATA_FAILING)
            return

        self._host.status(STATUS_DATA_SENDING)

    async def _acquire_token(self, client: httpx.AsyncClient, payload: Any) -> bool:
        """Request a new token, returning False when the event must be dropped."""
        request = self._token_manager.build_token_request(client)
        response = await client.send(request)

        if response.status_code != HTTP_OK:
            self._host.error(f"Unable to get a token: {response.text}", payload)
            self._host.debug(self._describe(request))
            self._host.status(STATUS_TOKEN_FAILED)
            return False

        self._host.status(STATUS_TOKEN_READY)
        self._token_manager.store_from_response(response)
        return True

    def _describe(self, request: httpx.Request) -> str:
        return describe_request(request, redact=self._config.redact_diagnostics)


__all__ = [
    "STATUS_DATA_FAILING",
    "STATUS_DATA_SENDING",
    "STATUS_NODE_ERRORING",
    "STATUS_PRISTINE",
    "STATUS_TOKEN_FAILED",
    "STATUS_TOKEN_INVALID",
    "STATUS_TOKEN_READY",
    "BridgeNode",
]
