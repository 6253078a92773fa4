"""Unit tests for the BridgeNode token and send pipeline.

The DiagRAMS API is simulated with ``httpx.MockTransport``; host channels are
captured with a ``MagicMock`` so status sequences can be asserted exactly.
"""

# pyright: reportPrivateUsage=false

import asyncio
import base64
import json
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeAlias
from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from diagrams_bridge.bridge import BridgeNode
from diagrams_bridge.config import BridgeConfig
from diagrams_bridge.credentials import CredentialsNode
from diagrams_bridge.host import LoggingHost

BATCH: list[dict[str, Any]] = [
    {
        "sensorId": "sensor-1",
        "valueName": "temperature",
        "date": "2024-03-01T10:00:00.000Z",
        "value": 21,
        "precision": 0.5,
    },
    {
        "sensorId": "sensor-2",
        "valueName": "humidity",
        "date": "2024-03-01T10:00:00.000Z",
        "value": 48.2,
    },
]

Reply: TypeAlias = tuple[int, dict[str, Any] | str]


class _FakeApi:
    """Scripted DiagRAMS API recording every request it receives.

    Each endpoint replays its replies in order and repeats the last one.
    """

    def __init__(
        self,
        *,
        token_replies: list[Reply] | None = None,
        data_replies: list[Reply] | None = None,
    ) -> None:
        self.token_replies = token_replies or [(200, {"access_token": "abc", "expires_in": 3600})]
        self.data_replies = data_replies or [(201, "")]
        self.requests: list[httpx.Request] = []

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/oauth2/token")]

    @property
    def data_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if "/data/" in r.url.path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.token_replies if request.url.path.endswith("/oauth2/token") else self.data_replies
        status, body = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)


_OPEN_CLIENTS: list[httpx.AsyncClient] = []


def _mock_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    _OPEN_CLIENTS.append(client)
    return client


@pytest_asyncio.fixture(autouse=True)
async def _close_clients() -> AsyncIterator[None]:
    """Close every client a test created."""
    yield
    while _OPEN_CLIENTS:
        await _OPEN_CLIENTS.pop().aclose()


def _config(**overrides: Any) -> BridgeConfig:
    values: dict[str, Any] = {
        "organisation_id": "org-1",
        "project_code": "demo",
        "base_url": "https://api.example.com/v0",
    }
    values.update(overrides)
    return BridgeConfig(**values)


def _credentials(found: dict[str, str] | None = None) -> CredentialsNode:
    if found is None:
        found = {"applicationId": "app-id", "applicationSecret": "app-secret"}
    return CredentialsNode("my-diagrams", lookup=lambda _ref: found, host=MagicMock(spec=LoggingHost))


def _bridge(api: _FakeApi, host: MagicMock, **config_overrides: Any) -> BridgeNode:
    client = _mock_client(api)
    return BridgeNode(_config(**config_overrides), _credentials(), host, client=client)


def _statuses(host: MagicMock) -> list[str]:
    return [c.args[0].text for c in host.status.call_args_list]


@pytest.fixture
def host() -> MagicMock:
    """Return a host whose channels record every call."""
    return MagicMock(spec=LoggingHost)


@pytest.mark.asyncio
async def test_construction_emits_pristine_status(host: MagicMock) -> None:
    """A new bridge should report the pristine status before any event."""
    _bridge(_FakeApi(), host)

    host.status.assert_called_once()
    signal = host.status.call_args.args[0]
    assert (signal.fill, signal.shape, signal.text) == ("grey", "ring", "token:pristine")


@pytest.mark.asyncio
async def test_successful_relay_status_sequence(host: MagicMock) -> None:
    """A 200 acquisition followed by a 201 send should report ready then sending."""
    api = _FakeApi()
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "data:sending"]
    host.error.assert_not_called()
    host.debug.assert_not_called()
    assert bridge.token_manager.token == "abc"


@pytest.mark.asyncio
async def test_token_request_wire_format(host: MagicMock) -> None:
    """The token request should use basic auth and the client-credentials grant."""
    api = _FakeApi()
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    request = api.token_requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.example.com/v0/oauth2/token"
    expected = base64.b64encode(b"app-id:app-secret").decode("ascii")
    assert request.headers["authorization"] == f"basic {expected}"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {"grant_type": "client_credentials"}


@pytest.mark.asyncio
async def test_data_request_wire_format(host: MagicMock) -> None:
    """The data request should carry the bearer token and the batch unchanged."""
    api = _FakeApi()
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    request = api.data_requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.example.com/v0/organisations/org-1/data/demo"
    assert request.headers["authorization"] == "bearer abc"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == BATCH


@pytest.mark.asyncio
async def test_cached_token_is_reused(host: MagicMock) -> None:
    """A second event should skip acquisition when a token is cached."""
    api = _FakeApi()
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)
    await bridge.handle(BATCH)

    assert len(api.token_requests) == 1
    assert len(api.data_requests) == 2
    assert _statuses(host) == ["token:pristine", "token:ready", "data:sending", "data:sending"]


@pytest.mark.asyncio
async def test_token_failure_aborts_and_retries_next_event(host: MagicMock) -> None:
    """A non-200 acquisition should abort the event and be retried on the next one."""
    api = _FakeApi(token_replies=[(401, "invalid_client"), (200, {"access_token": "abc"})])
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:failed"]
    host.error.assert_called_once_with("Unable to get a token: invalid_client", BATCH)
    host.debug.assert_called_once()
    assert api.data_requests == []
    assert bridge.token_manager.token is None

    await bridge.handle(BATCH)

    assert len(api.token_requests) == 2
    assert _statuses(host)[-2:] == ["token:ready", "data:sending"]


@pytest.mark.asyncio
async def test_token_failure_status_is_red_ring(host: MagicMock) -> None:
    """The token:failed status should be a red ring."""
    bridge = _bridge(_FakeApi(token_replies=[(500, "down")]), host)

    await bridge.handle(BATCH)

    signal = host.status.call_args.args[0]
    assert (signal.fill, signal.shape, signal.text) == ("red", "ring", "token:failed")


@pytest.mark.asyncio
async def test_unauthorized_send_clears_token(host: MagicMock) -> None:
    """A 401 on send should invalidate the token and force re-acquisition."""
    api = _FakeApi(
        token_replies=[(200, {"access_token": "abc"}), (200, {"access_token": "def"})],
        data_replies=[(201, ""), (401, "expired"), (201, "")],
    )
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)
    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "data:sending", "token:invalid"]
    host.error.assert_called_once_with("Unauthorized!", BATCH)
    host.debug.assert_called_once()
    assert bridge.token_manager.token is None
    signal = host.status.call_args.args[0]
    assert (signal.fill, signal.shape) == ("red", "ring")

    await bridge.handle(BATCH)

    assert len(api.token_requests) == 2
    assert api.data_requests[-1].headers["authorization"] == "bearer def"
    assert _statuses(host)[-2:] == ["token:ready", "data:sending"]


@pytest.mark.asyncio
async def test_send_failure_keeps_token(host: MagicMock) -> None:
    """A non-201, non-401 send should report data:failing and keep the token."""
    api = _FakeApi(data_replies=[(400, "unknown sensor")])
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "data:failing"]
    host.error.assert_called_once_with("Unable to send the data: unknown sensor", BATCH)
    host.debug.assert_called_once()
    assert bridge.token_manager.token == "abc"
    signal = host.status.call_args.args[0]
    assert (signal.fill, signal.shape) == ("red", "dot")

    await bridge.handle(BATCH)

    assert len(api.token_requests) == 1


@pytest.mark.asyncio
async def test_transport_error_reports_trace(host: MagicMock) -> None:
    """Network failures should be caught and reported with a traceback."""

    def _unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _mock_client(_unreachable)
    bridge = BridgeNode(_config(), _credentials(), host, client=client)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "node:erroring"]
    host.error.assert_called_once()
    trace = host.error.call_args.args[0]
    assert trace
    assert "ConnectError" in trace
    assert "connection refused" in trace
    signal = host.status.call_args.args[0]
    assert (signal.fill, signal.shape) == ("red", "dot")


@pytest.mark.asyncio
async def test_malformed_token_response_reports_trace(host: MagicMock) -> None:
    """A 200 token response that is not JSON should end in node:erroring."""
    bridge = _bridge(_FakeApi(token_replies=[(200, "<html>")]), host)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "node:erroring"]
    assert bridge.token_manager.token is None
    trace = host.error.call_args.args[0]
    assert trace
    assert "JSONDecodeError" in trace


@pytest.mark.asyncio
async def test_data_send_transport_error_keeps_token(host: MagicMock) -> None:
    """A network failure on the data call should end in node:erroring with the token kept."""
    api = _FakeApi()

    def _timeout_on_data(request: httpx.Request) -> httpx.Response:
        if "/data/" in request.url.path:
            raise httpx.ReadTimeout("read timed out", request=request)
        return api(request)

    client = _mock_client(_timeout_on_data)
    bridge = BridgeNode(_config(), _credentials(), host, client=client)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "node:erroring"]
    host.error.assert_called_once()
    trace = host.error.call_args.args[0]
    assert "ReadTimeout" in trace
    assert "read timed out" in trace
    assert bridge.token_manager.token == "abc"


@pytest.mark.asyncio
async def test_missing_access_token_is_tolerated(host: MagicMock) -> None:
    """A 200 token response without access_token should still send the data."""
    api = _FakeApi(token_replies=[(200, {"token_type": "bearer"})])
    bridge = _bridge(api, host)

    await bridge.handle(BATCH)

    assert _statuses(host) == ["token:pristine", "token:ready", "data:sending"]
    assert api.data_requests[0].headers["authorization"] == "bearer None"
    assert bridge.token_manager.token is None


@pytest.mark.asyncio
async def test_bad_credentials_fail_acquisition(host: MagicMock) -> None:
    """A bridge with bad credentials should attempt and fail acquisition."""
    api = _FakeApi(token_replies=[(401, "invalid_client")])
    client = _mock_client(api)
    bridge = BridgeNode(_config(), _credentials({}), host, client=client)

    await bridge.handle(BATCH)

    assert api.token_requests[0].headers["authorization"] == "basic " + base64.b64encode(b":").decode("ascii")
    assert _statuses(host) == ["token:pristine", "token:failed"]


@pytest.mark.asyncio
async def test_diagnostics_redact_credentials_by_default(host: MagicMock) -> None:
    """Debug dumps should mask the authorization header unless disabled."""
    bridge = _bridge(_FakeApi(token_replies=[(403, "nope")]), host)

    await bridge.handle(BATCH)

    dump = json.loads(host.debug.call_args.args[0])
    assert dump["method"] == "POST"
    assert dump["url"] == "https://api.example.com/v0/oauth2/token"
    assert dump["headers"]["authorization"] == "basic ***"
    assert json.loads(dump["body"]) == {"grant_type": "client_credentials"}


@pytest.mark.asyncio
async def test_diagnostics_can_include_credentials(host: MagicMock) -> None:
    """With redaction disabled the dump should carry the encoded credentials."""
    bridge = _bridge(_FakeApi(token_replies=[(403, "nope")]), host, redact_diagnostics=False)

    await bridge.handle(BATCH)

    dump = json.loads(host.debug.call_args.args[0])
    expected = base64.b64encode(b"app-id:app-secret").decode("ascii")
    assert dump["headers"]["authorization"] == f"basic {expected}"


@pytest.mark.asyncio
async def test_example_scenario_with_on_input(host: MagicMock) -> None:
    """Events dispatched through on_input should complete after drain."""
    api = _FakeApi()
    bridge = _bridge(api, host)

    task = bridge.on_input(BATCH)
    assert bridge.pending == 1
    await bridge.drain()

    assert task.done()
    assert bridge.pending == 0
    assert _statuses(host) == ["token:pristine", "token:ready", "data:sending"]
    host.error.assert_not_called()


@pytest.mark.asyncio
async def test_concurrent_cold_start_may_acquire_twice(host: MagicMock) -> None:
    """Events racing on an empty token slot may each acquire a token.

    The slot is unlocked, so only "at least one token:ready" is guaranteed.
    """
    api = _FakeApi()

    async def _slow_api(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        return api(request)

    client = _mock_client(_slow_api)
    bridge = BridgeNode(_config(), _credentials(), host, client=client)

    bridge.on_input(BATCH)
    bridge.on_input(BATCH)
    await bridge.drain()

    statuses = _statuses(host)
    assert statuses.count("token:ready") >= 1
    assert statuses.count("data:sending") == 2
    assert len(api.token_requests) >= 1
    host.error.assert_not_called()


@pytest.mark.asyncio
async def test_close_drains_and_closes_owned_client(host: MagicMock) -> None:
    """close() should wait for in-flight events and close an owned client."""
    api = _FakeApi()
    bridge = BridgeNode(_config(), _credentials(), host)
    client = _mock_client(api)
    bridge._client = client

    bridge.on_input(BATCH)
    await bridge.close()

    assert _statuses(host)[-1] == "data:sending"
    assert client.is_closed
    assert bridge._client is None


@pytest.mark.asyncio
async def test_context_manager_keeps_injected_client_open(host: MagicMock) -> None:
    """A client passed in by the caller should not be closed by the bridge."""
    client = _mock_client(_FakeApi())

    async with BridgeNode(_config(), _credentials(), host, client=client) as bridge:
        await bridge.handle(BATCH)

    assert not client.is_closed
    await client.aclose()
