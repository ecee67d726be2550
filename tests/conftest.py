"""Shared fixtures: a fake Tavus API and MCP endpoint behind httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from avatar_mcp.config import ClientConfig
from avatar_mcp.mcp_client import MCPClient

MCP_URL = "https://mcp.test/v1/mcp/tavus"
TAVUS_URL = "https://tavus.test/v2"
OPENROUTER_URL = "https://openrouter.test/api/v1"


def run(coro):
    return asyncio.run(coro)


def make_config(**overrides) -> ClientConfig:
    values = dict(
        mcp_api_key="mcp-secret-1234",
        mcp_server_url=MCP_URL,
        tavus_api_key="tavus-secret",
        tavus_base_url=TAVUS_URL,
        replica_id="r-replica",
        persona_id="p-persona",
        openrouter_api_key="or-secret",
        openrouter_base_url=OPENROUTER_URL,
        timeout=5.0,
    )
    values.update(overrides)
    return ClientConfig(**values)


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def rpc_error(request: httpx.Request, code: int, message: str) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": code, "message": message}}
    )


class FakeBackend:
    """Routes requests to a fake MCP endpoint and a fake Tavus API.

    The MCP endpoint is unreachable unless ``mcp_handler`` is set.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.mcp_handler = None
        self.tavus_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url.startswith(MCP_URL):
            if self.mcp_handler is None:
                raise httpx.ConnectError("connection refused", request=request)
            return self.mcp_handler(request)
        if url.startswith(TAVUS_URL):
            return self._tavus(request)
        return httpx.Response(404)

    def _tavus(self, request: httpx.Request) -> httpx.Response:
        if self.tavus_status != 200:
            return httpx.Response(self.tavus_status, text="tavus is down")

        path = request.url.path
        if request.method == "POST" and path.endswith("/conversations"):
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "conversation_id": "c-123",
                    "conversation_url": "https://tavus.daily.co/c-123",
                    "conversation_name": body["conversation_name"],
                    "status": "active",
                    "replica_id": body["replica_id"],
                    "persona_id": body["persona_id"],
                },
            )
        if request.method == "POST" and (path.endswith("/speak") or path.endswith("/end")):
            return httpx.Response(200, json={})
        if request.method == "GET":
            return httpx.Response(200, json={"conversation_id": path.rsplit("/", 1)[-1], "status": "active"})
        return httpx.Response(404)

    def calls_to(self, prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(prefix)]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


def make_http(backend: FakeBackend) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(backend))


def make_client(backend: FakeBackend, **config_overrides) -> MCPClient:
    return MCPClient(make_config(**config_overrides), http_client=make_http(backend))
