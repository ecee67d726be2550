"""Tests for MCPClient discovery, tool calls and connection checks."""

import json

import httpx
import pytest

from conftest import MCP_URL, make_client, make_config, make_http, rpc_error, rpc_result, run

from avatar_mcp.errors import ToolError
from avatar_mcp.mcp_client import MCPClient
from avatar_mcp.protocol import tool_envelope


def remote_tools(*names):
    return {
        "tools": [
            {"name": name, "description": f"{name} tool", "inputSchema": {"type": "object", "properties": {}}}
            for name in names
        ]
    }


class TestDiscovery:
    """Tool discovery and the fallback set."""

    def test_registry_seeded_before_discovery(self, backend):
        client = make_client(backend)

        assert len(client.get_available_tools()) == 5
        assert backend.requests == []

    def test_create_with_unreachable_remote_uses_fallback(self, backend):
        async def scenario():
            return await MCPClient.create(make_config(), http_client=make_http(backend))

        client = run(scenario())
        tools = client.get_available_tools()

        assert [t.name for t in tools][0] == "create_conversation"
        assert len(tools) == 5
        assert client.last_source == "simulated"

    def test_remote_tools_replace_registry_in_order(self, backend):
        backend.mcp_handler = lambda request: rpc_result(request, remote_tools("zeta", "alpha"))
        client = make_client(backend)

        run(client.discover())

        assert [t.name for t in client.get_available_tools()] == ["zeta", "alpha"]
        assert client.last_source == "remote"

    def test_remote_error_installs_fallback(self, backend):
        backend.mcp_handler = lambda request: rpc_error(request, -32601, "Method not found")
        client = make_client(backend)

        run(client.discover())

        assert len(client.get_available_tools()) == 5

    def test_empty_remote_list_installs_fallback(self, backend):
        backend.mcp_handler = lambda request: rpc_result(request, {"tools": []})
        client = make_client(backend)

        run(client.discover())

        assert client.get_tool("send_interaction") is not None

    def test_nullable_parameter_type_is_accepted(self, backend):
        tools = {
            "tools": [
                {
                    "name": "x",
                    "inputSchema": {"type": "object", "properties": {"a": {"type": ["string", "null"]}}},
                }
            ]
        }
        backend.mcp_handler = lambda request: rpc_result(request, tools)
        client = make_client(backend)

        run(client.discover())

        assert client.get_tool("x").properties["a"].type.value == "string"

    def test_only_malformed_definitions_install_fallback(self, backend):
        tools = {
            "tools": [
                {"name": "a", "inputSchema": {"type": "object", "properties": {"p": "string"}}},
                {"name": "b", "inputSchema": ["not", "a", "schema"]},
                {"name": "c", "inputSchema": {"type": "object", "properties": {"p": {"type": 3}}}},
            ]
        }
        backend.mcp_handler = lambda request: rpc_result(request, tools)

        async def scenario():
            return await MCPClient.create(make_config(), http_client=make_http(backend))

        client = run(scenario())

        assert len(client.get_available_tools()) == 5
        assert client.get_tool("a") is None

    def test_invalid_server_url_falls_back_to_simulation(self, backend):
        async def scenario():
            return await MCPClient.create(
                make_config(mcp_server_url="http://mcp.test:not-a-port/"), http_client=make_http(backend)
            )

        client = run(scenario())

        assert len(client.get_available_tools()) == 5
        assert client.last_source == "simulated"
        assert backend.requests == []


class TestCallTool:
    """Tool calls, errors and result decoding."""

    def test_unknown_tool_rejected_by_simulator(self, backend):
        client = make_client(backend)

        with pytest.raises(ToolError) as excinfo:
            run(client.call_tool("does_not_exist", {}))

        assert excinfo.value.code == -32000
        assert "Unknown tool" in str(excinfo.value)
        assert str(excinfo.value).startswith("MCP Tool Error:")

    def test_invalid_arguments_rejected_before_dispatch(self, backend):
        client = make_client(backend)

        with pytest.raises(ToolError) as excinfo:
            run(client.call_tool("send_message", {"conversation_id": "c1"}))

        assert excinfo.value.code == -32602
        assert client.transport.correlator.issued == 0
        assert backend.requests == []

    def test_simulated_interaction_payload(self, backend):
        client = make_client(backend)

        result = run(
            client.call_tool(
                "send_interaction",
                {"conversation_id": "c1", "interaction_type": "echo", "data": {"text": "hi"}},
            )
        )

        assert result["success"] is True
        assert result["data"] == {"text": "hi"}
        assert client.last_source == "simulated"

    def test_remote_plain_text_result(self, backend):
        backend.mcp_handler = lambda request: rpc_result(request, tool_envelope("get_conversation_status", "active"))
        client = make_client(backend)

        result = run(client.call_tool("get_conversation_status", {"conversation_id": "c1"}))

        assert result == "active"
        assert client.last_source == "remote"

    def test_remote_result_without_content(self, backend):
        backend.mcp_handler = lambda request: rpc_result(request, {"status": "ok"})
        client = make_client(backend)

        assert run(client.call_tool("get_conversation_status", {"conversation_id": "c1"})) == {"status": "ok"}

    def test_remote_error_preserves_code_and_data(self, backend):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": body["id"],
                    "error": {"code": -32050, "message": "quota exceeded", "data": {"retry": 30}},
                },
            )

        backend.mcp_handler = handler
        client = make_client(backend)

        with pytest.raises(ToolError) as excinfo:
            run(client.call_tool("end_conversation", {"conversation_id": "c1"}))

        assert excinfo.value.code == -32050
        assert excinfo.value.message == "quota exceeded"
        assert excinfo.value.data == {"retry": 30}

    def test_correlation_ids_count_dispatches(self, backend):
        client = make_client(backend)

        async def scenario():
            await client.discover()
            for _ in range(3):
                await client.call_tool(
                    "send_interaction",
                    {"conversation_id": "c1", "interaction_type": "interrupt", "data": {}},
                )
            with pytest.raises(ToolError):
                await client.call_tool("nope", {})

        run(scenario())

        ids = [json.loads(r.content)["id"] for r in backend.calls_to(MCP_URL)]
        assert ids == [1, 2, 3, 4, 5]
        assert client.transport.correlator.issued == 5


class TestConnection:
    """Connection checks and info."""

    def test_check_connection_true_when_simulating(self, backend):
        client = make_client(backend)

        assert run(client.check_connection()) is True
        assert client.last_source == "simulated"

    def test_check_connection_false_on_remote_error(self, backend):
        backend.mcp_handler = lambda request: rpc_error(request, -32601, "Method not found")
        client = make_client(backend)

        assert run(client.check_connection()) is False

    def test_connection_info_masks_key(self, backend):
        client = make_client(backend)

        info = client.connection_info()

        assert info["api_key"] == "***1234"
        assert info["mcp_server_url"] == MCP_URL
        assert info["tools_loaded"] == 5
        assert info["is_connected"] is True
