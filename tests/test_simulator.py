"""Tests for the local MCP simulator."""

import json

from conftest import TAVUS_URL, make_config, make_http, run

from avatar_mcp.protocol import RequestCorrelator, decode_tool_result
from avatar_mcp.provider import TavusClient
from avatar_mcp.simulator import Simulator


def simulate(backend, method, params=None):
    async def scenario():
        simulator = Simulator(TavusClient(make_config(), make_http(backend)))
        request = RequestCorrelator().next_request(method, params)
        return await simulator.simulate(request)

    return run(scenario())


def call(backend, name, arguments):
    return simulate(backend, "tools/call", {"name": name, "arguments": arguments})


def test_tools_list_returns_fallback_set(backend):
    response = simulate(backend, "tools/list", {})

    assert response.ok
    assert response.source == "simulated"
    names = [t["name"] for t in response.result["tools"]]
    assert names[-1] == "get_conversation_status"
    assert len(names) == 5


def test_unknown_method(backend):
    response = simulate(backend, "resources/list", {})

    assert response.error.code == -32601
    assert response.error.message == "Method not found"


def test_unknown_tool(backend):
    response = call(backend, "does_not_exist", {})

    assert response.error.code == -32000
    assert "Unknown tool" in response.error.message
    assert response.error.data == {"tool": "does_not_exist", "args": {}}


def test_malformed_tool_call_params(backend):
    response = simulate(backend, "tools/call", {"arguments": {}})

    assert response.error.code == -32602


def test_send_interaction_is_answered_locally(backend):
    response = call(
        backend,
        "send_interaction",
        {"conversation_id": "c1", "interaction_type": "set_sensitivity", "data": {"sensitivity": 0.73}},
    )

    payload = decode_tool_result(response.result)
    assert response.result["success"] is True
    assert response.result["tool"] == "send_interaction"
    assert payload["data"]["sensitivity"] == 0.73
    assert payload["interaction_type"] == "set_sensitivity"
    assert payload["message"] == "set_sensitivity interaction sent successfully via MCP"
    assert backend.requests == []


def test_create_conversation_requires_ids(backend):
    response = call(backend, "create_conversation", {"replica_id": "r1"})

    assert response.error.code == -32000
    assert "persona_id" in response.error.message
    assert backend.requests == []


def test_create_conversation_posts_to_tavus_with_defaults(backend):
    response = call(backend, "create_conversation", {"replica_id": "r1", "persona_id": "p1"})

    payload = decode_tool_result(response.result)
    assert payload["conversation_id"] == "c-123"

    [request] = backend.calls_to(TAVUS_URL)
    body = json.loads(request.content)
    assert request.url.path == "/v2/conversations"
    assert request.headers["x-api-key"] == "tavus-secret"
    assert body["conversation_name"] == "MCP Conversation"
    assert body["properties"]["max_call_duration"] == 3600
    assert body["properties"]["language"] == "english"


def test_send_message_speaks_through_tavus(backend):
    response = call(backend, "send_message", {"conversation_id": "c9", "text": "hello"})

    payload = decode_tool_result(response.result)
    assert payload == {
        "success": True,
        "message": "Message sent successfully via MCP",
        "conversation_id": "c9",
        "text": "hello",
    }
    [request] = backend.requests
    assert request.url.path == "/v2/conversations/c9/speak"
    assert json.loads(request.content) == {"text": "hello"}


def test_get_conversation_status(backend):
    response = call(backend, "get_conversation_status", {"conversation_id": "c9"})

    assert decode_tool_result(response.result) == {"conversation_id": "c9", "status": "active"}
    assert backend.requests[0].method == "GET"


def test_provider_failure_becomes_tool_error(backend):
    backend.tavus_status = 500

    response = call(backend, "end_conversation", {"conversation_id": "c9"})

    assert response.error.code == -32000
    assert response.error.message.startswith("Failed to end conversation: 500")
    assert response.error.data["tool"] == "end_conversation"


def test_invalid_provider_url_becomes_tool_error(backend):
    async def scenario():
        config = make_config(tavus_base_url="http://tavus.test:not-a-port/v2")
        simulator = Simulator(TavusClient(config, make_http(backend)))
        request = RequestCorrelator().next_request(
            "tools/call", {"name": "end_conversation", "arguments": {"conversation_id": "c9"}}
        )
        return await simulator.simulate(request)

    response = run(scenario())

    assert response.error.code == -32000
    assert response.error.message.startswith("Failed to end conversation")
    assert backend.requests == []
