"""Local stand-in for the remote MCP endpoint.

Answers ``tools/list`` with the fallback tool set and executes ``tools/call``
against the Tavus API directly. ``send_interaction`` never leaves the process:
in-call interactions are acknowledged locally.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from .errors import INVALID_PARAMS, METHOD_NOT_FOUND, TOOL_ERROR, ProviderError
from .logging import get_logger
from .protocol import Request, Response, tool_envelope, utc_timestamp
from .provider import TavusClient
from .tools import fallback_tools, missing_required

logger = get_logger("simulator")

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class Simulator:
    """Deterministic JSON-RPC responder used when the remote endpoint is unusable."""

    def __init__(self, provider: TavusClient):
        self._provider = provider
        self._tools = {tool.name: tool for tool in fallback_tools()}
        self._handlers: dict[str, ToolHandler] = {
            "create_conversation": self._create_conversation,
            "send_message": self._send_message,
            "end_conversation": self._end_conversation,
            "send_interaction": self._send_interaction,
            "get_conversation_status": self._get_conversation_status,
        }

    async def simulate(self, request: Request) -> Response:
        logger.info(f"Using simulated MCP server for: {request.method}")

        if request.method == "tools/list":
            tools = [tool.to_dict() for tool in fallback_tools()]
            return Response.success(request.id, {"tools": tools}, source="simulated")

        if request.method == "tools/call":
            return await self._call_tool(request)

        return Response.failure(request.id, METHOD_NOT_FOUND, "Method not found", source="simulated")

    async def _call_tool(self, request: Request) -> Response:
        params = request.params
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            return Response.failure(
                request.id, INVALID_PARAMS, "Invalid params: expected {name, arguments}", source="simulated"
            )

        name = params["name"]
        args = params.get("arguments") or {}
        error_data = {"tool": name, "args": args}

        handler = self._handlers.get(name)
        if handler is None:
            return Response.failure(
                request.id, TOOL_ERROR, f"Unknown tool: {name}", error_data, source="simulated"
            )

        missing = missing_required(self._tools[name], args)
        if missing:
            return Response.failure(
                request.id,
                TOOL_ERROR,
                f"Missing required argument(s) for {name}: {', '.join(missing)}",
                error_data,
                source="simulated",
            )

        logger.debug(f"Executing simulated tool: {name}", extra={"tool_name": name, "tool_args": args})
        try:
            payload = await handler(args)
        except ProviderError as e:
            logger.error(f"Simulated tool {name} failed: {e}")
            return Response.failure(request.id, TOOL_ERROR, str(e), error_data, source="simulated")

        return Response.success(request.id, tool_envelope(name, payload), source="simulated")

    # -------------------------------------------------------------------------
    # Tool implementations
    # -------------------------------------------------------------------------

    async def _create_conversation(self, args: dict[str, Any]) -> Any:
        return await self._provider.create_conversation(args)

    async def _send_message(self, args: dict[str, Any]) -> dict[str, Any]:
        await self._provider.speak(args["conversation_id"], args["text"])
        return {
            "success": True,
            "message": "Message sent successfully via MCP",
            "conversation_id": args["conversation_id"],
            "text": args["text"],
        }

    async def _end_conversation(self, args: dict[str, Any]) -> dict[str, Any]:
        await self._provider.end_conversation(args["conversation_id"])
        return {
            "success": True,
            "message": "Conversation ended successfully via MCP",
            "conversation_id": args["conversation_id"],
        }

    async def _send_interaction(self, args: dict[str, Any]) -> dict[str, Any]:
        interaction_type = args["interaction_type"]
        logger.debug(f"Interaction: {interaction_type} {args.get('data')}")
        return {
            "success": True,
            "interaction_type": interaction_type,
            "conversation_id": args["conversation_id"],
            "data": args.get("data"),
            "message": f"{interaction_type} interaction sent successfully via MCP",
            "timestamp": utc_timestamp(),
        }

    async def _get_conversation_status(self, args: dict[str, Any]) -> Any:
        return await self._provider.get_conversation(args["conversation_id"])
