"""HTTP API consumed by the browser console: tools, conversation, interactions, events, chat."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from .chat import ERROR_REPLY, ChatClient, ChatMessage
from .config import ClientConfig
from .errors import ChatError, ConfigError, NoActiveConversation, SchemaError, ToolError
from .logging import get_logger
from .mcp_client import MCPClient
from .session import InteractionSession
from .tools import build_arguments

logger = get_logger("server")

# Created on startup unless injected through create_app()
_config: ClientConfig | None = None
_session: InteractionSession | None = None
_chat: ChatClient | None = None


async def startup() -> None:
    """Create the MCP client, run discovery and set up the chat client."""
    global _config, _session, _chat

    _config = _config or ClientConfig.from_env()

    if _session is None:
        logger.info(f"Initializing MCP client, endpoint: {_config.mcp_server_url or 'simulation only'}")
        client = await MCPClient.create(_config)
        _session = InteractionSession(client)

    if _chat is None:
        try:
            _chat = ChatClient(_config)
            logger.info(f"Chat enabled ({_chat.model})")
        except ConfigError as e:
            logger.warning(f"Chat disabled: {e}")


async def shutdown() -> None:
    """Clean up on server shutdown."""
    if _session:
        await _session.client.close()
        logger.info("MCP client closed")
    if _chat:
        await _chat.close()


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    await startup()
    try:
        yield
    finally:
        await shutdown()


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _tool_error(e: ToolError) -> JSONResponse:
    return JSONResponse({"error": e.message, **e.to_dict()}, status_code=502)


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        return None
    return body if isinstance(body, dict) else None


# =============================================================================
# Tools
# =============================================================================


async def health(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({
        "status": "ok",
        "session_initialized": _session is not None,
        "chat_enabled": _chat is not None,
    })


async def tools(request: Request) -> JSONResponse:
    """List the registered tools."""
    if not _session:
        return _error("Session not initialized", 500)

    return JSONResponse({"tools": [t.to_dict() for t in _session.client.get_available_tools()]})


async def discover_tools(request: Request) -> JSONResponse:
    """Re-run tool discovery."""
    if not _session:
        return _error("Session not initialized", 500)

    discovered = await _session.client.discover()
    return JSONResponse({
        "tools": [t.to_dict() for t in discovered],
        "source": _session.client.last_source,
    })


async def call_tool(request: Request) -> JSONResponse:
    """Call a tool with JSON arguments, or raw form fields coerced by its schema."""
    if not _session:
        return _error("Session not initialized", 500)

    body = await _json_body(request)
    if body is None or not isinstance(body.get("name"), str):
        return _error("Expected a JSON object with a tool name", 400)

    name = body["name"]
    arguments = body.get("arguments") or {}
    if "form" in body:
        tool = _session.client.get_tool(name)
        if tool is None:
            return _error(f"Unknown tool: {name}", 404)
        try:
            arguments = build_arguments(tool, body["form"])
        except SchemaError as e:
            return _error(str(e), 400)

    try:
        result = await _session.call_tool(name, arguments)
    except ToolError as e:
        return _tool_error(e)

    return JSONResponse({"result": result, "source": _session.client.last_source})


async def connection(request: Request) -> JSONResponse:
    """Report connection details and whether a tools/list round trip succeeds."""
    if not _session:
        return _error("Session not initialized", 500)

    operable = await _session.client.check_connection()
    return JSONResponse({**_session.client.connection_info(), "operable": operable})


# =============================================================================
# Conversation
# =============================================================================


async def start_conversation(request: Request) -> JSONResponse:
    if not _session:
        return _error("Session not initialized", 500)

    body = await _json_body(request) or {}
    try:
        result = await _session.start_conversation(body)
    except (ConfigError, SchemaError) as e:
        return _error(str(e), 400)
    except ToolError as e:
        return _tool_error(e)

    return JSONResponse(result)


async def end_conversation(request: Request) -> JSONResponse:
    if not _session:
        return _error("Session not initialized", 500)

    if not _session.conversation_id:
        return _error("No active conversation", 409)

    ended = await _session.end_conversation()
    return JSONResponse({"success": ended})


async def conversation_status(request: Request) -> JSONResponse:
    if not _session:
        return _error("Session not initialized", 500)

    try:
        status = await _session.get_status()
    except NoActiveConversation as e:
        return _error(str(e), 409)
    except ToolError as e:
        return _tool_error(e)

    return JSONResponse(status)


async def conversation_message(request: Request) -> JSONResponse:
    """Relay text for the avatar to speak."""
    if not _session:
        return _error("Session not initialized", 500)

    body = await _json_body(request)
    if not body or not body.get("text"):
        return _error("No text provided", 400)

    sent = await _session.send_message(body["text"])
    return JSONResponse({"success": sent})


# =============================================================================
# Interactions & events
# =============================================================================


async def interaction(request: Request) -> JSONResponse:
    """Run one in-call interaction: echo, respond, interrupt, overwrite_context, set_sensitivity."""
    if not _session:
        return _error("Session not initialized", 500)

    action = request.path_params["action"]
    body = await _json_body(request) or {}

    if action == "echo":
        success = await _session.echo(str(body.get("text", "")))
    elif action == "respond":
        success = await _session.respond(str(body.get("text", "")))
    elif action == "interrupt":
        success = await _session.interrupt(body.get("text"))
    elif action == "overwrite_context":
        success = await _session.overwrite_context(str(body.get("context", "")))
    elif action == "set_sensitivity":
        try:
            value = float(body.get("sensitivity"))
        except (TypeError, ValueError):
            return _error("sensitivity must be a number", 400)
        success = await _session.set_sensitivity(value)
    else:
        return _error(f"Unknown interaction: {action}", 404)

    return JSONResponse({"success": success, "state": _session.state.to_dict()})


async def events(request: Request) -> JSONResponse:
    if not _session:
        return _error("Session not initialized", 500)

    return JSONResponse({"events": [e.to_dict() for e in _session.events]})


async def state(request: Request) -> JSONResponse:
    if not _session:
        return _error("Session not initialized", 500)

    return JSONResponse({
        **_session.state.to_dict(),
        "conversation_id": _session.conversation_id,
        "conversation_url": _session.conversation_url,
    })


# =============================================================================
# Chat
# =============================================================================


async def chat(request: Request) -> JSONResponse | StreamingResponse:
    """Answer a chat turn, optionally streaming, and relay the user's text to the avatar."""
    if not _chat:
        return _error("Chat not configured (set OPENROUTER_API_KEY)", 503)

    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON", 400)

    try:
        messages = [ChatMessage.from_dict(m) for m in body.get("messages", [])]
    except (ValueError, AttributeError) as e:
        return _error(f"Invalid messages: {e}", 400)

    if not messages:
        return _error("No messages provided", 400)

    if body.get("relay") and _session and _session.conversation_id and messages[-1].role == "user":
        await _session.send_message(messages[-1].content)

    if not body.get("stream"):
        try:
            reply = await _chat.complete(messages)
        except ChatError as e:
            logger.error(f"Chat failed: {e}")
            return _error(str(e), 502, reply=ERROR_REPLY)
        return JSONResponse({"reply": ChatMessage(role="assistant", content=reply).to_dict()})

    async def event_stream():
        try:
            async for delta in _chat.stream(messages):
                yield format_sse_event("text", text=delta)
            yield format_sse_event("done")
        except ChatError as e:
            logger.exception("Error in chat stream")
            yield format_sse_event("error", error=str(e), text=ERROR_REPLY)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


def format_sse_event(event_type: str, **fields: Any) -> str:
    """Format a chat stream event as an SSE message."""
    data = {"type": event_type}
    data.update({key: value for key, value in fields.items() if value is not None})
    return f"data: {json.dumps(data)}\n\n"


def create_app(
    config: ClientConfig | None = None,
    session: InteractionSession | None = None,
    chat_client: ChatClient | None = None,
) -> Starlette:
    """Create the Starlette application.

    Args:
        config: Configuration (default: read from the environment on startup)
        session: Pre-built session; skips client creation on startup
        chat_client: Pre-built chat client
    """
    global _config, _session, _chat
    _config, _session, _chat = config, session, chat_client

    routes = [
        Route("/health", health),
        Route("/api/tools", tools),
        Route("/api/tools/discover", discover_tools, methods=["POST"]),
        Route("/api/tools/call", call_tool, methods=["POST"]),
        Route("/api/connection", connection),
        Route("/api/conversation", start_conversation, methods=["POST"]),
        Route("/api/conversation", end_conversation, methods=["DELETE"]),
        Route("/api/conversation/status", conversation_status),
        Route("/api/conversation/message", conversation_message, methods=["POST"]),
        Route("/api/interactions/{action}", interaction, methods=["POST"]),
        Route("/api/events", events),
        Route("/api/state", state),
        Route("/api/chat", chat, methods=["POST"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    # Add CORS middleware for the browser front-end
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


def run_server(
    config: ClientConfig | None = None,
    host: str = "0.0.0.0",
    port: int = 3005,
    log_level: str = "info",
) -> None:
    """Run the API server."""
    import uvicorn

    logger.info(f"Starting avatar MCP server on http://{host}:{port}")

    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=log_level,
    )
