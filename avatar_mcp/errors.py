"""Exception types shared across the client, simulator and session layers."""

from __future__ import annotations

from typing import Any

# JSON-RPC error codes used by the simulator and the client
TOOL_ERROR = -32000
INVALID_PARAMS = -32602
METHOD_NOT_FOUND = -32601


class AvatarMCPError(Exception):
    """Base class for all avatar_mcp errors."""

    pass


class ConfigError(AvatarMCPError):
    """Raised when configuration is missing or invalid."""

    pass


class TransportError(AvatarMCPError):
    """Raised when the remote MCP endpoint cannot produce a usable response.

    Never escapes the transport layer: it is logged and answered by the
    simulator instead.
    """

    pass


class ProtocolError(AvatarMCPError):
    """Raised when a JSON-RPC response carries an ``error`` member."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ToolError(ProtocolError):
    """Raised by ``MCPClient.call_tool`` when a tool call fails."""

    def __str__(self) -> str:
        return f"MCP Tool Error: {self.message}"


class NoActiveConversation(AvatarMCPError):
    """Raised when a conversation-scoped operation runs with no conversation bound."""

    def __init__(self, message: str = "No active conversation"):
        super().__init__(message)


class ProviderError(AvatarMCPError):
    """Raised when the video-conversation provider rejects a request."""

    pass


class SchemaError(AvatarMCPError):
    """Raised when a tool's input schema breaks its own invariants."""

    pass


class ChatError(AvatarMCPError):
    """Raised when the chat completion API fails."""

    pass
