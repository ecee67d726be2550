"""MCP client: tool discovery and tool calls over the resolving transport."""

from __future__ import annotations

from typing import Any

import httpx

from .config import ClientConfig, mask_secret
from .errors import INVALID_PARAMS, AvatarMCPError, ToolError
from .logging import get_logger, log_tool_call, log_tool_result
from .protocol import Response, Source, decode_tool_result
from .provider import TavusClient
from .simulator import Simulator
from .tools import Tool, ToolRegistry, fallback_tools, parse_tool_list, validate_arguments
from .transport import TransportResolver

logger = get_logger("mcp_client")


class MCPClient:
    """Client for the Tavus MCP tools, remote when reachable and simulated otherwise.

    The registry starts out holding the fallback tool set, so
    ``get_available_tools`` is never empty. Use ``MCPClient.create`` to build
    a client and run discovery in one step.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        provider: TavusClient | None = None,
    ):
        """Initialize the MCP client.

        Args:
            config: Endpoints and credentials (default: read from the environment)
            http_client: Shared HTTP client for the MCP endpoint and Tavus
            provider: Tavus client used by the simulator
        """
        self._config = config or ClientConfig.from_env()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self._config.timeout)
        self._provider = provider or TavusClient(self._config, self._client)
        self._simulator = Simulator(self._provider)
        self._transport = TransportResolver(self._config, self._simulator, self._client)
        self._registry = ToolRegistry(fallback_tools())
        self.last_source: Source | None = None

    @classmethod
    async def create(cls, config: ClientConfig | None = None, **kwargs: Any) -> "MCPClient":
        """Construct a client and run tool discovery."""
        client = cls(config, **kwargs)
        await client.discover()
        return client

    async def close(self) -> None:
        """Close owned HTTP clients."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "MCPClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @property
    def transport(self) -> TransportResolver:
        return self._transport

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def _send(self, method: str, params: Any = None) -> Response:
        response = await self._transport.send(method, params)
        self.last_source = response.source
        return response

    async def discover(self) -> list[Tool]:
        """Replace the registry with the tools the endpoint advertises.

        Falls back to the fixed tool set when discovery yields an error or no
        usable tools.

        Returns:
            The tools now registered
        """
        logger.info("Loading MCP tools")
        response = await self._send("tools/list", {})

        tools: list[Tool] = []
        if response.ok and isinstance(response.result, dict):
            tools = parse_tool_list(response.result.get("tools"))
        elif response.error is not None:
            logger.warning(f"tools/list failed: {response.error.message}")

        if not tools:
            logger.warning("No tools discovered, loading fallback tools")
            tools = fallback_tools()

        self._registry.replace(tools)
        logger.info(
            f"Loaded {len(self._registry)} tools: {self._registry.names()}",
            extra={"source": response.source},
        )
        return self.get_available_tools()

    def get_available_tools(self) -> list[Tool]:
        return self._registry.tools()

    def get_tool(self, name: str) -> Tool | None:
        return self._registry.get(name)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Call a tool and return its decoded payload.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            The JSON-decoded ``content[0].text`` of the result, the raw text if it
            is not JSON, or the bare result when it has no text content

        Raises:
            ToolError: If the arguments fail validation against a registered
                tool's schema, or the response carries an error
        """
        args = dict(arguments or {})

        tool = self._registry.get(name)
        if tool is None:
            logger.warning(f"Tool {name!r} is not registered, dispatching anyway")
        else:
            problems = validate_arguments(tool, args)
            if problems:
                raise ToolError(
                    INVALID_PARAMS,
                    f"Invalid arguments for {name}: {'; '.join(problems)}",
                    {"tool": name, "args": args},
                )

        started = log_tool_call(logger, name, args)
        response = await self._send("tools/call", {"name": name, "arguments": args})

        if response.error is not None:
            logger.error(
                f"Tool {name} failed: {response.error.message}",
                extra={"tool_name": name, "source": response.source},
            )
            raise ToolError(response.error.code, response.error.message, response.error.data)

        payload = decode_tool_result(response.result)
        log_tool_result(logger, name, payload, started, response.source)
        return payload

    async def check_connection(self) -> bool:
        """Return True when a ``tools/list`` round trip completes without an error.

        With simulation enabled this reports whether the client is operable,
        not whether the remote endpoint is reachable; see ``last_source``.
        """
        try:
            response = await self._send("tools/list", {})
        except (AvatarMCPError, httpx.HTTPError) as e:
            logger.error(f"MCP connection check failed: {e}")
            return False
        return response.ok

    def connection_info(self) -> dict[str, Any]:
        return {
            "api_key": mask_secret(self._config.mcp_api_key),
            "mcp_server_url": self._config.mcp_server_url,
            "remote_enabled": self._config.remote_enabled,
            "tools_loaded": len(self._registry),
            "is_connected": len(self._registry) > 0,
            "last_source": self.last_source,
            "requests_sent": self._transport.correlator.issued,
        }
