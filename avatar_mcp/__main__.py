"""Entry point for running as `python -m avatar_mcp`.

Commands:
  python -m avatar_mcp                 # Start the API server (port 3005)
  python -m avatar_mcp tools           # Discover and print the available tools
  python -m avatar_mcp check           # Run a tools/list round trip
  python -m avatar_mcp call NAME ...   # Call one tool and print its result
"""

import argparse
import asyncio
import json
import sys


def main() -> None:
    """Parse command and dispatch."""
    parser = argparse.ArgumentParser(
        description="Avatar MCP console back-end",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  serve   Start the API server (default)
  tools   Discover and list tools
  check   Check that the MCP client is operable
  call    Call a tool with JSON arguments

Examples:
  python -m avatar_mcp -v
  python -m avatar_mcp tools
  python -m avatar_mcp call send_interaction --args '{"conversation_id": "c1", "interaction_type": "echo", "data": {"text": "hi"}}'
  MCP_SERVER_URL= python -m avatar_mcp check   # simulation only
        """,
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "tools", "check", "call"],
        default="serve",
        help="Command to run (default: serve)",
    )
    parser.add_argument("tool", nargs="?", help="Tool name for the call command")
    parser.add_argument("--args", default="{}", help="JSON arguments for the call command")

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG, -vv for TRACE with full tool payloads)",
    )
    parser.add_argument("--log-file", help="Write structured JSON logs to file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Base log level (default: INFO, overridden by --verbose)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=3005, help="Port to bind to")

    args = parser.parse_args()

    from .config import ClientConfig
    from .errors import ConfigError
    from .logging import setup_logging

    setup_logging(verbosity=args.verbose, log_file=args.log_file, log_level=args.log_level)

    try:
        config = ClientConfig.from_env()
    except ConfigError as e:
        parser.error(str(e))

    if args.command == "serve":
        from .server import run_server

        log_level = "debug" if args.verbose else "info"
        run_server(config, host=args.host, port=args.port, log_level=log_level)
        return

    if args.command == "call":
        if not args.tool:
            parser.error("call requires a tool name")
        try:
            tool_args = json.loads(args.args)
        except json.JSONDecodeError as e:
            parser.error(f"--args is not valid JSON: {e}")
        sys.exit(asyncio.run(run_call(config, args.tool, tool_args)))

    runner = run_tools if args.command == "tools" else run_check
    sys.exit(asyncio.run(runner(config)))


async def run_tools(config) -> int:
    """Print discovered tools with their parameters."""
    from .mcp_client import MCPClient

    async with await MCPClient.create(config) as client:
        for tool in client.get_available_tools():
            print(f"{tool.name}: {tool.description}")
            for name, schema in tool.properties.items():
                marker = "*" if name in tool.required else " "
                print(f"  {marker} {name} ({schema.type.value}) {schema.description}")
        print(f"\nsource: {client.last_source}")
    return 0


async def run_check(config) -> int:
    from .mcp_client import MCPClient

    async with MCPClient(config) as client:
        ok = await client.check_connection()
        print(json.dumps({**client.connection_info(), "operable": ok}, indent=2))
    return 0 if ok else 1


async def run_call(config, tool: str, tool_args: dict) -> int:
    from .errors import ToolError
    from .mcp_client import MCPClient

    async with await MCPClient.create(config) as client:
        try:
            result = await client.call_tool(tool, tool_args)
        except ToolError as e:
            print(f"{e} (code {e.code})", file=sys.stderr)
            return 1
        print(json.dumps(result, indent=2) if not isinstance(result, str) else result)
    return 0


if __name__ == "__main__":
    main()
