"""Runtime configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .errors import ConfigError

DEFAULT_MCP_SERVER_URL = "https://api.smithery.ai/v1/mcp/tavus"
DEFAULT_TAVUS_BASE_URL = "https://tavusapi.com/v2"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_CHAT_MODEL = "deepseek/deepseek-chat-v3-0324:free"
DEFAULT_TIMEOUT = 10.0


@dataclass
class ClientConfig:
    """Credentials and endpoints for the MCP endpoint, Tavus and OpenRouter.

    An empty ``mcp_server_url`` disables the remote MCP path entirely, so
    every request is answered by the simulator.
    """

    mcp_api_key: str = ""
    mcp_server_url: str | None = DEFAULT_MCP_SERVER_URL
    tavus_api_key: str = ""
    tavus_base_url: str = DEFAULT_TAVUS_BASE_URL
    replica_id: str = ""
    persona_id: str = ""
    openrouter_api_key: str = ""
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    chat_model: str = DEFAULT_CHAT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    extra_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if not self.mcp_server_url:
            self.mcp_server_url = None

    @property
    def remote_enabled(self) -> bool:
        return self.mcp_server_url is not None

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from environment variables.

        Variables:
            MCP_API_KEY, MCP_SERVER_URL, TAVUS_API_KEY, TAVUS_BASE_URL,
            TAVUS_REPLICA_ID, TAVUS_PERSONA_ID, OPENROUTER_API_KEY,
            CHAT_MODEL, HTTP_TIMEOUT

        Raises:
            ConfigError: If HTTP_TIMEOUT is not a positive number
        """
        raw_timeout = os.environ.get("HTTP_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"HTTP_TIMEOUT must be a number, got {raw_timeout!r}")

        return cls(
            mcp_api_key=os.environ.get("MCP_API_KEY", ""),
            mcp_server_url=os.environ.get("MCP_SERVER_URL", DEFAULT_MCP_SERVER_URL),
            tavus_api_key=os.environ.get("TAVUS_API_KEY", ""),
            tavus_base_url=os.environ.get("TAVUS_BASE_URL", DEFAULT_TAVUS_BASE_URL),
            replica_id=os.environ.get("TAVUS_REPLICA_ID", ""),
            persona_id=os.environ.get("TAVUS_PERSONA_ID", ""),
            openrouter_api_key=os.environ.get("OPENROUTER_API_KEY", ""),
            chat_model=os.environ.get("CHAT_MODEL", DEFAULT_CHAT_MODEL),
            timeout=timeout,
        )


def mask_secret(value: str) -> str:
    """Mask a credential for display, keeping the last four characters."""
    if not value:
        return "Not set"
    return "***" + value[-4:]
