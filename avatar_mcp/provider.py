"""Tavus video-conversation API client."""

from __future__ import annotations

from typing import Any

import httpx

from .config import ClientConfig
from .errors import ProviderError
from .logging import get_logger

logger = get_logger("provider")

DEFAULT_CONVERSATION_PROPERTIES: dict[str, Any] = {
    "max_call_duration": 3600,
    "enable_recording": False,
    "enable_closed_captions": True,
    "language": "english",
}


class TavusClient:
    """Thin async wrapper over the Tavus conversations endpoints."""

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient):
        """Initialize the client.

        Args:
            config: Credentials and base URL
            http_client: HTTP client shared with the MCP transport
        """
        self._base_url = config.tavus_base_url.rstrip("/")
        self._api_key = config.tavus_api_key
        self._client = http_client

    def _headers(self, json_body: bool = False) -> dict[str, str]:
        headers = {"x-api-key": self._api_key}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._base_url}{path}"
        logger.debug(f"Tavus {method} {url}")

        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                headers=self._headers(json_body=json is not None),
            )
        except httpx.TimeoutException:
            raise ProviderError(f"Failed to {action}: Tavus API timeout")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProviderError(f"Failed to {action}: {e}")

        if response.status_code == 401:
            raise ProviderError(
                f"Failed to {action}: 401 - Tavus API authentication failed, check TAVUS_API_KEY"
            )
        if response.is_error:
            raise ProviderError(f"Failed to {action}: {response.status_code} - {response.text[:200]}")

        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError:
            raise ProviderError(f"Failed to {action}: response is not JSON")

    async def create_conversation(self, args: dict[str, Any]) -> dict[str, Any]:
        """Create a conversation and return Tavus' JSON body verbatim.

        Args:
            args: ``create_conversation`` tool arguments; ``replica_id`` and
                ``persona_id`` must be present

        Returns:
            Provider response including ``conversation_id`` and ``conversation_url``
        """
        body = {
            "replica_id": args["replica_id"],
            "persona_id": args["persona_id"],
            "conversation_name": args.get("conversation_name") or "MCP Conversation",
            "conversational_context": args.get("conversational_context"),
            "custom_greeting": args.get("custom_greeting"),
            "properties": args.get("properties") or dict(DEFAULT_CONVERSATION_PROPERTIES),
        }
        response = await self._request("POST", "/conversations", "create conversation", json=body)
        result = self._json(response, "create conversation")
        logger.info(f"Tavus conversation created: {result.get('conversation_id')}")
        return result

    async def speak(self, conversation_id: str, text: str) -> None:
        await self._request(
            "POST",
            f"/conversations/{conversation_id}/speak",
            "send message",
            json={"text": text},
        )

    async def end_conversation(self, conversation_id: str) -> None:
        await self._request("POST", f"/conversations/{conversation_id}/end", "end conversation")
        logger.info(f"Tavus conversation ended: {conversation_id}")

    async def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        response = await self._request(
            "GET", f"/conversations/{conversation_id}", "get conversation status"
        )
        return self._json(response, "get conversation status")
