"""Text chat with an LLM through OpenRouter's OpenAI-compatible API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal

import httpx

from .config import ClientConfig
from .errors import ChatError, ConfigError
from .logging import get_logger
from .protocol import utc_timestamp

logger = get_logger("chat")

SYSTEM_PROMPT = """You are DeepSeek V3, an advanced AI assistant. When greeting users or introducing yourself, use a casual, engaging style, for example:

- "Hey there! Got a question about one of your favorite topics? Let's dive into something cool."
- "Welcome back! If you've just read a post, feel free to ask me anything about it. I'm here to help you go deeper."

You are helpful, harmless, and honest. You're part of a video chat application where users can also interact with an AI avatar through video. Keep your responses engaging and conversational, focusing on helping users explore topics they're curious about."""

ERROR_REPLY = (
    "Sorry, I encountered an error while processing your message. Please try again."
)

# Identifies the app to OpenRouter
APP_URL = "http://localhost:3005"


@dataclass
class ChatMessage:
    """A message in the text chat."""

    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str = field(default_factory=utc_timestamp)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        role = data.get("role")
        if role not in ("user", "assistant", "system"):
            raise ValueError(f"Invalid chat role: {role!r}")
        return cls(role=role, content=str(data.get("content", "")))

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


class ChatClient:
    """OpenRouter chat completions, plain or streamed."""

    def __init__(self, config: ClientConfig, http_client: httpx.AsyncClient | None = None):
        """Initialize the chat client.

        Args:
            config: Supplies the OpenRouter key, base URL and model
            http_client: Shared HTTP client (created and owned here when omitted)

        Raises:
            ConfigError: If no OpenRouter API key is configured
        """
        if not config.openrouter_api_key:
            raise ConfigError("OPENROUTER_API_KEY environment variable not set")

        self._url = f"{config.openrouter_base_url.rstrip('/')}/chat/completions"
        self._model = config.chat_model
        self._headers = {
            "Authorization": f"Bearer {config.openrouter_api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": APP_URL,
            "X-Title": "AI Video Chat - DeepSeek V3",
        }
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=60.0)

    @property
    def model(self) -> str:
        return self._model

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _request_body(self, messages: list[ChatMessage], stream: bool) -> dict[str, Any]:
        converted = [{"role": "system", "content": SYSTEM_PROMPT}]
        for msg in messages:
            if msg.role == "system":
                # Replaced by our own prompt
                continue
            converted.append({"role": msg.role, "content": msg.content})

        return {
            "model": self._model,
            "messages": converted,
            "temperature": 0.7,
            "max_tokens": 2048,
            "stream": stream,
        }

    async def complete(self, messages: list[ChatMessage]) -> str:
        """Return the assistant's full reply.

        Raises:
            ChatError: On HTTP failure or an empty completion
        """
        logger.info(f"Chat completion with {len(messages)} messages ({self._model})")
        try:
            response = await self._client.post(
                self._url,
                json=self._request_body(messages, stream=False),
                headers=self._headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ChatError(f"HTTP error: {e}")

        if response.status_code != 200:
            raise ChatError(f"OpenRouter API error: {response.status_code} - {response.text[:200]}")

        try:
            data = response.json()
        except ValueError:
            raise ChatError("OpenRouter returned a non-JSON body")

        choices = data.get("choices") or []
        if not choices:
            raise ChatError("No response from OpenRouter API")

        logger.debug(f"Model used: {data.get('model')}")
        return choices[0].get("message", {}).get("content", "")

    async def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Yield text deltas as they arrive.

        Raises:
            ChatError: On HTTP failure or a non-200 status
        """
        logger.info(f"Streaming chat completion with {len(messages)} messages ({self._model})")
        try:
            async with self._client.stream(
                "POST",
                self._url,
                json=self._request_body(messages, stream=True),
                headers=self._headers,
            ) as response:
                if response.status_code != 200:
                    error_text = await response.aread()
                    raise ChatError(
                        f"OpenRouter API error: {response.status_code} - {error_text.decode()[:200]}"
                    )

                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue

                    data = line[6:]
                    if data == "[DONE]":
                        break

                    try:
                        chunk = json.loads(data)
                    except json.JSONDecodeError:
                        continue

                    choices = chunk.get("choices", [])
                    if not choices:
                        continue

                    if content := choices[0].get("delta", {}).get("content"):
                        yield content

        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ChatError(f"HTTP error: {e}")
