"""JSON-RPC 2.0 request/response types and the tool-call result envelope."""

from __future__ import annotations

import itertools
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from .errors import TransportError

JSONRPC_VERSION = "2.0"
INTERNAL_ERROR = -32603

Source = Literal["remote", "simulated"]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Request:
    """An outgoing JSON-RPC request."""

    id: int
    method: str
    params: Any = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.id,
            "method": self.method,
        }
        if self.params is not None:
            body["params"] = self.params
        return body


@dataclass(frozen=True)
class RpcError:
    code: int
    message: str
    data: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "RpcError":
        """Build an error from a response's ``error`` member.

        Raises:
            TransportError: If the member is not an object with an integer code
        """
        if not isinstance(data, dict):
            raise TransportError(f"Malformed error member: {data!r}")

        code = data.get("code", INTERNAL_ERROR)
        if isinstance(code, str) and code.lstrip("-").isdigit():
            code = int(code)
        if not isinstance(code, int) or isinstance(code, bool):
            raise TransportError(f"Malformed error code: {code!r}")

        return cls(
            code=code,
            message=str(data.get("message") or "Unknown error"),
            data=data.get("data"),
        )

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass(frozen=True)
class Response:
    """A JSON-RPC response; exactly one of ``result`` and ``error`` is meaningful.

    ``source`` records whether the remote endpoint or the simulator answered.
    It is not part of the wire format.
    """

    id: int | str | None
    result: Any = None
    error: RpcError | None = None
    source: Source = "remote"

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, request_id: int | str | None, result: Any, source: Source = "remote") -> "Response":
        return cls(id=request_id, result=result, source=source)

    @classmethod
    def failure(
        cls,
        request_id: int | str | None,
        code: int,
        message: str,
        data: Any = None,
        source: Source = "remote",
    ) -> "Response":
        return cls(id=request_id, error=RpcError(code, message, data), source=source)

    @classmethod
    def from_dict(cls, body: Any, source: Source = "remote") -> "Response":
        """Validate and build a Response from a decoded JSON body.

        Raises:
            TransportError: If the body is not a well-formed JSON-RPC response
        """
        if not isinstance(body, dict):
            raise TransportError(f"Response body is not an object: {type(body).__name__}")
        has_result = "result" in body
        has_error = body.get("error") is not None
        if has_result == has_error:
            raise TransportError("Response must carry exactly one of 'result' and 'error'")

        if has_error:
            return cls(id=body.get("id"), error=RpcError.from_dict(body["error"]), source=source)
        return cls(id=body.get("id"), result=body["result"], source=source)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            body["error"] = self.error.to_dict()
        else:
            body["result"] = self.result
        return body


class RequestCorrelator:
    """Hands out strictly increasing request ids and checks responses against them."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self.issued = 0

    def next_request(self, method: str, params: Any = None) -> Request:
        self.issued += 1
        return Request(id=next(self._counter), method=method, params=params)

    @staticmethod
    def matches(request: Request, response: Response) -> bool:
        # Some servers echo numeric ids back as strings
        return response.id == request.id or str(response.id) == str(request.id)


def parse_body(body: str) -> Any:
    """Decode a response body that is plain JSON or a single SSE ``data:`` event.

    Raises:
        TransportError: If no JSON document can be extracted
    """
    for line in body.split("\n"):
        line = line.strip()
        if line.startswith("data: "):
            try:
                return json.loads(line[6:])
            except json.JSONDecodeError as e:
                raise TransportError(f"Invalid JSON in SSE response: {e}")

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise TransportError(f"Could not parse MCP response: {e}")


# =============================================================================
# Tool-call result envelope
# =============================================================================


def tool_envelope(tool: str, payload: Any) -> dict[str, Any]:
    """Wrap a tool's payload the way tool results travel to the UI."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return {
        "content": [{"type": "text", "text": text}],
        "success": True,
        "tool": tool,
        "timestamp": utc_timestamp(),
    }


def decode_tool_result(result: Any) -> Any:
    """Unwrap ``content[0].text`` from a tool result, JSON-decoding it when possible.

    Falls back to the raw text on decode failure, and to the result itself
    when it carries no text content. Never raises.
    """
    if not isinstance(result, dict):
        return result

    content = result.get("content")
    if not isinstance(content, list) or not content:
        return result

    first = content[0]
    if not isinstance(first, dict):
        return result

    text = first.get("text")
    if not isinstance(text, str) or not text:
        return result

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
