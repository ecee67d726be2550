"""Remote-first JSON-RPC transport with simulator fallback."""

from __future__ import annotations

from typing import Any

import httpx

from .config import ClientConfig
from .errors import TransportError
from .logging import get_logger, summarize
from .protocol import Request, RequestCorrelator, Response, parse_body
from .simulator import Simulator

logger = get_logger("transport")


class TransportResolver:
    """Sends JSON-RPC requests to the remote MCP endpoint.

    Any failure on the remote path (network error, timeout, non-2xx status,
    unparseable or mismatched body) is logged and answered by the simulator,
    so ``send`` never raises for transport reasons. The ``source`` field of
    the returned Response tells the two paths apart.
    """

    def __init__(
        self,
        config: ClientConfig,
        simulator: Simulator,
        http_client: httpx.AsyncClient,
        correlator: RequestCorrelator | None = None,
    ):
        self._url = config.mcp_server_url
        self._api_key = config.mcp_api_key
        self._extra_headers = dict(config.extra_headers)
        self._simulator = simulator
        self._correlator = correlator or RequestCorrelator()
        self._client = http_client
        self._timeout = config.timeout

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    async def send(self, method: str, params: Any = None) -> Response:
        """Dispatch one request and return its response, remote or simulated."""
        request = self._correlator.next_request(method, params if params is not None else {})
        extra = {"request_id": request.id, "rpc_method": method}
        logger.debug(f"MCP request: {method} {summarize(request.params)}", extra=extra)

        if self._url is None:
            return await self._simulator.simulate(request)

        try:
            response = await self._post(request)
        except TransportError as e:
            logger.warning(f"MCP endpoint failed, falling back to simulation: {e}", extra=extra)
            return await self._simulator.simulate(request)

        logger.debug(f"MCP response: {summarize(response.to_dict())}", extra={**extra, "source": "remote"})
        return response

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "Authorization": f"Bearer {self._api_key}",
            "X-API-Key": self._api_key,
            **self._extra_headers,
        }

    async def _post(self, request: Request) -> Response:
        try:
            http_response = await self._client.post(
                self._url,
                json=request.to_dict(),
                headers=self._headers(),
                timeout=self._timeout,
            )
        except httpx.TimeoutException:
            raise TransportError(f"timed out after {self._timeout}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"HTTP error communicating with MCP server: {e}")

        if not http_response.is_success:
            raise TransportError(f"MCP server returned status {http_response.status_code}")

        response = Response.from_dict(parse_body(http_response.text), source="remote")
        if not self._correlator.matches(request, response):
            raise TransportError(f"Response id {response.id!r} does not match request id {request.id}")
        return response
