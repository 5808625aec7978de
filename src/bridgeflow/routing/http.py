"""JSON-over-HTTP transport shared by the aggregator adapters."""

import logging
from typing import Any, Optional

import httpx

from bridgeflow.errors import ProviderHttpError
from bridgeflow.routing.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ProviderHttpClient:
    """Thin wrapper around ``httpx.AsyncClient`` for one provider base URL.

    HTTP and transport failures are converted into ``ProviderHttpError`` so
    the retry policy can classify them by status code.
    """

    def __init__(
        self,
        base_url: str,
        *,
        name: str,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
        retry: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.name = name
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.timeout = timeout
        self.retry = retry or RetryPolicy.from_settings()
        self._transport = transport

    async def _log_request(self, request: httpx.Request) -> None:
        logger.debug(f"[{self.name}] => {request.method} {request.url}")

    async def _log_response(self, response: httpx.Response) -> None:
        logger.debug(f"[{self.name}] <= {response.status_code} {response.request.url}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )

    async def _send(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[dict] = None,
        json: Optional[Any] = None,
    ) -> Any:
        try:
            async with self._client() as client:
                response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise ProviderHttpError(operation, message=f"timeout: {e}") from e
        except httpx.RequestError as e:
            raise ProviderHttpError(operation, message=f"network: {e}") from e

        if response.status_code >= 400:
            raise ProviderHttpError(operation, response.status_code, response.text[:500])

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ProviderHttpError(
                operation, response.status_code, f"invalid JSON body: {e}"
            ) from e

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[dict] = None,
        json: Optional[Any] = None,
        retry: bool = True,
    ) -> Any:
        """Send a request and decode the JSON body.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            operation: Label used in errors and logs (e.g. "relay.quote")
            params: Query parameters (``None`` values are dropped)
            json: JSON request body
            retry: Apply the retry policy to this call

        Raises:
            ProviderHttpError: On HTTP errors, transport errors or a non-JSON body.
        """
        cleaned = {k: v for k, v in (params or {}).items() if v is not None} or None

        async def attempt() -> Any:
            return await self._send(method, path, operation, params=cleaned, json=json)

        if not retry:
            return await attempt()
        return await self.retry.run(attempt, operation=operation)
