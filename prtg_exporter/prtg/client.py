"""
Async HTTP client for the PRTG table API.

Wraps an ``httpx.AsyncClient`` and applies the retry policy from
``prtg_exporter.common.retry`` to every call: transport errors and 5xx
responses are retried, 4xx responses are handed back untouched.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from tenacity import RetryCallState

from prtg_exporter.common.exceptions import (
    PrtgApiError,
    ResponseParseError,
    ServerResponseError,
)
from prtg_exporter.common.logging_config import get_logger
from prtg_exporter.common.retry import MAX_RETRIES, api_retrying

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
TABLE_ENDPOINT = "/api/table.json"

RequestFactory = Callable[[], httpx.Request]


class PrtgApiClient:
    """
    Client for ``{server}/api/table.json``.

    Credentials are forwarded as the ``username`` and ``passhash`` query
    parameters; the passhash is opaque and sent verbatim.

    Usage:
        async with PrtgApiClient("https://prtg.example.com", "api", "123") as client:
            payload = await client.get_table({"content": "sensors", ...})
    """

    def __init__(
        self,
        server: str,
        username: str,
        passhash: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verify: bool = True,
        max_retries: int = MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Optional[Callable[[RetryCallState], None]] = None,
    ):
        """
        Initialize the client.

        Args:
            server: Base URL of the PRTG server (trailing slash ignored)
            username: PRTG user name
            passhash: PRTG passhash / API token
            timeout: Per-request timeout in seconds
            verify: Verify the server's TLS certificate
            max_retries: Retries after the first attempt
            transport: Optional httpx transport (tests use MockTransport)
            sleep: Sleep used between retries
            on_retry: Callback invoked before each retry wait
        """
        self.base_url = server.rstrip("/")
        self.username = username
        self.passhash = passhash
        self.max_retries = max_retries
        self._sleep = sleep
        self._on_retry = on_retry
        self._http = httpx.AsyncClient(
            timeout=timeout,
            verify=verify,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "PrtgApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def send(self, request_factory: RequestFactory) -> httpx.Response:
        """
        Send a request with retries.

        ``request_factory`` is called once per attempt so every attempt gets
        a fresh request object.

        Returns:
            The first response with a status below 500

        Raises:
            httpx.TransportError: Network failure on the final attempt
            ServerResponseError: 5xx status on the final attempt
            asyncio.CancelledError: The calling task was cancelled
        """
        retrying = api_retrying(
            max_retries=self.max_retries,
            sleep=self._sleep,
            on_retry=self._on_retry,
        )
        return await retrying(self._send_once, request_factory)

    async def _send_once(self, request_factory: RequestFactory) -> httpx.Response:
        request = request_factory()
        response = await self._http.send(request)
        if response.status_code >= 500:
            await response.aclose()
            raise ServerResponseError(
                f"Server error {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def build_table_request(self, params: Dict[str, Any]) -> httpx.Request:
        """Build a GET request for the table endpoint with credentials attached."""
        query = dict(params)
        query["username"] = self.username
        query["passhash"] = self.passhash
        return self._http.build_request(
            "GET", f"{self.base_url}{TABLE_ENDPOINT}", params=query
        )

    async def get_table(self, params: Dict[str, Any]) -> Any:
        """
        Fetch one table document and decode its JSON body.

        Raises:
            PrtgApiError: Non-success status below 500 (e.g. 401 bad passhash)
            ResponseParseError: Body is not valid JSON
        """
        response = await self.send(lambda: self.build_table_request(params))
        if not response.is_success:
            raise PrtgApiError(
                f"PRTG returned HTTP {response.status_code} for "
                f"content={params.get('content')}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError(f"Invalid JSON from PRTG: {e}") from e
