"""HTTP transport for the compliance chat API.

Wraps httpx.AsyncClient with bearer-token injection and maps HTTP
outcomes onto the client's exception types. Streamed responses are
exposed as a pull-based StreamHandle so the NDJSON decoder never touches
httpx directly.

Status mapping:
    - 2xx: success
    - 401/403: AuthenticationError (stored token is invalidated first)
    - any other status: TransportError carrying status and response text
    - network failures: TransportError without a status
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

import httpx

from compliance_chat.client.config import ClientConfig, get_client_config
from compliance_chat.exceptions import AuthenticationError, TransportError

logger = logging.getLogger(__name__)

_AUTH_STATUSES = frozenset({401, 403})


class TokenProvider(Protocol):
    """Source of the bearer token (owned by the external auth layer)."""

    def get_token(self) -> str | None: ...

    def invalidate(self) -> None: ...


class StaticTokenProvider:
    """Holds a single token in memory and forgets it on invalidation."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def get_token(self) -> str | None:
        return self._token

    def invalidate(self) -> None:
        self._token = None


class StreamHandle:
    """Pull-based reader over a streamed response body.

    The caller controls pacing: bytes are only pulled from the network
    when read() is awaited. After the body is exhausted every further
    read returns (b"", True).
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks = response.aiter_bytes()
        self._done = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def read(self) -> tuple[bytes, bool]:
        """Read the next chunk of the body.

        Returns:
            Tuple of (chunk, done). done is True once the body is exhausted.

        Raises:
            TransportError: If the connection fails mid-stream.
        """
        if self._done:
            return b"", True
        try:
            chunk = await anext(self._chunks)
        except StopAsyncIteration:
            self._done = True
            return b"", True
        except httpx.HTTPError as e:
            self._done = True
            raise TransportError(f"Stream aborted: {e}") from e
        return chunk, False


class ApiClient:
    """Async client for the compliance API.

    Attributes:
        base_url: API base URL every endpoint is resolved against.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API base URL.
            token_provider: Source of the bearer token; no auth header without one.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests pass an ASGITransport).
        """
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _auth_headers(self) -> dict[str, str]:
        if self._token_provider is None:
            return {}
        token = self._token_provider.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _check_status(self, response: httpx.Response, text: str) -> None:
        """Raise the matching error for a non-2xx response."""
        if response.is_success:
            return
        status = response.status_code
        if status in _AUTH_STATUSES:
            logger.warning(f"Authentication rejected ({status}) for {response.request.url.path}")
            if self._token_provider is not None:
                self._token_provider.invalidate()
            raise AuthenticationError(text or "Unauthorized", status_code=status)
        logger.error(f"{response.request.method} {response.request.url.path} failed: {status}")
        raise TransportError(text or response.reason_phrase, status_code=status)

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Any | None = None,
    ) -> httpx.Response:
        """Issue a request and return the successful response.

        Args:
            method: HTTP method.
            endpoint: Path relative to the base URL.
            json: Optional JSON body.

        Returns:
            The 2xx response with its body loaded.

        Raises:
            AuthenticationError: On 401/403.
            TransportError: On any other non-2xx status or network failure.
        """
        try:
            response = await self._http.request(
                method, endpoint, json=json, headers=self._auth_headers()
            )
        except httpx.RequestError as e:
            logger.error(f"{method} {endpoint} failed: {e}")
            raise TransportError(f"Connection failed: {e}") from e
        self._check_status(response, response.text)
        return response

    async def get_json(self, endpoint: str) -> Any:
        response = await self.request("GET", endpoint)
        return response.json()

    async def post_json(self, endpoint: str, json: Any | None = None) -> Any:
        response = await self.request("POST", endpoint, json=json)
        return response.json()

    async def delete(self, endpoint: str) -> None:
        await self.request("DELETE", endpoint)

    @asynccontextmanager
    async def open_stream(
        self,
        method: str,
        endpoint: str,
        json: Any | None = None,
    ) -> AsyncIterator[StreamHandle]:
        """Open a streamed request.

        The status is checked before any body bytes are handed out; the
        response is closed when the context exits, which also stops any
        further reads.

        Yields:
            StreamHandle over the response body.

        Raises:
            AuthenticationError: On 401/403.
            TransportError: On any other non-2xx status or network failure.
        """
        headers = {"Accept": "application/x-ndjson", **self._auth_headers()}
        try:
            async with self._http.stream(method, endpoint, json=json, headers=headers) as response:
                if not response.is_success:
                    body = await response.aread()
                    self._check_status(response, body.decode("utf-8", errors="replace"))
                yield StreamHandle(response)
        except httpx.RequestError as e:
            logger.error(f"Streamed {method} {endpoint} failed: {e}")
            raise TransportError(f"Connection failed: {e}") from e


# Module-level singleton instance
_api_client: ApiClient | None = None


def get_api_client(config: ClientConfig | None = None) -> ApiClient:
    """Get or create the global API client.

    Args:
        config: Optional configuration; loaded from environment if omitted.

    Returns:
        The ApiClient instance.
    """
    global _api_client
    if _api_client is None:
        config = config or get_client_config()
        _api_client = ApiClient(
            base_url=config.api_base_url,
            token_provider=StaticTokenProvider(config.access_token),
            timeout=config.request_timeout,
        )
    return _api_client
