"""
Async HTTP Transport for shipit.

Handles async HTTP communication with automatic retry logic, Bitbucket-style
paging and error handling using the httpx async client.
"""

import asyncio
import random
import time
from collections.abc import Callable, Coroutine
from typing import Any

import httpx

from shipit.exceptions import ServerError, ShipitError
from shipit.logging import log_http_request, log_http_response
from shipit.transport import RetryConfig, parse_error_response


class AsyncHTTPTransport:
    """
    Async HTTP transport layer with retry logic.

    Handles:
    - Exponential backoff with jitter for retries
    - Retry-After header respect for rate limiting
    - Error response parsing into typed exceptions
    - Following Bitbucket paged responses to the last page
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize async HTTP transport.

        Args:
            base_url: Base URL for API requests (e.g., "https://bitbucket.example.com").
                Absolute URLs passed to request methods bypass it.
            headers: Default headers sent with every request
            auth: httpx auth (a ``(username, password)`` tuple means HTTP basic auth)
            timeout: Request timeout in seconds
            retry_config: Configuration for retry behavior
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = retry_config or RetryConfig()

        default_headers = {"Accept": "application/json"}
        default_headers.update(headers or {})

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=default_headers,
            auth=auth,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        retry_config: RetryConfig | None = None,
    ) -> Any:
        """
        Make a request and decode the JSON response.

        Args:
            method: HTTP method
            path: API path or absolute URL
            params: Query parameters
            body: JSON request body
            retry_config: Per-call override of the retry behavior

        Returns:
            Parsed JSON response, or an empty dict when the body is empty

        Raises:
            ShipitError: On API errors
        """
        response = await self._send(method, path, params, body, retry_config)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                "INVALID_RESPONSE", f"{method} {path} returned a non-JSON body"
            ) from e

    async def request_text(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> str:
        """
        Make a request and return the raw response text.

        Args:
            method: HTTP method
            path: API path or absolute URL
            params: Query parameters

        Returns:
            Response body as text

        Raises:
            ShipitError: On API errors
        """
        response = await self._send(method, path, params, None, None)
        return response.text

    async def get_paged(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """
        Fetch every page of a Bitbucket paged collection.

        Bitbucket pages look like ``{"values": [...], "isLastPage": bool,
        "nextPageStart": int}``.

        Args:
            path: API path
            params: Extra query parameters
            limit: Page size to request

        Returns:
            Concatenated ``values`` of all pages

        Raises:
            ShipitError: On API errors or malformed pages
        """
        query: dict[str, Any] = dict(params or {})
        query["limit"] = limit
        start = 0
        values: list[dict[str, Any]] = []

        while True:
            query["start"] = start
            page = await self.request("GET", path, params=query)
            if not isinstance(page, dict) or not isinstance(page.get("values"), list):
                raise ServerError("INVALID_RESPONSE", f"GET {path} did not return a page")

            values.extend(item for item in page["values"] if isinstance(item, dict))

            next_start = page.get("nextPageStart")
            if page.get("isLastPage", True) or next_start is None:
                return values
            start = int(next_start)

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        body: dict[str, Any] | None,
        retry_config: RetryConfig | None,
    ) -> httpx.Response:
        async def make_request() -> httpx.Response:
            log_http_request(method, path, params=params, body=body)
            started = time.monotonic()
            response = await self._client.request(method, path, params=params, json=body)
            log_http_response(
                response.status_code, path, elapsed_ms=(time.monotonic() - started) * 1000
            )
            return response

        return await self._execute_with_retry(make_request, retry_config or self.retry_config)

    async def _execute_with_retry(
        self,
        request_fn: Callable[[], Coroutine[Any, Any, httpx.Response]],
        retry_config: RetryConfig,
    ) -> httpx.Response:
        """
        Execute a request with automatic retry on retryable errors.

        Args:
            request_fn: Async function that makes the HTTP request
            retry_config: Retry behavior for this request

        Returns:
            The first successful response

        Raises:
            ShipitError: On non-retryable errors or after max retries
        """
        last_error: Exception | None = None

        for attempt in range(retry_config.max_retries + 1):
            try:
                response = await request_fn()

                if response.status_code < 400:
                    return response

                # Parse error response
                error = parse_error_response(response)

                # Check if we should retry
                if not self._should_retry(response.status_code, attempt, retry_config):
                    raise error

                last_error = error

                # Calculate backoff time
                retry_after = response.headers.get("Retry-After")
                wait_time = self._get_backoff_time(attempt, retry_after, retry_config)
                await asyncio.sleep(wait_time)

            except httpx.RequestError as e:
                # Network errors are retryable
                if attempt >= retry_config.max_retries:
                    raise ServerError("CONNECTION_ERROR", str(e) or type(e).__name__) from e

                last_error = e
                wait_time = self._get_backoff_time(attempt, None, retry_config)
                await asyncio.sleep(wait_time)

        # Should not reach here, but just in case
        if last_error:
            if isinstance(last_error, ShipitError):
                raise last_error
            raise ServerError("MAX_RETRIES_EXCEEDED", str(last_error))

        raise ServerError("UNKNOWN_ERROR", "Request failed with no error details")

    def _should_retry(
        self, status_code: int, attempt: int, retry_config: RetryConfig | None = None
    ) -> bool:
        """
        Determine if a request should be retried.

        Args:
            status_code: HTTP status code
            attempt: Current attempt number (0-indexed)
            retry_config: Retry behavior (default: the transport's own)

        Returns:
            True if the request should be retried
        """
        config = retry_config or self.retry_config
        if attempt >= config.max_retries:
            return False

        return status_code in config.retry_on

    def _get_backoff_time(
        self,
        attempt: int,
        retry_after: str | None,
        retry_config: RetryConfig | None = None,
    ) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter, respecting Retry-After header
        if present.

        Args:
            attempt: Current attempt number (0-indexed)
            retry_after: Value of Retry-After header (if present)
            retry_config: Retry behavior (default: the transport's own)

        Returns:
            Time to wait in seconds
        """
        config = retry_config or self.retry_config

        if retry_after and config.respect_retry_after:
            try:
                return min(float(retry_after), config.max_backoff)
            except ValueError:
                pass  # Fall through to exponential backoff

        # Exponential backoff: backoff_factor ^ attempt
        base_wait = config.backoff_factor ** attempt

        jitter_range = base_wait * config.jitter
        jitter = random.uniform(-jitter_range, jitter_range)
        wait_time = base_wait + jitter

        return min(wait_time, config.max_backoff)
