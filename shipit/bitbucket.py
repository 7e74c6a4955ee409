"""
Bitbucket Server async client.

Aggregates the resource clients the scan cycle needs behind one object.
"""

from typing import Any

import httpx

from shipit.async_clients import AsyncBuildStatusClient, AsyncPullsClient, AsyncUsersClient
from shipit.async_transport import AsyncHTTPTransport
from shipit.config import Config
from shipit.transport import RetryConfig


class AsyncBitbucketClient:
    """
    Async client for the Bitbucket Server REST API.

    Example:
        ```python
        import asyncio
        from shipit.bitbucket import AsyncBitbucketClient

        async def main():
            async with AsyncBitbucketClient(
                base_url="https://bitbucket.example.com",
                api_token="...",
            ) as client:
                me = await client.users.whoami()
                for pr in await client.pulls.list_open():
                    print(me, pr.key, pr.title)

        asyncio.run(main())
        ```
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the async Bitbucket client.

        Args:
            base_url: Base URL of the Bitbucket Server instance
            api_token: Personal access token sent as a Bearer token (optional)
            timeout: Request timeout in seconds (default: 30.0)
            retry_config: Configuration for retry behavior (optional)
            transport: httpx transport override, mainly for tests (optional)
        """
        self.base_url = base_url

        headers = {
            "Content-Type": "application/json",
            # Bitbucket rejects form-less POSTs without this XSRF opt-out header.
            "X-Atlassian-Token": "no-check",
        }
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        self._transport = AsyncHTTPTransport(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            retry_config=retry_config,
            transport=transport,
        )

        self.pulls = AsyncPullsClient(self._transport)
        self.builds = AsyncBuildStatusClient(self._transport)
        self.users = AsyncUsersClient(self._transport)

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AsyncBitbucketClient":
        """
        Create a client from resolved configuration.

        Args:
            config: Loaded configuration
            transport: httpx transport override (optional)

        Returns:
            Configured AsyncBitbucketClient instance
        """
        return cls(
            base_url=config.bitbucket_url,
            api_token=config.bitbucket_api_token,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    @property
    def transport(self) -> AsyncHTTPTransport:
        """Get the underlying async HTTP transport (for advanced use cases)."""
        return self._transport

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._transport.close()

    async def __aenter__(self) -> "AsyncBitbucketClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit - closes the client."""
        await self.close()
