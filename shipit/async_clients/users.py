"""Async Bitbucket users resource client."""

from typing import TYPE_CHECKING

from shipit.exceptions import AuthenticationError

if TYPE_CHECKING:
    from shipit.async_transport import AsyncHTTPTransport


class AsyncUsersClient:
    """Async client for user lookups."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        """
        Initialize the async users client.

        Args:
            transport: Async HTTP transport for making requests
        """
        self.transport = transport

    async def whoami(self) -> str:
        """
        Get the name of the authenticated user.

        Returns:
            The user name the API token belongs to

        Raises:
            AuthenticationError: If the server does not recognise the token
        """
        name = (await self.transport.request_text("GET", "/plugins/servlet/applinks/whoami")).strip()
        if not name:
            raise AuthenticationError("ANONYMOUS", "Bitbucket did not identify the API token's user")
        return name
