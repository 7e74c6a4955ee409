"""Async Bitbucket build status resource client."""

from typing import TYPE_CHECKING, Any

from shipit.types.builds import BuildStatus

if TYPE_CHECKING:
    from shipit.async_transport import AsyncHTTPTransport


class AsyncBuildStatusClient:
    """Async client for the build statuses reported against commits."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        """
        Initialize the async build status client.

        Args:
            transport: Async HTTP transport for making requests
        """
        self.transport = transport

    async def list_for_commit(self, commit: str) -> list[BuildStatus]:
        """
        List build statuses for a commit.

        Args:
            commit: Full commit hash

        Returns:
            BuildStatus entries, newest first as returned by the server
        """
        values = await self.transport.get_paged(f"/rest/build-status/1.0/commits/{commit}")
        return [self._parse_build_status(value) for value in values]

    def _parse_build_status(self, data: dict[str, Any]) -> BuildStatus:
        """Parse build status data from API response."""
        key = str(data.get("key", ""))
        return BuildStatus(
            key=key,
            name=str(data.get("name") or key),
            state=str(data.get("state", "")).upper(),
            url=str(data.get("url", "")),
            timestamp=int(data.get("dateAdded", 0)),
        )
