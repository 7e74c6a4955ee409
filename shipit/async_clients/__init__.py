"""shipit async Bitbucket resource clients."""

from shipit.async_clients.builds import AsyncBuildStatusClient
from shipit.async_clients.pulls import AsyncPullsClient
from shipit.async_clients.users import AsyncUsersClient

__all__ = [
    "AsyncPullsClient",
    "AsyncBuildStatusClient",
    "AsyncUsersClient",
]
