"""shipit testing utilities.

Provides mock clients and fixtures for testing code built on shipit.
"""

from shipit.testing.fixtures import (
    create_mock_build_status,
    create_mock_config,
    create_mock_summary,
)
from shipit.testing.mock import (
    MockBitbucketClient,
    MockCall,
    MockJenkinsClient,
    MockResponse,
)

__all__ = [
    # Mock clients
    "MockBitbucketClient",
    "MockJenkinsClient",
    "MockCall",
    "MockResponse",
    # Helper functions
    "create_mock_summary",
    "create_mock_build_status",
    "create_mock_config",
]
